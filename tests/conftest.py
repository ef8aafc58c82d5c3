"""
Pytest configuration and fixtures for the Grocery Inventory Service test suite.
"""

import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Rate limiter counters live in the cache; start every test empty."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def store_location():
    return {"latitude": 40.7128, "longitude": -74.0060}


@pytest.fixture
def store_address():
    return {
        "street_num": "100",
        "street_name": "Broadway",
        "city": "New York",
        "state": "NY",
        "zipcode": "10005",
        "country": "US",
    }


class TreeCatalog:
    """
    Catalog provider double serving a complete category tree.

    Node ids encode their path ("n-0-1"); nodes at `depth` are leaves with
    `items_per_leaf` products. Extra edges can be added per node to build
    cycles and self references.
    """

    def __init__(self, depth=2, branching=2, items_per_leaf=1, extra_edges=None, failing=None):
        self.depth = depth
        self.branching = branching
        self.items_per_leaf = items_per_leaf
        self.extra_edges = extra_edges or {}
        self.failing = set(failing or [])
        self.calls = []

    def fetch_categories(self, store_id, subcategory_id, location, address):
        from inventory.exceptions import ProviderUnavailable
        from inventory.services.catalog_client import CatalogCategory, CatalogItem, CategoryPage

        self.calls.append(subcategory_id)
        node = subcategory_id or "n"
        if node in self.failing:
            raise ProviderUnavailable(f"provider down for {node}", status_code=503)

        level = node.count("-")
        categories = []
        if level < self.depth:
            categories = [
                CatalogCategory(name=f"Category {node}-{i}", subcategory_id=f"{node}-{i}")
                for i in range(self.branching)
            ]
        else:
            categories = [
                CatalogCategory(
                    name=f"Leaf {node}",
                    items=[
                        CatalogItem(
                            product_id=f"{node}-p{j}",
                            name=f"Product {node} {j}",
                            price=100 + j,
                        )
                        for j in range(self.items_per_leaf)
                    ],
                )
            ]

        for target in self.extra_edges.get(node, []):
            categories.append(CatalogCategory(name=f"Link {target}", subcategory_id=target))

        return CategoryPage(store_id=store_id, subcategory_id=subcategory_id, categories=categories)


@pytest.fixture
def tree_catalog():
    """Factory for TreeCatalog doubles."""
    return TreeCatalog
