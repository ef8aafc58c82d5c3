"""
Tests for the catalog provider client.
"""

from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest
import requests
import responses
from django.test import override_settings

from inventory.exceptions import ProviderUnavailable
from inventory.services.catalog_client import CatalogClient

INVENTORY_URL = "https://catalog.test/details/inventory/v3"
STORE_SEARCH_URL = "https://catalog.test/search/store/v3"

LOCATION = {"latitude": 40.7128, "longitude": -74.0060}
ADDRESS = {
    "street_num": "100",
    "street_name": "Broadway",
    "city": "New York",
    "state": "NY",
    "zipcode": "10005",
    "country": "US",
}

INVENTORY_RESPONSE = {
    "categories": [
        {"name": "Dairy", "subcategory_id": "dairy", "menu_item_list": []},
        {
            "name": "Milk",
            "subcategory_id": "milk",
            "menu_item_list": [
                {
                    "product_id": "p-1",
                    "name": "Whole Milk",
                    "price": 399,
                    "unit_size": 1,
                    "unit_of_measurement": "gal",
                    "description": "Vitamin D milk",
                    "image": "https://img.test/milk.png",
                    "is_available": True,
                },
                {"name": "No id, skipped", "price": 100},
            ],
        },
    ]
}


def query_params(call):
    return parse_qs(urlparse(call.request.url).query)


class TestCatalogClientInit:
    def test_init_with_api_key(self):
        client = CatalogClient(api_key="key-123")
        assert client.api_key == "key-123"

    def test_init_from_settings(self):
        client = CatalogClient()
        assert client.api_key == "test-catalog-key"
        assert client.base_url == "https://catalog.test"

    @override_settings(CATALOG_PROVIDER_API_KEY="")
    def test_init_raises_without_key(self):
        with pytest.raises(ValueError, match="CATALOG_PROVIDER_API_KEY not configured"):
            CatalogClient()


class TestFetchCategories:
    @responses.activate
    def test_parses_categories_and_items(self):
        responses.add(responses.GET, INVENTORY_URL, json=INVENTORY_RESPONSE, status=200)

        page = CatalogClient().fetch_categories("store-1", None, LOCATION, ADDRESS)

        assert page.store_id == "store-1"
        assert page.subcategory_id is None
        assert [c.subcategory_id for c in page.categories] == ["dairy", "milk"]
        assert page.categories[0].items == []

        items = page.categories[1].items
        assert len(items) == 1
        assert items[0].product_id == "p-1"
        assert items[0].price == 399
        assert items[0].unit_size == "1"
        assert items[0].image == "https://img.test/milk.png"

    @responses.activate
    def test_sends_store_location_and_key(self):
        responses.add(responses.GET, INVENTORY_URL, json={"categories": []}, status=200)

        CatalogClient().fetch_categories("store-1", "dairy", LOCATION, ADDRESS)

        call = responses.calls[0]
        params = query_params(call)
        assert params["store_id"] == ["store-1"]
        assert params["subcategory_id"] == ["dairy"]
        assert params["user_latitude"] == ["40.7128"]
        assert params["user_zipcode"] == ["10005"]
        assert call.request.headers["Id-Token"] == "test-catalog-key"

    @responses.activate
    def test_root_request_has_no_subcategory(self):
        responses.add(responses.GET, INVENTORY_URL, json={"categories": []}, status=200)

        CatalogClient().fetch_categories("store-1", None, LOCATION, ADDRESS)

        assert "subcategory_id" not in query_params(responses.calls[0])

    @responses.activate
    def test_http_error_raises_provider_unavailable(self):
        responses.add(responses.GET, INVENTORY_URL, json={"error": "boom"}, status=503)

        with pytest.raises(ProviderUnavailable) as exc_info:
            CatalogClient().fetch_categories("store-1", None, LOCATION, ADDRESS)

        assert exc_info.value.status_code == 503

    @responses.activate
    def test_network_error_raises_provider_unavailable(self):
        responses.add(
            responses.GET,
            INVENTORY_URL,
            body=requests.ConnectionError("connection refused"),
        )

        with pytest.raises(ProviderUnavailable):
            CatalogClient().fetch_categories("store-1", None, LOCATION, ADDRESS)

    @responses.activate
    def test_non_json_body_raises_provider_unavailable(self):
        responses.add(responses.GET, INVENTORY_URL, body="<html>oops</html>", status=200)

        with pytest.raises(ProviderUnavailable, match="non-JSON"):
            CatalogClient().fetch_categories("store-1", None, LOCATION, ADDRESS)

    @responses.activate
    def test_rate_limit_raises_without_calling_provider(self):
        limiter = Mock()
        limiter.try_acquire.return_value = False

        client = CatalogClient(rate_limiter=limiter)
        with pytest.raises(ProviderUnavailable, match="rate limit"):
            client.fetch_categories("store-1", None, LOCATION, ADDRESS)

        assert len(responses.calls) == 0


class TestSearchStores:
    @responses.activate
    def test_returns_store_list(self):
        responses.add(
            responses.GET,
            STORE_SEARCH_URL,
            json={
                "stores": [
                    {"_id": "s-1", "name": "Fresh Market", "type": "grocery", "miles": 0.4},
                    "not-a-store",
                ]
            },
            status=200,
        )

        stores = CatalogClient().search_stores(40.71, -74.0, 3, "", "grocery")

        assert stores == [{"_id": "s-1", "name": "Fresh Market", "type": "grocery", "miles": 0.4}]
        params = query_params(responses.calls[0])
        assert params["store_type"] == ["grocery"]
        assert params["maximum_miles"] == ["3"]

    @responses.activate
    def test_missing_stores_key_returns_empty(self):
        responses.add(responses.GET, STORE_SEARCH_URL, json={}, status=200)

        assert CatalogClient().search_stores(40.71, -74.0, 3) == []
