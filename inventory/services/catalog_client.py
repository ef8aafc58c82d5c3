"""
Catalog Provider Client - HTTP client wrapper for the store catalog API.

Provides a unified interface for:
- Inventory details (one page of a store's category tree)
- Store search (stores near a point)

Every failure mode (network, HTTP status, non-JSON body, local rate limit)
is reported as ProviderUnavailable so that crawl jobs can be retried by the
queue.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from inventory.exceptions import ProviderUnavailable
from inventory.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class CatalogItem:
    """A product as the provider reports it (price in minor units)."""

    product_id: str
    name: str
    price: Optional[int] = None
    unit_size: str = ""
    unit_of_measurement: str = ""
    description: str = ""
    image: str = ""
    is_available: bool = True
    upc: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogItem":
        unit_size = data.get("unit_size")
        return cls(
            product_id=str(data.get("product_id", "")),
            name=data.get("name") or "",
            price=data.get("price"),
            unit_size="" if unit_size is None else str(unit_size),
            unit_of_measurement=data.get("unit_of_measurement") or "",
            description=data.get("description") or "",
            image=data.get("image") or "",
            is_available=bool(data.get("is_available", True)),
            upc=data.get("upc"),
        )


@dataclass
class CatalogCategory:
    """
    One category node on a page.

    A category with no items and its own subcategory_id is an unexplored
    subtree; a category with items is a leaf.
    """

    name: str = ""
    subcategory_id: Optional[str] = None
    items: List[CatalogItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogCategory":
        subcategory_id = data.get("subcategory_id")
        return cls(
            name=data.get("name") or "",
            subcategory_id=str(subcategory_id) if subcategory_id else None,
            items=[
                CatalogItem.from_dict(item)
                for item in data.get("menu_item_list") or []
                if item.get("product_id")
            ],
        )


@dataclass
class CategoryPage:
    """One inventory details response."""

    store_id: str
    subcategory_id: Optional[str]
    categories: List[CatalogCategory] = field(default_factory=list)


class CatalogClient:
    """
    Wrapper for the catalog provider REST API.

    Usage:
        client = CatalogClient()
        page = client.fetch_categories("store-1", None, location, address)
        stores = client.search_stores(40.7, -74.0, 3, "", "grocery")
    """

    INVENTORY_PATH = "/details/inventory/v3"
    STORE_SEARCH_PATH = "/search/store/v3"

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: int = None,
        rate_limiter: RateLimiter = None,
    ):
        """
        Initialize the catalog client.

        Args:
            api_key: Provider API key. Defaults to settings.CATALOG_PROVIDER_API_KEY
            base_url: Provider base URL. Defaults to settings.CATALOG_PROVIDER_URL
            timeout: Request timeout in seconds
            rate_limiter: Shared per-minute limiter (created if not given)

        Raises:
            ValueError: If no API key is configured
        """
        self.api_key = api_key or getattr(settings, "CATALOG_PROVIDER_API_KEY", None)
        if not self.api_key:
            raise ValueError("CATALOG_PROVIDER_API_KEY not configured")

        self.base_url = (base_url or getattr(settings, "CATALOG_PROVIDER_URL", "")).rstrip("/")
        self.timeout = timeout or getattr(settings, "CATALOG_REQUEST_TIMEOUT", 30)
        self.rate_limiter = rate_limiter or RateLimiter()

    def fetch_categories(
        self,
        store_id: str,
        subcategory_id: Optional[str],
        location: Dict[str, Any],
        address: Dict[str, Any],
    ) -> CategoryPage:
        """
        Fetch one page of a store's category tree.

        Args:
            store_id: Provider store id
            subcategory_id: Category to expand, None for the root page
            location: {"latitude", "longitude"} of the shopper
            address: {"street_num", "street_name", "city", "state", "zipcode", "country"}

        Returns:
            CategoryPage with the categories of the requested node

        Raises:
            ProviderUnavailable: On network, API or rate limit errors
        """
        address = address or {}
        params = {
            "store_id": store_id,
            "user_latitude": location.get("latitude"),
            "user_longitude": location.get("longitude"),
            "user_street_num": address.get("street_num", ""),
            "user_street_name": address.get("street_name", ""),
            "user_city": address.get("city", ""),
            "user_state": address.get("state", ""),
            "user_zipcode": address.get("zipcode", ""),
            "user_country": address.get("country", "US"),
            "pickup": "false",
            "include_quote": "false",
        }
        if subcategory_id:
            params["subcategory_id"] = subcategory_id

        data = self._make_request(self.INVENTORY_PATH, params)

        categories = [
            CatalogCategory.from_dict(category)
            for category in data.get("categories") or []
            if isinstance(category, dict)
        ]
        return CategoryPage(
            store_id=store_id,
            subcategory_id=subcategory_id,
            categories=categories,
        )

    def search_stores(
        self,
        latitude: float,
        longitude: float,
        radius_miles: float,
        query: str = "",
        store_type: str = "grocery",
    ) -> List[Dict[str, Any]]:
        """
        Search for stores near a point.

        Returns:
            List of provider store dicts ({"_id", "name", "type", "address", "is_open", "miles"})

        Raises:
            ProviderUnavailable: On network, API or rate limit errors
        """
        params = {
            "query": query or "",
            "latitude": latitude,
            "longitude": longitude,
            "store_type": store_type,
            "maximum_miles": radius_miles,
            "search_focus": "store",
            "sort": "relevance",
            "pickup": "false",
            "fetch_quotes": "false",
            "open": "false",
            "projections": "_id,name,address,type,is_open,miles",
        }
        data = self._make_request(self.STORE_SEARCH_PATH, params)
        return [store for store in data.get("stores") or [] if isinstance(store, dict)]

    def _make_request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make HTTP GET request to the provider.

        Args:
            path: Endpoint path
            params: Query parameters

        Returns:
            JSON response as dictionary

        Raises:
            ProviderUnavailable: On network, API, body or rate limit errors
        """
        if not self.rate_limiter.try_acquire():
            raise ProviderUnavailable("Catalog provider rate limit exceeded")

        url = f"{self.base_url}{path}"
        headers = {"Id-Token": self.api_key, "Accept": "application/json"}

        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error(f"Catalog provider request to {path} failed with HTTP {status_code}")
            raise ProviderUnavailable(
                f"Catalog provider returned HTTP {status_code}",
                status_code=status_code,
            ) from e
        except requests.RequestException as e:
            logger.error(f"Catalog provider request to {path} failed: {e}")
            raise ProviderUnavailable(f"Catalog provider request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Catalog provider returned a non-JSON body for {path}")
            raise ProviderUnavailable("Catalog provider returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise ProviderUnavailable("Catalog provider returned an unexpected body")
        return data


def get_catalog_client() -> CatalogClient:
    """Build a catalog client from settings."""
    return CatalogClient()
