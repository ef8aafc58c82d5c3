"""
Store Result Cache - proximity store search backed by StoreSummary rows.

Fresh local rows inside a box around the query point answer the search;
otherwise the catalog provider is asked, non-grocery results are filtered
out and the rest are upserted for the next caller.
"""

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from inventory.exceptions import MissingCoordinates
from inventory.models import StoreSummary

logger = logging.getLogger(__name__)

MILES_PER_DEGREE_LATITUDE = 69.0

SUMMARY_UPDATE_FIELDS = [
    "name",
    "store_type",
    "street_num",
    "street_name",
    "street_addr",
    "city",
    "state",
    "zip_code",
    "country",
    "latitude",
    "longitude",
    "is_open",
    "miles",
    "last_updated",
]

_UNSET = object()


def _coordinate(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number == 0:
        return None
    return number


class StoreResultCache:
    """
    Usage:
        cache = StoreResultCache()
        stores = cache.search(40.71, -74.0, radius_miles=3)
    """

    def __init__(
        self,
        catalog_client=None,
        freshness: timedelta = None,
        box_degrees=_UNSET,
        excluded_terms: List[str] = None,
    ):
        """
        Args:
            catalog_client: Client with search_stores(); built on first miss when omitted
            freshness: Maximum age of a usable cached row
            box_degrees: Half-width of the lookup box, None to derive it from the radius
            excluded_terms: Name fragments that mark a store as not a grocery store
        """
        self._catalog_client = catalog_client
        self.freshness = freshness or timedelta(
            days=getattr(settings, "STORE_CACHE_FRESHNESS_DAYS", 7)
        )
        self.box_degrees = (
            getattr(settings, "STORE_CACHE_BOX_DEGREES", 0.5) if box_degrees is _UNSET else box_degrees
        )
        self.excluded_terms = [
            term.lower()
            for term in (
                excluded_terms if excluded_terms is not None
                else getattr(settings, "STORE_EXCLUDED_NAME_TERMS", [])
            )
        ]

    @property
    def catalog_client(self):
        if self._catalog_client is None:
            from inventory.services.catalog_client import get_catalog_client

            self._catalog_client = get_catalog_client()
        return self._catalog_client

    def search(
        self,
        latitude,
        longitude,
        radius_miles: float = None,
        query: str = "",
        store_type: str = None,
    ) -> List[StoreSummary]:
        """
        Find stores near a point, nearest first.

        Raises:
            MissingCoordinates: If latitude or longitude is missing or zero
            ProviderUnavailable: If the cache misses and the provider fails
        """
        lat = _coordinate(latitude)
        lng = _coordinate(longitude)
        if lat is None or lng is None:
            raise MissingCoordinates("Latitude and longitude are required")

        radius_miles = radius_miles or getattr(settings, "STORE_SEARCH_DEFAULT_MILES", 3)
        store_type = store_type or getattr(settings, "STORE_SEARCH_STORE_TYPE", "grocery")

        cached = self.lookup(lat, lng, radius_miles)
        if cached:
            logger.debug(f"Store cache hit: {len(cached)} stores near ({lat}, {lng})")
            return cached

        logger.info(f"Store cache miss near ({lat}, {lng}), querying catalog provider")
        stores = self.catalog_client.search_stores(lat, lng, radius_miles, query, store_type)
        summaries = [
            self._to_summary(store)
            for store in stores
            if self._is_wanted(store, store_type)
        ]
        summaries = [summary for summary in summaries if summary is not None]
        return self._save(summaries)

    def bounding_box(self, latitude: float, longitude: float, radius_miles: float):
        """Return (lat_delta, lng_delta) in degrees."""
        if self.box_degrees is not None:
            return self.box_degrees, self.box_degrees

        lat_delta = radius_miles / MILES_PER_DEGREE_LATITUDE
        cos_lat = math.cos(math.radians(latitude))
        # Near the poles a longitude degree shrinks to nothing
        lng_delta = lat_delta / cos_lat if cos_lat > 0.01 else 180.0
        return lat_delta, lng_delta

    def lookup(self, latitude: float, longitude: float, radius_miles: float) -> List[StoreSummary]:
        """Fresh cached stores inside the box around the point."""
        lat_delta, lng_delta = self.bounding_box(latitude, longitude, radius_miles)
        fresh_since = timezone.now() - self.freshness
        return list(
            StoreSummary.objects.filter(
                latitude__gte=latitude - lat_delta,
                latitude__lte=latitude + lat_delta,
                longitude__gte=longitude - lng_delta,
                longitude__lte=longitude + lng_delta,
                last_updated__gte=fresh_since,
            ).order_by("miles")
        )

    def _is_wanted(self, store: Dict[str, Any], store_type: str) -> bool:
        reported_type = (store.get("type") or "").lower()
        if reported_type and store_type and reported_type != store_type.lower():
            return False
        name = (store.get("name") or "").lower()
        return not any(term in name for term in self.excluded_terms)

    def _to_summary(self, store: Dict[str, Any]) -> Optional[StoreSummary]:
        store_id = store.get("_id") or store.get("store_id")
        address = store.get("address") or {}
        lat = _coordinate(address.get("latitude"))
        lng = _coordinate(address.get("longitude"))
        if not store_id or lat is None or lng is None:
            logger.debug(f"Skipping provider store without id or coordinates: {store.get('name')}")
            return None

        street_num = str(address.get("street_num") or "")
        street_name = address.get("street_name") or ""
        return StoreSummary(
            store_id=str(store_id),
            name=(store.get("name") or "")[:300],
            store_type=store.get("type") or "",
            street_num=street_num,
            street_name=street_name,
            street_addr=address.get("street_addr") or f"{street_num} {street_name}".strip(),
            city=address.get("city") or "",
            state=address.get("state") or "",
            zip_code=str(address.get("zip_code") or address.get("zipcode") or ""),
            country=address.get("country") or "",
            latitude=lat,
            longitude=lng,
            is_open=bool(store.get("is_open", False)),
            miles=float(store.get("miles") or 0.0),
            last_updated=timezone.now(),
        )

    def _save(self, summaries: List[StoreSummary]) -> List[StoreSummary]:
        if not summaries:
            return []

        unique = {summary.store_id: summary for summary in summaries}
        StoreSummary.objects.bulk_create(
            list(unique.values()),
            update_conflicts=True,
            unique_fields=["store_id"],
            update_fields=SUMMARY_UPDATE_FIELDS,
        )
        logger.info(f"Cached {len(unique)} store summaries")
        # Re-read so existing rows come back with their stored primary keys
        return list(StoreSummary.objects.filter(store_id__in=list(unique)).order_by("miles"))
