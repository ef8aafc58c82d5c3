"""
Crawl job payload shared by the tracker, the trigger and the category task.

Payloads travel through Celery's JSON serializer and the HTTP trigger, so
they are converted to plain dicts at the boundary.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

ADDRESS_FIELDS = ("street_num", "street_name", "city", "state", "zipcode", "country")

# camelCase spellings accepted from API callers
_ADDRESS_ALIASES = {
    "streetNum": "street_num",
    "streetName": "street_name",
    "zipCode": "zipcode",
    "zip_code": "zipcode",
}


def normalize_location(location: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    location = location or {}
    return {
        "latitude": location.get("latitude"),
        "longitude": location.get("longitude"),
    }


def normalize_address(address: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Map an address dict onto the six fields the provider expects."""
    normalized = {name: "" for name in ADDRESS_FIELDS}
    for key, value in (address or {}).items():
        key = _ADDRESS_ALIASES.get(key, key)
        if key in normalized and value is not None:
            normalized[key] = str(value)
    if not normalized["country"]:
        normalized["country"] = "US"
    return normalized


@dataclass
class CrawlJobPayload:
    """One unit of crawl work: a single category page of a single store."""

    store_id: str
    run_id: str
    location: Dict[str, Any] = field(default_factory=dict)
    address: Dict[str, str] = field(default_factory=dict)
    subcategory_id: Optional[str] = None
    depth: int = 0

    @property
    def is_root(self) -> bool:
        return not self.subcategory_id

    @classmethod
    def root(cls, store_id: str, run_id, location, address) -> "CrawlJobPayload":
        return cls(
            store_id=store_id,
            run_id=str(run_id),
            location=normalize_location(location),
            address=normalize_address(address),
        )

    def child(self, subcategory_id: str) -> "CrawlJobPayload":
        return CrawlJobPayload(
            store_id=self.store_id,
            run_id=self.run_id,
            location=dict(self.location),
            address=dict(self.address),
            subcategory_id=subcategory_id,
            depth=self.depth + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlJobPayload":
        return cls(
            store_id=str(data["store_id"]),
            run_id=str(data["run_id"]),
            location=normalize_location(data.get("location")),
            address=normalize_address(data.get("address")),
            subcategory_id=data.get("subcategory_id") or None,
            depth=int(data.get("depth") or 0),
        )
