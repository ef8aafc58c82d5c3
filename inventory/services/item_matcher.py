"""
Item Matcher - resolve free-text shopping-list items against a store's
inventory.

Pipeline per chunk of desired items:
1. Deterministic candidate filter on InventoryRecord names (and units);
   names containing a negative descriptor never become candidates
2. Items with one candidate resolve directly, items with none stay
   unmatched, the rest go to the reasoning service in one request
3. Reasoning answers are joined back to inventory records by id and
   attributed by search_item, or else by whose candidates hold the id;
   unknown ids and duplicates are dropped
4. The complete result replaces the MatchSet for (store, influencer)

Reasoning failures only cost the ambiguous items of the affected chunk.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from asgiref.sync import async_to_sync
from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q

from inventory.exceptions import MatchingFailed, ReasoningMalformed, ReasoningUnavailable
from inventory.models import InventoryRecord, MatchSet
from inventory.services.reasoning_client import ReasoningMatch

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"[A-Za-z]{3,}")


def _descriptor_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(part).strip() for part in value if str(part).strip()]


def _first(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return default


@dataclass
class DesiredItem:
    """One shopping-list entry to resolve."""

    name: str
    quantity: float = 1
    unit_of_measurement: Optional[str] = None
    unit_size: Optional[str] = None
    positive_descriptors: List[str] = field(default_factory=list)
    negative_descriptors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DesiredItem":
        """Build from a loose dict; snake_case and camelCase keys are accepted."""
        quantity = _first(data, "quantity", default=1)
        try:
            quantity = float(quantity)
            quantity = int(quantity) if quantity.is_integer() else quantity
        except (TypeError, ValueError):
            quantity = 1

        unit_size = _first(data, "unit_size", "unitSize")
        return cls(
            name=str(_first(data, "name", "item_name", "itemName", default="")).strip(),
            quantity=quantity,
            unit_of_measurement=_first(data, "unit_of_measurement", "unitOfMeasurement"),
            unit_size=None if unit_size is None else str(unit_size),
            positive_descriptors=_descriptor_list(
                _first(data, "positive_descriptors", "positiveDescriptors")
            ),
            negative_descriptors=_descriptor_list(
                _first(data, "negative_descriptors", "negativeDescriptors")
            ),
        )

    def to_prompt_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "quantity": self.quantity}
        if self.unit_of_measurement:
            data["unit_of_measurement"] = self.unit_of_measurement
        if self.unit_size:
            data["unit_size"] = self.unit_size
        if self.positive_descriptors:
            data["positive_descriptors"] = self.positive_descriptors
        if self.negative_descriptors:
            data["negative_descriptors"] = self.negative_descriptors
        return data


@dataclass
class Candidate:
    """An inventory record that passed the deterministic filter."""

    id: str
    name: str
    record: InventoryRecord = field(repr=False, compare=False)

    @classmethod
    def from_record(cls, record: InventoryRecord) -> "Candidate":
        return cls(id=str(record.pk), name=record.name, record=record)

    def to_prompt_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass
class ResolvedMatch:
    """A desired item joined to the inventory record chosen for it."""

    item: DesiredItem
    record: InventoryRecord
    adjusted_quantity: float

    def to_dict(self) -> Dict[str, Any]:
        record = self.record
        return {
            "source_item_name": self.item.name,
            "resolved_inventory_id": str(record.pk),
            "product_id": record.product_id,
            "resolved_name": record.name,
            "adjusted_quantity": self.adjusted_quantity,
            "price": float(record.price) if record.price is not None else None,
            "image": record.image_url,
            "is_available": record.is_available,
        }


def build_prompt(items: List[DesiredItem], candidates: List[Candidate]) -> str:
    """Reasoning prompt with the output contract and the trimmed data."""
    data = {
        "search_items": [item.to_prompt_dict() for item in items],
        "inventory_items": [candidate.to_prompt_dict() for candidate in candidates],
    }
    return (
        "Match each search item to the best inventory item and determine the quantity "
        "to buy. Return at most one match per search item. Use positive_descriptors as "
        "inclusion hints and never choose an inventory item that matches a "
        "negative_descriptor. If nothing fits, leave the search item out.\n"
        "Respond with JSON in exactly this format:\n"
        '{"matches": [{"search_item": "<search item name>", "id": "<inventory item id>", '
        '"name": "<inventory item name>", "adjusted_quantity": <number>}]}\n'
        f"Data: {json.dumps(data)}"
    )


class ItemMatcher:
    """
    Usage:
        matcher = ItemMatcher(get_reasoning_client())
        match_set = matcher.resolve("store-1", "influencer-1", [{"name": "milk", "quantity": 2}])
    """

    def __init__(
        self,
        reasoning_client=None,
        chunk_size: int = None,
        candidate_limit: int = None,
        candidates_per_item: int = None,
    ):
        """
        Args:
            reasoning_client: Client with async resolve(prompt); built on demand when omitted
            chunk_size: Desired items per reasoning request
            candidate_limit: Maximum candidates sent per chunk
            candidates_per_item: Maximum candidates kept per desired item
        """
        self._reasoning_client = reasoning_client
        self.chunk_size = chunk_size or getattr(settings, "MATCHER_CHUNK_SIZE", 15)
        self.candidate_limit = candidate_limit or getattr(settings, "MATCHER_CANDIDATE_LIMIT", 200)
        self.candidates_per_item = candidates_per_item or getattr(
            settings, "MATCHER_CANDIDATES_PER_ITEM", 25
        )

    @property
    def reasoning_client(self):
        if self._reasoning_client is None:
            from inventory.services.reasoning_client import get_reasoning_client

            self._reasoning_client = get_reasoning_client()
        return self._reasoning_client

    def resolve(
        self,
        store_id: str,
        influencer_id: str,
        desired_items: Iterable[Any],
    ) -> MatchSet:
        """
        Resolve desired items and replace the stored match set.

        Raises:
            MatchingFailed: If the inventory could not be read or the result not saved
        """
        items = [
            item if isinstance(item, DesiredItem) else DesiredItem.from_dict(item)
            for item in desired_items
        ]
        items = [item for item in items if item.name]

        matches: List[ResolvedMatch] = []
        for start in range(0, len(items), self.chunk_size):
            chunk = items[start:start + self.chunk_size]
            matches.extend(self._resolve_chunk(store_id, chunk))

        logger.info(
            f"Resolved {len(matches)}/{len(items)} items for influencer {influencer_id} "
            f"at store {store_id}"
        )
        return self._persist(store_id, influencer_id, matches)

    def find_candidates(self, store_id: str, item: DesiredItem, limit: int = None) -> List[Candidate]:
        """
        Deterministic candidate filter for one item, in insertion order.

        The full name is tried first; its words (3+ letters) only when the
        full name finds nothing. Records whose name contains one of the
        item's negative descriptors are excluded.
        """
        limit = limit or self.candidates_per_item
        try:
            queryset = InventoryRecord.objects.filter(store_id=store_id)
            if item.unit_of_measurement:
                queryset = queryset.filter(unit_of_measurement__iexact=item.unit_of_measurement)
            if item.unit_size:
                queryset = queryset.filter(unit_size__iexact=item.unit_size)
            for descriptor in item.negative_descriptors:
                queryset = queryset.exclude(name__icontains=descriptor)
            queryset = queryset.order_by("first_seen_at", "id")

            records = list(queryset.filter(name__icontains=item.name)[:limit])
            if not records:
                words = WORD_PATTERN.findall(item.name)
                if words:
                    condition = Q()
                    for word in words:
                        condition |= Q(name__icontains=word)
                    records = list(queryset.filter(condition)[:limit])
        except DatabaseError as e:
            logger.error(f"Inventory query failed for store {store_id}: {e}")
            raise MatchingFailed(f"Inventory query failed for store {store_id}") from e

        return [Candidate.from_record(record) for record in records]

    def _resolve_chunk(self, store_id: str, chunk: List[DesiredItem]) -> List[ResolvedMatch]:
        resolved: Dict[int, ResolvedMatch] = {}
        ambiguous: List[int] = []
        pool: Dict[str, Candidate] = {}
        item_candidates: Dict[int, List[str]] = {}

        for index, item in enumerate(chunk):
            candidates = self.find_candidates(store_id, item)
            if not candidates:
                logger.debug(f"No inventory candidates for '{item.name}'")
            elif len(candidates) == 1:
                candidate = candidates[0]
                resolved[index] = ResolvedMatch(item, candidate.record, item.quantity)
            else:
                ambiguous.append(index)
                item_candidates[index] = [candidate.id for candidate in candidates]
                for candidate in candidates:
                    if len(pool) >= self.candidate_limit:
                        break
                    pool.setdefault(candidate.id, candidate)

        if ambiguous and pool:
            answered = self._disambiguate(chunk, ambiguous, pool, item_candidates, resolved)
            resolved.update(answered)

        return [resolved[index] for index in sorted(resolved)]

    def _disambiguate(
        self,
        chunk: List[DesiredItem],
        ambiguous: List[int],
        pool: Dict[str, Candidate],
        item_candidates: Dict[int, List[str]],
        already_resolved: Dict[int, ResolvedMatch],
    ) -> Dict[int, ResolvedMatch]:
        prompt = build_prompt([chunk[index] for index in ambiguous], list(pool.values()))
        try:
            answers = async_to_sync(self.reasoning_client.resolve)(prompt)
        except (ReasoningUnavailable, ReasoningMalformed) as e:
            logger.warning(
                f"Reasoning failed for {len(ambiguous)} ambiguous items, leaving them unmatched: {e}"
            )
            return {}

        return self._reassemble(chunk, ambiguous, pool, item_candidates, answers, already_resolved)

    def _reassemble(
        self,
        chunk: List[DesiredItem],
        ambiguous: List[int],
        pool: Dict[str, Candidate],
        item_candidates: Dict[int, List[str]],
        answers: List[ReasoningMatch],
        already_resolved: Dict[int, ResolvedMatch],
    ) -> Dict[int, ResolvedMatch]:
        """Join reasoning answers back to records, one per item and per id."""
        wanted_ids = [answer.id for answer in answers if answer.id in pool]
        try:
            # Records may have disappeared since the candidate query
            current = InventoryRecord.objects.in_bulk(wanted_ids)
        except DatabaseError as e:
            raise MatchingFailed("Inventory query failed while joining matches") from e
        current = {str(pk): record for pk, record in current.items()}

        open_items = list(ambiguous)
        used_ids = {str(match.record.pk) for match in already_resolved.values()}
        joined: Dict[int, ResolvedMatch] = {}

        for answer in answers:
            if answer.id not in pool:
                logger.debug(f"Dropping reasoning match with unknown id {answer.id}")
                continue
            record = current.get(answer.id)
            if record is None or answer.id in used_ids:
                continue

            index = self._attribute(chunk, open_items, item_candidates, answer)
            if index is None:
                continue

            item = chunk[index]
            quantity = answer.adjusted_quantity if answer.adjusted_quantity is not None else item.quantity
            joined[index] = ResolvedMatch(item, record, quantity)
            open_items.remove(index)
            used_ids.add(answer.id)

        return joined

    @staticmethod
    def _attribute(
        chunk: List[DesiredItem],
        open_items: List[int],
        item_candidates: Dict[int, List[str]],
        answer: ReasoningMatch,
    ) -> Optional[int]:
        """
        Open item an answer belongs to.

        An answer naming an item of the chunk belongs to that item (None once
        it is resolved). Otherwise it goes to the first open item that was
        offered its id.
        """
        search_item = answer.search_item.strip().lower()
        if search_item:
            named = [i for i, item in enumerate(chunk) if item.name.strip().lower() == search_item]
            if named:
                return next((i for i in named if i in open_items), None)
        for index in open_items:
            if answer.id in item_candidates.get(index, ()):
                return index
        return None

    def _persist(self, store_id: str, influencer_id: str, matches: List[ResolvedMatch]) -> MatchSet:
        try:
            match_set, created = MatchSet.objects.update_or_create(
                store_id=store_id,
                influencer_id=influencer_id,
                defaults={"matches": [match.to_dict() for match in matches]},
            )
        except DatabaseError as e:
            logger.error(f"Failed to save match set for {influencer_id} at {store_id}: {e}")
            raise MatchingFailed("Failed to save match set") from e

        logger.debug(f"{'Created' if created else 'Replaced'} match set {match_set.pk}")
        return match_set


def get_match_set(store_id: str, influencer_id: str) -> Optional[MatchSet]:
    """Stored match set for (store, influencer), or None."""
    return MatchSet.objects.filter(store_id=store_id, influencer_id=influencer_id).first()
