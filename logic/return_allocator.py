"""Oldest-first allocation of a bulk return across open batches.

A single return document from the laundry usually covers linen from several
shipments at once and nobody records which piece belonged to which batch.
Returned quantities are therefore matched against in-transit batches in the
order they were sent, category by category, until either the return or the
outstanding quantity runs out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Sequence

from laundry_app.logging_config import get_logger, log_event
from logic.lifecycle import apply_partial_return
from models.batch import BatchStatus, LaundryBatch
from models.laundry_items import LaundryItems, empty_items, has_positive
from models.taxonomy import CATEGORIES

LOGGER = get_logger(__name__)
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class UnmatchedReturn:
    """Returned quantity that no open shipment was still owed."""

    category: str
    quantity: int


@dataclass
class AllocationResult:
    """Outcome of one bulk return.

    ``batches`` is the full batch list with the allocated batches replaced, in
    the original order. ``allocations`` maps each batch that received items
    to the vector credited to it in this call.
    """

    batches: List[LaundryBatch]
    allocations: Dict[str, LaundryItems] = field(default_factory=dict)
    completed_batch_ids: List[str] = field(default_factory=list)
    unmatched: List[UnmatchedReturn] = field(default_factory=list)

    @property
    def has_unmatched(self) -> bool:
        return bool(self.unmatched)

    @property
    def unmatched_items(self) -> LaundryItems:
        items = empty_items()
        for entry in self.unmatched:
            items[entry.category] += entry.quantity
        return items


def _sent_key(batch: LaundryBatch) -> datetime:
    sent = batch.sent_date or _EPOCH
    if sent.tzinfo is None:
        sent = sent.replace(tzinfo=timezone.utc)
    return sent


def allocation_order(batches: Sequence[LaundryBatch]) -> List[LaundryBatch]:
    """In-transit batches, oldest shipment first; ties keep list order."""

    open_batches = [batch for batch in batches if batch.status is BatchStatus.IN_TRANSIT]
    return sorted(open_batches, key=_sent_key)


def allocate_bulk_return(
    batches: Sequence[LaundryBatch],
    returned_items: Mapping[str, int],
    return_image_url: str,
    now: datetime,
) -> AllocationResult:
    """Distribute ``returned_items`` over every open batch, oldest first."""

    remaining: LaundryItems = {category: returned_items.get(category, 0) or 0 for category in CATEGORIES}
    updated: Dict[str, LaundryBatch] = {}
    result = AllocationResult(batches=[])

    for batch in allocation_order(batches):
        previously_returned = batch.returned_so_far
        allocated = empty_items()
        for category in CATEGORIES:
            still_needed = batch.total_items[category] - previously_returned[category]
            if still_needed > 0 and remaining[category] > 0:
                take = min(still_needed, remaining[category])
                allocated[category] = take
                remaining[category] -= take

        if not has_positive(allocated):
            continue

        reconciled = apply_partial_return(batch, allocated, return_image_url, now)
        updated[batch.batch_id] = reconciled
        result.allocations[batch.batch_id] = allocated
        if reconciled.status is BatchStatus.COMPLETED:
            result.completed_batch_ids.append(batch.batch_id)

    result.batches = [updated.get(batch.batch_id, batch) for batch in batches]
    result.unmatched = [
        UnmatchedReturn(category=category, quantity=remaining[category])
        for category in CATEGORIES
        if remaining[category] > 0
    ]

    log_event(
        LOGGER,
        logging.INFO,
        "bulk_return_allocated",
        batches_credited=len(result.allocations),
        batches_completed=len(result.completed_batch_ids),
        unmatched_quantity=sum(entry.quantity for entry in result.unmatched),
    )
    return result


__all__ = ["UnmatchedReturn", "AllocationResult", "allocation_order", "allocate_bulk_return"]
