"""Floor stock and hotel-wide totals.

Floor records are replaced wholesale, events are only ever appended, and the
in-transit figure is derived from batch state rather than stored.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Mapping, Optional, Sequence

from models.batch import BatchStatus, LaundryBatch
from models.inventory import FloorInventory, InventoryEvent, InventoryEventType
from models.laundry_items import LaundryItems, empty_items, sum_items, validate_items
from models.taxonomy import validate_category


def replace_floor_stock(
    floors: Sequence[FloorInventory],
    floor: str,
    items: Mapping[str, int],
    now: datetime,
) -> List[FloorInventory]:
    """Return the floor list with ``floor`` holding exactly ``items``.

    A floor seen for the first time is appended; an existing one keeps its
    position.
    """

    floor_name = (floor or "").strip()
    if not floor_name:
        raise ValueError("Floor name is required")
    record = FloorInventory(floor=floor_name, items=validate_items(dict(items)), last_updated=now)
    updated: List[FloorInventory] = []
    replaced = False
    for existing in floors:
        if existing.floor == floor_name:
            updated.append(record)
            replaced = True
        else:
            updated.append(existing)
    if not replaced:
        updated.append(record)
    return updated


def find_floor(floors: Sequence[FloorInventory], floor: str) -> Optional[FloorInventory]:
    return next((record for record in floors if record.floor == floor), None)


def new_event(
    event_type: InventoryEventType | str,
    category: str,
    quantity: int,
    now: datetime,
    floor: Optional[str] = None,
    reason: Optional[str] = None,
    batch_id: Optional[str] = None,
) -> InventoryEvent:
    """Build a validated event; quantity is signed and may not be zero."""

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity == 0:
        raise ValueError("Event quantity must be a non-zero integer")
    return InventoryEvent(
        event_id=f"event_{uuid.uuid4().hex[:12]}",
        date=now,
        event_type=InventoryEventType(event_type),
        category=validate_category(category),
        quantity=quantity,
        floor=floor,
        reason=reason,
        batch_id=batch_id,
    )


def total_inventory(floors: Sequence[FloorInventory]) -> LaundryItems:
    """Linen physically present at the hotel."""

    return sum_items(record.items for record in floors)


def in_transit_totals(batches: Sequence[LaundryBatch]) -> LaundryItems:
    """Linen still owed by the laundry, net of partial returns already credited."""

    owed = empty_items()
    for batch in batches:
        if batch.status is not BatchStatus.IN_TRANSIT:
            continue
        outstanding = batch.outstanding_items
        for category, quantity in outstanding.items():
            owed[category] += quantity
    return owed


def grand_total(floors: Sequence[FloorInventory], batches: Sequence[LaundryBatch]) -> LaundryItems:
    return sum_items([total_inventory(floors), in_transit_totals(batches)])


__all__ = [
    "replace_floor_stock",
    "find_floor",
    "new_event",
    "total_inventory",
    "in_transit_totals",
    "grand_total",
]
