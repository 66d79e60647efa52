"""Floor stock records and the inventory event log entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from models.laundry_items import LaundryItems


class InventoryEventType(str, Enum):
    ADJUSTMENT = "adjustment"
    DAMAGE = "damage"
    LOSS = "loss"
    RETURN = "return"


@dataclass(frozen=True)
class FloorInventory:
    """Physical stock held on one floor, replaced wholesale on every edit."""

    floor: str
    items: LaundryItems
    last_updated: datetime


@dataclass(frozen=True)
class InventoryEvent:
    """Immutable log entry for one stock-affecting occurrence.

    ``quantity`` is signed: positive adds to stock (a counted return),
    negative removes it (damage, loss).
    """

    event_id: str
    date: datetime
    event_type: InventoryEventType
    category: str
    quantity: int
    floor: Optional[str] = None
    reason: Optional[str] = None
    batch_id: Optional[str] = None


__all__ = ["InventoryEventType", "FloorInventory", "InventoryEvent"]
