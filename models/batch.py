"""Sheets, batches and discrepancies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from models.laundry_items import LaundryItems, clamp_non_negative, empty_items, subtract_items
from models.taxonomy import CATEGORIES


class BatchStatus(str, Enum):
    """Lifecycle states of a shipment to the laundry."""

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    COMPLETED = "completed"


@dataclass(frozen=True)
class UploadedSheet:
    """One photographed collection sheet accepted by a reviewer."""

    sheet_id: str
    date: datetime
    image_url: str
    items: LaundryItems
    uploaded_at: datetime
    floor: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Discrepancy:
    """Per-category mismatch between what was sent and what came back."""

    category: str
    sent: int
    received: int
    difference: int

    @property
    def is_shortage(self) -> bool:
        return self.difference < 0


def calculate_discrepancies(sent: Mapping[str, int], received: Mapping[str, int]) -> List[Discrepancy]:
    """One entry per category where the counts differ, in category order."""

    discrepancies: List[Discrepancy] = []
    for category in CATEGORIES:
        sent_qty = sent.get(category, 0) or 0
        received_qty = received.get(category, 0) or 0
        if sent_qty != received_qty:
            discrepancies.append(
                Discrepancy(
                    category=category,
                    sent=sent_qty,
                    received=received_qty,
                    difference=received_qty - sent_qty,
                )
            )
    return discrepancies


@dataclass(frozen=True)
class LaundryBatch:
    """A shipment unit aggregating one or more sheets.

    Instances are never mutated in place; every lifecycle step produces a new
    batch through :func:`dataclasses.replace`.
    """

    batch_id: str
    status: BatchStatus
    sheets: Tuple[UploadedSheet, ...]
    total_items: LaundryItems
    collection_fee: float
    total_cost: float
    created_at: datetime
    updated_at: datetime
    sent_date: Optional[datetime] = None
    sent_by: Optional[str] = None
    expected_return_date: Optional[date] = None
    returned_date: Optional[datetime] = None
    returned_items: Optional[LaundryItems] = None
    return_image_url: Optional[str] = None
    discrepancies: Optional[List[Discrepancy]] = None
    over_return_flagged: bool = False
    notes: Optional[str] = None

    @property
    def returned_so_far(self) -> LaundryItems:
        return dict(self.returned_items) if self.returned_items is not None else empty_items()

    @property
    def outstanding_items(self) -> LaundryItems:
        """Quantity still owed by the laundry for this batch."""

        return clamp_non_negative(subtract_items(self.total_items, self.returned_so_far))

    @property
    def floors(self) -> List[str]:
        seen: Dict[str, None] = {}
        for sheet in self.sheets:
            if sheet.floor:
                seen.setdefault(sheet.floor, None)
        return list(seen)

    @property
    def has_return_data(self) -> bool:
        return self.returned_items is not None and self.discrepancies is not None


__all__ = [
    "BatchStatus",
    "UploadedSheet",
    "Discrepancy",
    "LaundryBatch",
    "calculate_discrepancies",
]
