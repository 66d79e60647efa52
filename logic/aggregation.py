"""Aggregation of pending sheets into batches."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Mapping, Optional, Sequence

from logic.lifecycle import InvalidTransitionError, is_editable
from models.batch import BatchStatus, LaundryBatch, UploadedSheet
from models.laundry_items import sum_items, validate_items
from models.pricing import PricingConfig, batch_total_cost


def new_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex[:12]}"


def create_batch(
    pending_sheets: Sequence[UploadedSheet],
    pricing: PricingConfig,
    collection_fee: float,
    now: datetime,
    notes: Optional[str] = None,
    batch_id: Optional[str] = None,
) -> LaundryBatch:
    """Fold sheets into a new ``pending`` batch with totals and stamped cost.

    An empty sequence yields an all-zero batch; refusing that is up to the
    caller. Sheets are embedded as-is since they are frozen.
    """

    total_items = sum_items(sheet.items for sheet in pending_sheets)
    return LaundryBatch(
        batch_id=batch_id or new_batch_id(),
        status=BatchStatus.PENDING,
        sheets=tuple(pending_sheets),
        total_items=total_items,
        collection_fee=float(collection_fee),
        total_cost=batch_total_cost(total_items, pricing, collection_fee),
        created_at=now,
        updated_at=now,
        notes=notes,
    )


def update_batch(
    batch: LaundryBatch,
    items: Mapping[str, int],
    pricing: PricingConfig,
    collection_fee: float,
    now: datetime,
    notes: Optional[str] = None,
) -> LaundryBatch:
    """Replace the totals of a pending batch and re-stamp its cost.

    The embedded sheets are left untouched.
    """

    if not is_editable(batch):
        raise InvalidTransitionError(batch, batch.status, "edit")
    total_items = validate_items(dict(items))
    return replace(
        batch,
        total_items=total_items,
        collection_fee=float(collection_fee),
        total_cost=batch_total_cost(total_items, pricing, collection_fee),
        notes=notes,
        updated_at=now,
    )


__all__ = ["create_batch", "update_batch", "new_batch_id"]
