"""Batch lifecycle state machine.

Every transition is a pure function from one :class:`LaundryBatch` to the
next; the store decides when to call them and persists the result. The
transition table below must name every :class:`BatchStatus`, which is
checked when the module is imported.

* ``pending -> in_transit`` via :func:`mark_sent`
* ``in_transit -> received`` via :func:`record_return`
* ``in_transit -> in_transit | completed`` via :func:`apply_partial_return`
* ``any -> completed`` via :func:`mark_completed`
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Dict, FrozenSet, Mapping, Optional

from models.batch import BatchStatus, LaundryBatch, calculate_discrepancies
from models.laundry_items import sum_items, validate_items

TRANSITIONS: Dict[BatchStatus, FrozenSet[BatchStatus]] = {
    BatchStatus.PENDING: frozenset({BatchStatus.IN_TRANSIT, BatchStatus.COMPLETED}),
    BatchStatus.IN_TRANSIT: frozenset(
        {BatchStatus.IN_TRANSIT, BatchStatus.RECEIVED, BatchStatus.COMPLETED}
    ),
    BatchStatus.RECEIVED: frozenset({BatchStatus.COMPLETED}),
    BatchStatus.COMPLETED: frozenset({BatchStatus.COMPLETED}),
}

_missing_states = set(BatchStatus) - set(TRANSITIONS)
if _missing_states:
    raise RuntimeError(f"Transition table does not cover {sorted(s.value for s in _missing_states)}")


class InvalidTransitionError(ValueError):
    """Raised when a batch is asked to move to a state its status forbids."""

    def __init__(self, batch: LaundryBatch, target: BatchStatus, action: str) -> None:
        self.batch_id = batch.batch_id
        self.current = batch.status
        self.target = target
        super().__init__(
            f"Cannot {action} batch {batch.batch_id}: status '{batch.status.value}' "
            f"does not allow '{target.value}'"
        )


def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
    return target in TRANSITIONS[current]


def _require(batch: LaundryBatch, target: BatchStatus, action: str) -> None:
    if not can_transition(batch.status, target):
        raise InvalidTransitionError(batch, target, action)


def is_editable(batch: LaundryBatch) -> bool:
    """Totals may only be edited before the batch leaves the hotel."""

    return batch.status is BatchStatus.PENDING


def mark_sent(
    batch: LaundryBatch,
    sent_by: str,
    now: datetime,
    expected_return_date: Optional[date] = None,
) -> LaundryBatch:
    """Move a pending batch in transit, stamping who sent it and when."""

    sender = (sent_by or "").strip()
    if not sender:
        raise ValueError("A sender name is required to mark a batch as sent")
    _require(batch, BatchStatus.IN_TRANSIT, "send")
    return replace(
        batch,
        status=BatchStatus.IN_TRANSIT,
        sent_date=now,
        sent_by=sender,
        expected_return_date=expected_return_date,
        updated_at=now,
    )


def record_return(
    batch: LaundryBatch,
    returned_items: Mapping[str, int],
    return_image_url: str,
    now: datetime,
) -> LaundryBatch:
    """Close a batch against a single return document.

    The batch becomes ``received`` whatever the discrepancies are; they are
    informational. Returning more than was sent raises the over-return flag.
    """

    _require(batch, BatchStatus.RECEIVED, "record a return for")
    returned = validate_items(dict(returned_items))
    discrepancies = calculate_discrepancies(batch.total_items, returned)
    return replace(
        batch,
        status=BatchStatus.RECEIVED,
        returned_items=returned,
        return_image_url=return_image_url,
        returned_date=now,
        discrepancies=discrepancies,
        over_return_flagged=any(d.difference > 0 for d in discrepancies),
        updated_at=now,
    )


def apply_partial_return(
    batch: LaundryBatch,
    allocated: Mapping[str, int],
    return_image_url: str,
    now: datetime,
) -> LaundryBatch:
    """Accumulate one allocation round onto an in-transit batch.

    The first-return timestamp survives later rounds. The batch completes once
    cumulative returns match what was sent in every category.
    """

    new_total_returned = sum_items([batch.returned_so_far, allocated])
    discrepancies = calculate_discrepancies(batch.total_items, new_total_returned)
    target = BatchStatus.IN_TRANSIT if discrepancies else BatchStatus.COMPLETED
    _require(batch, target, "allocate returned items to")
    return replace(
        batch,
        status=target,
        returned_items=new_total_returned,
        return_image_url=return_image_url,
        returned_date=batch.returned_date or now,
        discrepancies=discrepancies,
        updated_at=now,
    )


def mark_completed(batch: LaundryBatch, now: datetime) -> LaundryBatch:
    """Manual closure, e.g. after a discrepancy was settled out of band."""

    _require(batch, BatchStatus.COMPLETED, "complete")
    return replace(batch, status=BatchStatus.COMPLETED, updated_at=now)


__all__ = [
    "TRANSITIONS",
    "InvalidTransitionError",
    "can_transition",
    "is_editable",
    "mark_sent",
    "record_return",
    "apply_partial_return",
    "mark_completed",
]
