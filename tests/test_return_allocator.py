"""Oldest-first allocation of bulk returns."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from logic import lifecycle
from logic.aggregation import create_batch
from logic.return_allocator import allocate_bulk_return, allocation_order
from models.batch import BatchStatus, UploadedSheet
from models.laundry_items import coerce_items
from models.pricing import default_pricing

DAY1 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
DAY2 = DAY1 + timedelta(days=1)
RETURN_AT = DAY1 + timedelta(days=3)


def _sent_batch(batch_id: str, sent_at, **counts: int):
    sheet = UploadedSheet(
        sheet_id=f"{batch_id}-s", date=DAY1, image_url="", items=coerce_items(counts), uploaded_at=DAY1
    )
    batch = create_batch([sheet], default_pricing(), 150.0, DAY1, batch_id=batch_id)
    return lifecycle.mark_sent(batch, "Maria", sent_at)


def test_bulk_return_of_eight_closes_older_batch_first() -> None:
    batch_b = _sent_batch("B", DAY2, l_casal=6)
    batch_a = _sent_batch("A", DAY1, l_casal=4)

    result = allocate_bulk_return([batch_b, batch_a], coerce_items({"l_casal": 8}), "bulk", RETURN_AT)

    updated = {batch.batch_id: batch for batch in result.batches}
    assert [batch.batch_id for batch in result.batches] == ["B", "A"]
    assert updated["A"].status is BatchStatus.COMPLETED
    assert updated["A"].returned_items["l_casal"] == 4
    assert updated["B"].status is BatchStatus.IN_TRANSIT
    assert updated["B"].returned_items["l_casal"] == 4
    assert updated["B"].outstanding_items["l_casal"] == 2
    assert result.allocations == {"A": coerce_items({"l_casal": 4}), "B": coerce_items({"l_casal": 4})}
    assert result.completed_batch_ids == ["A"]
    assert not result.has_unmatched


def test_return_smaller_than_oldest_debt_leaves_newer_batch_untouched() -> None:
    batch_a = _sent_batch("A", DAY1, fronha=5)
    batch_b = _sent_batch("B", DAY2, fronha=5)

    result = allocate_bulk_return([batch_a, batch_b], coerce_items({"fronha": 5}), "bulk", RETURN_AT)

    updated = {batch.batch_id: batch for batch in result.batches}
    assert updated["A"].status is BatchStatus.COMPLETED
    assert updated["B"] is batch_b
    assert updated["B"].returned_items is None
    assert "B" not in result.allocations


def test_successive_bulk_returns_accumulate() -> None:
    batch = _sent_batch("A", DAY1, t_banho=10, t_rosto=4)

    first = allocate_bulk_return([batch], coerce_items({"t_banho": 6, "t_rosto": 4}), "r1", DAY2)
    after_first = first.batches[0]
    assert after_first.status is BatchStatus.IN_TRANSIT
    assert after_first.returned_items["t_banho"] == 6

    second = allocate_bulk_return(first.batches, coerce_items({"t_banho": 4}), "r2", RETURN_AT)
    done = second.batches[0]
    assert done.status is BatchStatus.COMPLETED
    assert done.returned_items == coerce_items({"t_banho": 10, "t_rosto": 4})
    assert done.returned_date == DAY2


def test_only_in_transit_batches_are_candidates() -> None:
    pending = create_batch(
        [UploadedSheet(sheet_id="p", date=DAY1, image_url="", items=coerce_items({"box": 3}), uploaded_at=DAY1)],
        default_pricing(),
        150.0,
        DAY1,
        batch_id="P",
    )
    received = lifecycle.record_return(_sent_batch("R", DAY1, box=3), coerce_items({"box": 1}), "", DAY2)

    result = allocate_bulk_return([pending, received], coerce_items({"box": 2}), "bulk", RETURN_AT)

    assert result.batches == [pending, received]
    assert result.unmatched_items["box"] == 2


def test_unmatched_leftover_is_reported_not_absorbed() -> None:
    # Leftover is surfaced on the result; booking it into stock is an
    # application decision (see ReturnIntakeAgent and record_unmatched_returns).
    batch = _sent_batch("A", DAY1, colcha=2)

    result = allocate_bulk_return([batch], coerce_items({"colcha": 5, "sala": 1}), "bulk", RETURN_AT)

    assert result.batches[0].status is BatchStatus.COMPLETED
    assert result.batches[0].returned_items["colcha"] == 2
    assert {(entry.category, entry.quantity) for entry in result.unmatched} == {("colcha", 3), ("sala", 1)}


def test_allocation_order_treats_naive_and_missing_dates_consistently() -> None:
    naive_late = _sent_batch("late", DAY2.replace(tzinfo=None), piso=1)
    aware_early = _sent_batch("early", DAY1, piso=1)
    undated = _sent_batch("undated", DAY1, piso=1)
    undated = replace(undated, sent_date=None)

    ordered = allocation_order([naive_late, aware_early, undated])

    assert [batch.batch_id for batch in ordered] == ["undated", "early", "late"]
