"""Batch state machine transitions."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from logic import lifecycle
from logic.aggregation import create_batch, update_batch
from logic.lifecycle import InvalidTransitionError
from models.batch import BatchStatus, UploadedSheet
from models.laundry_items import coerce_items
from models.pricing import default_pricing

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _pending_batch(**counts: int):
    sheet = UploadedSheet(sheet_id="s1", date=T0, image_url="", items=coerce_items(counts), uploaded_at=T0)
    return create_batch([sheet], default_pricing(), 150.0, T0)


def test_every_status_has_a_transition_entry() -> None:
    assert set(lifecycle.TRANSITIONS) == set(BatchStatus)
    assert lifecycle.can_transition(BatchStatus.PENDING, BatchStatus.IN_TRANSIT)
    assert not lifecycle.can_transition(BatchStatus.COMPLETED, BatchStatus.PENDING)
    assert not lifecycle.can_transition(BatchStatus.RECEIVED, BatchStatus.IN_TRANSIT)


def test_mark_sent_stamps_sender_and_dates() -> None:
    batch = _pending_batch(l_casal=5)
    sent_at = T0 + timedelta(hours=2)

    sent = lifecycle.mark_sent(batch, "  Maria ", sent_at, expected_return_date=date(2024, 3, 4))

    assert sent.status is BatchStatus.IN_TRANSIT
    assert sent.sent_by == "Maria"
    assert sent.sent_date == sent_at
    assert sent.updated_at == sent_at
    assert sent.expected_return_date == date(2024, 3, 4)
    assert batch.status is BatchStatus.PENDING


def test_mark_sent_requires_a_sender_and_a_pending_batch() -> None:
    batch = _pending_batch(l_casal=1)
    with pytest.raises(ValueError):
        lifecycle.mark_sent(batch, "   ", T0)

    sent = lifecycle.mark_sent(batch, "Maria", T0)
    with pytest.raises(InvalidTransitionError) as excinfo:
        lifecycle.mark_sent(sent, "Maria", T0)
    assert excinfo.value.current is BatchStatus.IN_TRANSIT


def test_single_return_records_shortage_and_receives_batch() -> None:
    sent = lifecycle.mark_sent(_pending_batch(l_casal=5), "Maria", T0)
    returned_at = T0 + timedelta(days=2)

    received = lifecycle.record_return(sent, coerce_items({"l_casal": 3}), "data:image/png;base64,AAAA", returned_at)

    assert received.status is BatchStatus.RECEIVED
    assert received.returned_date == returned_at
    assert received.return_image_url == "data:image/png;base64,AAAA"
    assert [(d.category, d.sent, d.received, d.difference) for d in received.discrepancies] == [
        ("l_casal", 5, 3, -2)
    ]
    assert not received.over_return_flagged


def test_over_return_is_flagged() -> None:
    sent = lifecycle.mark_sent(_pending_batch(fronha=2), "Maria", T0)

    received = lifecycle.record_return(sent, coerce_items({"fronha": 3}), "", T0)

    assert received.over_return_flagged
    assert received.discrepancies[0].difference == 1


def test_record_return_requires_batch_in_transit() -> None:
    with pytest.raises(InvalidTransitionError):
        lifecycle.record_return(_pending_batch(fronha=1), coerce_items({"fronha": 1}), "", T0)


def test_partial_return_keeps_first_return_date_and_accumulates() -> None:
    sent = lifecycle.mark_sent(_pending_batch(t_banho=10), "Maria", T0)
    first = T0 + timedelta(days=1)
    second = T0 + timedelta(days=2)

    partial = lifecycle.apply_partial_return(sent, coerce_items({"t_banho": 6}), "r1", first)
    assert partial.status is BatchStatus.IN_TRANSIT
    assert partial.returned_items["t_banho"] == 6
    assert partial.outstanding_items["t_banho"] == 4

    done = lifecycle.apply_partial_return(partial, coerce_items({"t_banho": 4}), "r2", second)
    assert done.status is BatchStatus.COMPLETED
    assert done.returned_items["t_banho"] == 10
    assert done.returned_date == first
    assert done.discrepancies == []
    assert done.return_image_url == "r2"


def test_mark_completed_is_allowed_from_any_state() -> None:
    pending = _pending_batch(sala=1)
    sent = lifecycle.mark_sent(pending, "Maria", T0)
    received = lifecycle.record_return(sent, coerce_items({}), "", T0)

    for batch in (pending, sent, received):
        assert lifecycle.mark_completed(batch, T0).status is BatchStatus.COMPLETED


def test_only_pending_batches_can_be_edited() -> None:
    pending = _pending_batch(l_casal=2)

    edited = update_batch(pending, coerce_items({"l_casal": 4}), default_pricing(), 100.0, T0, notes="recount")
    assert edited.total_items["l_casal"] == 4
    assert edited.total_cost == pytest.approx(110.0)
    assert edited.notes == "recount"
    assert edited.sheets == pending.sheets

    sent = lifecycle.mark_sent(edited, "Maria", T0)
    assert not lifecycle.is_editable(sent)
    with pytest.raises(InvalidTransitionError):
        update_batch(sent, coerce_items({"l_casal": 1}), default_pricing(), 100.0, T0)
