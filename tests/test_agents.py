"""Workflow agents wired through the app: stock movements and conservation."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict

import pytest

from laundry_app.app import LaundryControlApp
from laundry_app.config import LaundryConfig
from memory.state_store import JSONStateStore
from models.batch import BatchStatus
from models.laundry_items import coerce_items
from tools.count_extraction import CountExtractor, ExtractionError, ExtractionResult
from tools.image_loader import LoadedImage

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
PHOTO = "data:image/jpeg;base64," + base64.b64encode(b"sheet").decode("ascii")


class _Clock:
    def __init__(self) -> None:
        self.now = START

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now += timedelta(days=days, hours=hours)

    def __call__(self) -> datetime:
        return self.now


class _StaticExtractor(CountExtractor):
    source = "static"

    def __init__(self, counts: Dict[str, int] | None = None, fail: bool = False) -> None:
        self.counts = counts or {}
        self.fail = fail
        self.images = []

    def extract(self, image: LoadedImage) -> ExtractionResult:
        self.images.append(image)
        if self.fail:
            raise ExtractionError("Could not process the image with Gemini: offline")
        return ExtractionResult(items=coerce_items(self.counts), source=self.source)


def _build(tmp_path: Path, clock: _Clock, **config_overrides) -> LaundryControlApp:
    config = LaundryConfig(state_store_path=str(tmp_path), **config_overrides)
    return LaundryControlApp(
        config=config,
        state_store=JSONStateStore(tmp_path, max_bytes=config.storage_max_bytes),
        extractor=_StaticExtractor({"l_casal": 3}),
        clock=clock,
    )


@pytest.fixture()
def clock() -> _Clock:
    return _Clock()


@pytest.fixture()
def app(tmp_path: Path, clock: _Clock) -> LaundryControlApp:
    return _build(tmp_path, clock)


def _ship(app: LaundryControlApp, clock: _Clock, floor: str | None, **counts: int) -> str:
    app.sheet_intake.accept_sheet(items=counts, floor=floor, image_url=PHOTO)
    batch_id = app.dispatch.create_batch()["batch"]["id"]
    response = app.dispatch.send_batch(batch_id=batch_id, sent_by="Maria")
    assert response["status"] == "sent"
    clock.advance(hours=1)
    return batch_id


def test_process_image_returns_draft_for_review(app: LaundryControlApp) -> None:
    draft = app.sheet_intake.process_image(PHOTO)

    assert draft["status"] == "draft"
    assert draft["items"]["l_casal"] == 3
    assert draft["needs_attention"] is False
    assert app.extractor.images[0].data == b"sheet"
    assert app.store.state.pending_sheets == ()


def test_process_image_reports_readable_errors(tmp_path: Path, clock: _Clock) -> None:
    app = LaundryControlApp(
        config=LaundryConfig(state_store_path=str(tmp_path)),
        state_store=JSONStateStore(tmp_path),
        extractor=_StaticExtractor(fail=True),
        clock=clock,
    )

    assert app.sheet_intake.process_image(PHOTO) == {
        "status": "error",
        "message": "Could not process the image with Gemini: offline",
    }
    assert app.sheet_intake.process_image(str(tmp_path / "nope.jpg"))["status"] == "error"


def test_accept_sheet_validates_and_files_pending_sheet(app: LaundryControlApp) -> None:
    accepted = app.sheet_intake.accept_sheet(items={"L. Casal": 2, "fronha": "3"}, floor=" 4 ", notes="  ")

    assert accepted["status"] == "pending"
    assert accepted["sheet"]["floor"] == "4"
    assert accepted["sheet"]["notes"] is None
    assert app.store.state.pending_sheets[0].items == coerce_items({"l_casal": 2, "fronha": 3})

    rejected = app.sheet_intake.accept_sheet(items={"cortina": 1})
    assert rejected["status"] == "needs_review"
    assert rejected["details"]


def test_accept_sheet_reports_full_storage(tmp_path: Path, clock: _Clock) -> None:
    app = _build(tmp_path, clock, storage_max_bytes=1200)

    responses = [app.sheet_intake.accept_sheet(items={"fronha": 1}, image_url=PHOTO) for _ in range(10)]

    assert responses[0]["status"] == "pending"
    assert responses[-1]["status"] == "storage_full"
    assert "Create a batch" in responses[-1]["message"]


def test_create_batch_refuses_an_empty_pool(app: LaundryControlApp) -> None:
    assert app.dispatch.create_batch()["status"] == "empty"
    assert app.store.state.batches == ()


def test_send_batch_validates_sender_and_renders_requisition(app: LaundryControlApp) -> None:
    app.sheet_intake.accept_sheet(items={"t_banho": 4}, floor="2")
    batch_id = app.dispatch.create_batch(notes="weekly")["batch"]["id"]

    blank = app.dispatch.send_batch(batch_id=batch_id, sent_by="   ")
    assert blank["status"] == "needs_review"
    assert app.store.get_batch(batch_id).status is BatchStatus.PENDING

    sent = app.dispatch.send_batch(batch_id=batch_id, sent_by="Maria")
    assert sent["status"] == "sent"
    assert "LAUNDRY REQUISITION" in sent["document"]
    assert sent["stock_shortfalls"] == {"2": {"t_banho": 4}}

    again = app.dispatch.send_batch(batch_id=batch_id, sent_by="Maria")
    assert again["status"] == "invalid_transition"
    assert app.dispatch.send_batch(batch_id="batch_missing", sent_by="Maria")["status"] == "not_found"


def test_update_batch_only_while_pending(app: LaundryControlApp) -> None:
    app.sheet_intake.accept_sheet(items={"colcha": 2})
    batch_id = app.dispatch.create_batch()["batch"]["id"]

    updated = app.dispatch.update_batch(batch_id, {"colcha": 3}, collection_fee=0)
    assert updated["status"] == "updated"
    assert updated["batch"]["total_cost"] == pytest.approx(12.0)

    app.dispatch.send_batch(batch_id=batch_id, sent_by="Maria")
    assert app.dispatch.update_batch(batch_id, {"colcha": 1})["status"] == "not_editable"


def test_conservation_across_send_and_bulk_returns(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("1", {"l_casal": 10, "fronha": 6})
    app.inventory.set_floor_stock("2", {"l_casal": 8})
    before = app.store.grand_total()

    batch_a = _ship(app, clock, "1", l_casal=4, fronha=2)
    batch_b = _ship(app, clock, "2", l_casal=6)
    assert app.store.grand_total() == before
    assert app.store.get_floor_inventory("1").items["l_casal"] == 6

    response = app.return_intake.record_bulk_return({"l_casal": 8, "fronha": 2}, PHOTO)
    assert response["completed_batch_ids"] == [batch_a]
    assert response["unmatched"] == {}
    assert app.store.grand_total() == before
    assert app.store.get_floor_inventory("Rouparia").items["l_casal"] == 8

    app.return_intake.record_bulk_return({"l_casal": 2}, PHOTO)
    assert app.store.get_batch(batch_b).status is BatchStatus.COMPLETED
    assert app.store.grand_total() == before
    assert app.store.in_transit_totals() == coerce_items({})


def test_return_events_are_logged_per_batch_and_category(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("1", {"l_casal": 4, "t_rosto": 2})
    batch_a = _ship(app, clock, "1", l_casal=4, t_rosto=2)

    app.return_intake.record_bulk_return({"l_casal": 4, "t_rosto": 1}, PHOTO)

    events = [(e.event_type.value, e.category, e.quantity, e.batch_id) for e in app.store.state.inventory_events]
    assert events == [("return", "l_casal", 4, batch_a), ("return", "t_rosto", 1, batch_a)]


def test_bulk_return_documents_follow_batch_state(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("1", {"sala": 5})
    batch_a = _ship(app, clock, "1", sala=2)
    batch_b = _ship(app, clock, "1", sala=3)

    response = app.return_intake.record_bulk_return({"sala": 3}, PHOTO)

    modes = {doc["batch_id"]: doc["mode"] for doc in response["documents"]}
    assert modes == {batch_a: "return_comparison", batch_b: "in_transit_status"}


def test_unmatched_leftover_is_only_reported_by_default(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("1", {"edredom": 1})
    _ship(app, clock, "1", edredom=1)
    before = app.store.grand_total()

    response = app.return_intake.record_bulk_return({"edredom": 1, "capa_edredom": 2}, PHOTO)

    assert response["unmatched"] == {"capa_edredom": 2}
    assert app.store.grand_total() == before
    assert all(e.event_type.value == "return" for e in app.store.state.inventory_events)


def test_unmatched_leftover_can_be_booked_as_adjustment(tmp_path: Path, clock: _Clock) -> None:
    app = _build(tmp_path, clock, record_unmatched_returns=True)
    app.inventory.set_floor_stock("1", {"edredom": 1})
    _ship(app, clock, "1", edredom=1)

    response = app.return_intake.record_bulk_return({"edredom": 1, "capa_edredom": 2}, PHOTO)

    assert response["unmatched"] == {"capa_edredom": 2}
    adjustments = [e for e in app.store.state.inventory_events if e.event_type.value == "adjustment"]
    assert [(e.category, e.quantity, e.floor) for e in adjustments] == [("capa_edredom", 2, "Rouparia")]
    assert app.store.get_floor_inventory("Rouparia").items["capa_edredom"] == 2


def test_single_batch_return_credits_linen_room(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("3", {"l_casal": 5})
    batch_id = _ship(app, clock, "3", l_casal=5)

    response = app.return_intake.record_batch_return(batch_id, {"l_casal": 3}, PHOTO)

    assert response["status"] == "received"
    assert response["discrepancies"] == [{"category": "l_casal", "sent": 5, "received": 3, "difference": -2}]
    assert "LAUNDRY RETURN REPORT" in response["document"]
    assert app.store.get_floor_inventory("Rouparia").items["l_casal"] == 3
    assert app.return_intake.record_batch_return(batch_id, {"l_casal": 2})["status"] == "invalid_transition"
    assert app.return_intake.return_report(batch_id)["status"] == "ok"


def test_sheets_without_floor_ship_from_the_linen_room(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("Rouparia", {"toalha_mesa": 10})

    _ship(app, clock, None, toalha_mesa=4)

    assert app.store.get_floor_inventory("Rouparia").items["toalha_mesa"] == 6
    assert app.store.in_transit_totals()["toalha_mesa"] == 4


def test_damage_and_loss_reduce_floor_stock(app: LaundryControlApp) -> None:
    app.inventory.set_floor_stock("5", {"t_banho": 3})

    damaged = app.inventory.record_damage_or_loss(
        event_type="damage", floor="5", category="T. Banho", quantity=2, reason="bleach"
    )
    lost = app.inventory.record_damage_or_loss(event_type="loss", floor="5", category="t_banho", quantity=4)
    invalid = app.inventory.record_damage_or_loss(event_type="theft", floor="5", category="t_banho", quantity=1)

    assert damaged["status"] == "recorded"
    assert damaged["event"]["quantity"] == -2
    assert damaged["event"]["category"] == "t_banho"
    assert lost["shortfall"] == 3
    assert app.store.get_floor_inventory("5").items["t_banho"] == 0
    assert invalid["status"] == "needs_review"


def test_manual_adjustment_logs_signed_changes(app: LaundryControlApp) -> None:
    app.inventory.set_floor_stock("1", {"fronha": 5, "box": 2})

    response = app.inventory.adjust_floor_stock("1", {"fronha": 3, "box": 2, "piso": 1}, reason="recount")

    assert response["status"] == "ok"
    assert [(e["category"], e["quantity"]) for e in response["events"]] == [("fronha", -2), ("piso", 1)]
    assert app.store.get_floor_inventory("1").items == coerce_items({"fronha": 3, "box": 2, "piso": 1})


def test_overview_reports_hotel_transit_and_floors(app: LaundryControlApp, clock: _Clock) -> None:
    app.inventory.set_floor_stock("1", {"fronha": 5})
    _ship(app, clock, "1", fronha=2)

    overview = app.inventory.overview()

    assert overview["hotel"]["fronha"] == 3
    assert overview["in_transit"]["fronha"] == 2
    assert overview["grand_total"]["fronha"] == 5
    assert overview["floors"]["1"]["fronha"] == 3


def test_state_survives_app_restart(tmp_path: Path, clock: _Clock) -> None:
    first = _build(tmp_path, clock)
    first.inventory.set_floor_stock("1", {"colcha": 2})
    batch_id = _ship(first, clock, "1", colcha=2)

    second = _build(tmp_path, clock)

    assert second.store.get_batch(batch_id).status is BatchStatus.IN_TRANSIT
    assert second.store.grand_total() == first.store.grand_total()


def test_update_pricing_merges_labels_and_rejects_negatives(app: LaundryControlApp) -> None:
    assert app.update_pricing({"Fronha": 1.75})["unit_prices"]["fronha"] == 1.75
    assert app.update_pricing({"fronha": -1})["status"] == "error"
    assert app.store.state.pricing.unit_price("fronha") == 1.75


def test_padded_floor_names_resolve_to_the_stored_floor(app: LaundryControlApp) -> None:
    app.inventory.set_floor_stock("5", {"l_casal": 10, "fronha": 20})

    damaged = app.inventory.record_damage_or_loss(event_type="damage", floor=" 5 ", category="l_casal", quantity=1)
    adjusted = app.inventory.adjust_floor_stock(" 5 ", {"l_casal": 9, "fronha": 18}, reason="recount")

    assert damaged["status"] == "recorded"
    assert damaged["shortfall"] == 0
    assert damaged["event"]["floor"] == "5"
    assert [(e["category"], e["quantity"], e["floor"]) for e in adjusted["events"]] == [("fronha", -2, "5")]
    assert app.store.get_floor_inventory("5").items == coerce_items({"l_casal": 9, "fronha": 18})
    assert [record.floor for record in app.store.state.floor_inventories] == ["5"]


def test_blank_floor_is_rejected_before_anything_is_logged(app: LaundryControlApp) -> None:
    damaged = app.inventory.record_damage_or_loss(event_type="damage", floor="   ", category="l_casal", quantity=1)
    adjusted = app.inventory.adjust_floor_stock("  ", {"fronha": 1})
    stocked = app.inventory.set_floor_stock("", {"fronha": 1})

    assert damaged["status"] == "needs_review"
    assert adjusted["status"] == "needs_review"
    assert stocked["status"] == "needs_review"
    assert app.store.state.inventory_events == ()
    assert app.store.state.floor_inventories == ()
