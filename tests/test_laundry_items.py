"""Category vectors, taxonomy lookups, pricing and batch aggregation."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.aggregation import create_batch
from models import taxonomy
from models.batch import BatchStatus, UploadedSheet, calculate_discrepancies
from models.laundry_items import (
    coerce_items,
    empty_items,
    has_positive,
    subtract_items,
    sum_items,
    total_quantity,
    validate_items,
)
from models.pricing import PricingConfig, batch_total_cost, calculate_cost, default_pricing

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _sheet(sheet_id: str, **counts: int) -> UploadedSheet:
    return UploadedSheet(
        sheet_id=sheet_id,
        date=NOW,
        image_url="",
        items=coerce_items(counts),
        uploaded_at=NOW,
    )


def test_taxonomy_accepts_keys_labels_and_descriptions() -> None:
    assert len(taxonomy.CATEGORIES) == 13
    assert taxonomy.validate_category("l_casal") == "l_casal"
    assert taxonomy.validate_category("L. Casal") == "l_casal"
    assert taxonomy.validate_category("Capa Colchão") == "capa_colchao"
    assert taxonomy.validate_category("Toalha de Banho") == "t_banho"
    with pytest.raises(ValueError):
        taxonomy.validate_category("cortina")


def test_coerce_items_overlays_partial_input_on_zero_vector() -> None:
    items = coerce_items({"fronha": "4", "t_banho": -2, "edredom": "abc", "cortina": 9, "Piso": 2.0})

    assert set(items) == set(taxonomy.CATEGORIES)
    assert items["fronha"] == 4
    assert items["t_banho"] == 0
    assert items["edredom"] == 0
    assert items["piso"] == 2
    assert total_quantity(items) == 6


def test_validate_items_rejects_incomplete_or_negative_vectors() -> None:
    with pytest.raises(ValueError, match="missing"):
        validate_items({"l_casal": 1})
    negative = empty_items()
    negative["box"] = -1
    with pytest.raises(ValueError, match="box"):
        validate_items(negative)
    assert validate_items(empty_items()) == empty_items()


def test_vector_arithmetic() -> None:
    a = coerce_items({"l_casal": 2, "fronha": 1})
    b = coerce_items({"l_casal": 3})

    assert sum_items([a, b])["l_casal"] == 5
    assert subtract_items(b, a)["fronha"] == -1
    assert not has_positive(empty_items())


def test_batch_cost_scenario_from_two_sheets() -> None:
    pricing = PricingConfig(unit_prices={"l_casal": 2.5, "fronha": 1.0}, collection_fee=150.0)
    sheets = [_sheet("s1", l_casal=2), _sheet("s2", l_casal=3, fronha=1)]

    batch = create_batch(sheets, pricing, 150.0, NOW)

    assert batch.status is BatchStatus.PENDING
    assert batch.total_items == coerce_items({"l_casal": 5, "fronha": 1})
    assert batch.total_cost == pytest.approx(163.5)
    assert batch.batch_id.startswith("batch_")
    assert [sheet.sheet_id for sheet in batch.sheets] == ["s1", "s2"]


def test_cost_is_deterministic_and_excludes_fee() -> None:
    pricing = default_pricing()
    items = coerce_items({"edredom": 2, "t_rosto": 5})

    assert calculate_cost(items, pricing) == calculate_cost(items, pricing) == pytest.approx(14.0)
    assert batch_total_cost(items, pricing, 10) == pytest.approx(24.0)


def test_pricing_rejects_negative_values_and_unknown_categories() -> None:
    with pytest.raises(ValueError):
        PricingConfig(unit_prices={"l_casal": -1.0})
    with pytest.raises(ValueError):
        PricingConfig(unit_prices={"cortina": 1.0})
    with pytest.raises(ValueError):
        PricingConfig(collection_fee=-5)
    assert PricingConfig(unit_prices={"Fronha": 1}).unit_price("fronha") == 1.0
    assert PricingConfig().unit_price("sala") == 0.0


def test_discrepancies_only_list_differing_categories() -> None:
    sent = coerce_items({"l_casal": 5, "fronha": 2})
    received = coerce_items({"l_casal": 3, "fronha": 2, "box": 1})

    discrepancies = calculate_discrepancies(sent, received)

    assert [(d.category, d.difference) for d in discrepancies] == [("l_casal", -2), ("box", 1)]
    assert discrepancies[0].is_shortage
    assert not discrepancies[1].is_shortage
