"""Evaluation scenarios exercising batching, returns and stock movements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class EvaluationScenario:
    """A scripted day-by-day run of the laundry workflow.

    ``steps`` are replayed in order by the harness. Batches are referred to by
    an alias (``"as"``) so expectations do not depend on generated ids.
    """

    name: str
    description: str
    steps: List[Dict[str, object]]
    expectations: Dict[str, object]
    floor_stock: Dict[str, Dict[str, int]] = field(default_factory=dict)
    unit_prices: Dict[str, float] = field(default_factory=dict)
    collection_fee: float = 150.0


SCENARIOS: List[EvaluationScenario] = [
    EvaluationScenario(
        name="batch_cost_from_two_sheets",
        description="Two sheets fold into one batch whose cost includes the collection fee.",
        unit_prices={"l_casal": 2.5, "fronha": 1.0},
        steps=[
            {"action": "add_sheet", "floor": "1", "items": {"l_casal": 2}},
            {"action": "add_sheet", "floor": "2", "items": {"l_casal": 3, "fronha": 1}},
            {"action": "create_batch", "as": "A"},
        ],
        expectations={
            "total_items": {"A": {"l_casal": 5, "fronha": 1}},
            "total_cost": {"A": 163.5},
            "pending_sheets": 0,
        },
    ),
    EvaluationScenario(
        name="single_return_shortage",
        description="A batch comes back two sheets short and is still received.",
        floor_stock={"1": {"l_casal": 5}},
        steps=[
            {"action": "add_sheet", "floor": "1", "items": {"l_casal": 5}},
            {"action": "create_batch", "as": "A"},
            {"action": "send", "batch": "A", "day": 1},
            {"action": "batch_return", "batch": "A", "day": 3, "items": {"l_casal": 3}},
        ],
        expectations={
            "status": {"A": "received"},
            "discrepancies": {"A": [{"category": "l_casal", "sent": 5, "received": 3, "difference": -2}]},
            "conserved": False,
        },
    ),
    EvaluationScenario(
        name="bulk_return_oldest_first",
        description="One delivery of eight sheets closes the older batch and part of the newer one.",
        floor_stock={"1": {"l_casal": 4}, "2": {"l_casal": 6}},
        steps=[
            {"action": "add_sheet", "floor": "1", "items": {"l_casal": 4}},
            {"action": "create_batch", "as": "A"},
            {"action": "send", "batch": "A", "day": 1},
            {"action": "add_sheet", "floor": "2", "items": {"l_casal": 6}},
            {"action": "create_batch", "as": "B"},
            {"action": "send", "batch": "B", "day": 2},
            {"action": "bulk_return", "day": 4, "items": {"l_casal": 8}},
        ],
        expectations={
            "status": {"A": "completed", "B": "in_transit"},
            "returned": {"A": {"l_casal": 4}, "B": {"l_casal": 4}},
            "unmatched": {},
            "in_transit": {"l_casal": 2},
            "conserved": True,
        },
    ),
    EvaluationScenario(
        name="partial_returns_accumulate",
        description="Two bulk deliveries against one batch add up before it completes.",
        floor_stock={"3": {"t_banho": 10, "t_rosto": 6}},
        steps=[
            {"action": "add_sheet", "floor": "3", "items": {"t_banho": 10, "t_rosto": 6}},
            {"action": "create_batch", "as": "A"},
            {"action": "send", "batch": "A", "day": 1},
            {"action": "bulk_return", "day": 2, "items": {"t_banho": 7, "t_rosto": 6}},
            {"action": "check_status", "batch": "A", "expected": "in_transit"},
            {"action": "bulk_return", "day": 3, "items": {"t_banho": 3}},
        ],
        expectations={
            "status": {"A": "completed"},
            "returned": {"A": {"t_banho": 10, "t_rosto": 6}},
            "conserved": True,
        },
    ),
    EvaluationScenario(
        name="unmatched_leftover_reported",
        description="Linen nobody sent comes back and is reported rather than absorbed.",
        floor_stock={"1": {"fronha": 2}},
        steps=[
            {"action": "add_sheet", "floor": "1", "items": {"fronha": 2}},
            {"action": "create_batch", "as": "A"},
            {"action": "send", "batch": "A", "day": 1},
            {"action": "bulk_return", "day": 2, "items": {"fronha": 2, "colcha": 1}},
        ],
        expectations={
            "status": {"A": "completed"},
            "unmatched": {"colcha": 1},
            "conserved": True,
        },
    ),
]


__all__ = ["EvaluationScenario", "SCENARIOS"]
