"""Inventory keeper agent: floor stock, damage and loss, manual corrections."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from laundry_app.config import LaundryConfig
from laundry_app.logging_config import get_logger, log_event, operation_context
from logic.validation import CountVectorInput, DamageInput, ValidationResult, validation_failure
from memory.laundry_store import LaundryStore
from memory.serialization import event_to_dict, floor_to_dict
from memory.state_store import StorageQuotaExceededError
from models.inventory import FloorInventory, InventoryEventType
from models.laundry_items import LaundryItems, empty_items, has_positive
from models.taxonomy import CATEGORIES
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)


def _storage_full(exc: StorageQuotaExceededError) -> Dict[str, Any]:
    return {"status": "storage_full", "message": exc.user_message}


def _blank_floor() -> Dict[str, Any]:
    return ValidationResult(message="Floor name is required", details=[]).model_dump()


class InventoryKeeperAgent:
    """Keeps per-floor stock and the append-only event log consistent."""

    def __init__(self, config: LaundryConfig, store: LaundryStore) -> None:
        self.config = config
        self.store = store

    def current_stock(self, floor: str) -> LaundryItems:
        record = self.store.get_floor_inventory(floor.strip())
        return dict(record.items) if record else empty_items()

    def apply_stock_delta(self, floor: str, delta: Mapping[str, int], reason: str) -> Tuple[FloorInventory, LaundryItems]:
        """Add a signed vector to a floor's stock, never going below zero.

        Returns the new floor record and the per-category shortfall that could
        not be taken because the floor did not hold it.
        """

        floor = floor.strip()
        current = self.current_stock(floor)
        updated: LaundryItems = {}
        shortfall = empty_items()
        for category in CATEGORIES:
            value = current[category] + (delta.get(category, 0) or 0)
            if value < 0:
                shortfall[category] = -value
                value = 0
            updated[category] = value
        if has_positive(shortfall):
            log_event(
                LOGGER,
                logging.WARNING,
                "floor_stock_shortfall",
                floor=floor,
                reason=reason,
                shortfall={k: v for k, v in shortfall.items() if v},
            )
        return self.store.update_floor_stock(floor, updated), shortfall

    def set_floor_stock(self, floor: str, items: Mapping[str, Any]) -> Dict[str, Any]:
        """Replace a floor's counted stock without logging events."""

        with operation_context("agent:inventory_keeper.set_floor_stock"):
            floor = (floor or "").strip()
            if not floor:
                return _blank_floor()
            try:
                counts = CountVectorInput(items=dict(items)).to_items()
            except ValidationError as exc:
                return validation_failure("Stock counts need review", exc)
            try:
                record = self.store.update_floor_stock(floor, counts)
            except StorageQuotaExceededError as exc:
                return _storage_full(exc)
            except ValueError as exc:
                return {"status": "error", "message": str(exc)}
            return {"status": "ok", "floor": floor_to_dict(record)}

    @instrument_operation(
        "record_damage_or_loss",
        input_model=DamageInput,
        on_validation_error=lambda exc: validation_failure("Damage or loss entry needs review", exc),
    )
    def record_damage_or_loss(
        self,
        event_type: str,
        floor: str,
        category: str,
        quantity: int,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Log linen that left circulation and take it off the floor."""

        try:
            event = self.store.record_event(
                InventoryEventType(event_type), category, -quantity, floor=floor, reason=reason
            )
            record, shortfall = self.apply_stock_delta(floor, {category: -quantity}, reason=event_type)
        except StorageQuotaExceededError as exc:
            return _storage_full(exc)
        return {
            "status": "recorded",
            "event": event_to_dict(event),
            "floor": floor_to_dict(record),
            "shortfall": shortfall[category],
        }

    def adjust_floor_stock(self, floor: str, items: Mapping[str, Any], reason: Optional[str] = None) -> Dict[str, Any]:
        """Manual recount: one adjustment event per changed category, then replace the floor."""

        with operation_context("agent:inventory_keeper.adjust_floor_stock") as correlation_id:
            floor = (floor or "").strip()
            if not floor:
                return _blank_floor()
            try:
                counted = CountVectorInput(items=dict(items)).to_items()
            except ValidationError as exc:
                return validation_failure("Stock counts need review", exc)

            current = self.current_stock(floor)
            events = []
            try:
                for category in CATEGORIES:
                    change = counted[category] - current[category]
                    if change:
                        event = self.store.record_event(
                            InventoryEventType.ADJUSTMENT,
                            category,
                            change,
                            floor=floor,
                            reason=reason or "manual recount",
                        )
                        events.append(event_to_dict(event))
                record = self.store.update_floor_stock(floor, counted)
            except StorageQuotaExceededError as exc:
                return _storage_full(exc)

            log_event(
                LOGGER,
                logging.INFO,
                "floor_stock_adjusted",
                floor=floor,
                changes=len(events),
                correlation_id=correlation_id,
            )
            return {"status": "ok", "floor": floor_to_dict(record), "events": events}

    def overview(self, recent_events: int = 10) -> Dict[str, Any]:
        state = self.store.state
        return {
            "hotel_name": self.config.hotel_name,
            "hotel": self.store.total_inventory(),
            "in_transit": self.store.in_transit_totals(),
            "grand_total": self.store.grand_total(),
            "floors": {record.floor: dict(record.items) for record in state.floor_inventories},
            "recent_events": [event_to_dict(event) for event in state.inventory_events[-recent_events:]][::-1],
        }


__all__ = ["InventoryKeeperAgent"]
