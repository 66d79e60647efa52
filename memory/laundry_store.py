"""The laundry entity store: one snapshot, explicit mutations, subscribers.

Every mutation reads the current :class:`LaundryState`, computes a complete
replacement through the pure functions in :mod:`logic`, persists it and only
then swaps it in and notifies subscribers. A refused write therefore leaves
the in-memory state untouched.

The store assumes a single writer. Callers that share one instance across
threads must serialise mutations themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from laundry_app.logging_config import get_logger, log_event
from logic import aggregation, inventory_ledger, lifecycle
from logic.return_allocator import AllocationResult, allocate_bulk_return
from memory.serialization import (
    SCHEMA_VERSION,
    batch_from_dict,
    batch_to_dict,
    event_from_dict,
    event_to_dict,
    floor_from_dict,
    floor_to_dict,
    pricing_from_dict,
    pricing_to_dict,
    sheet_from_dict,
    sheet_to_dict,
)
from memory.state_store import StateStore
from models.batch import BatchStatus, LaundryBatch, UploadedSheet
from models.inventory import FloorInventory, InventoryEvent, InventoryEventType
from models.laundry_items import LaundryItems, validate_items
from models.pricing import PricingConfig, default_pricing

LOGGER = get_logger(__name__)
DEFAULT_STATE_KEY = "laundry-storage"

Listener = Callable[["LaundryState"], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LaundryState:
    """Immutable snapshot of everything the ledger knows."""

    pending_sheets: tuple = ()
    batches: tuple = ()
    pricing: PricingConfig = field(default_factory=default_pricing)
    floor_inventories: tuple = ()
    inventory_events: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "pending_sheets": [sheet_to_dict(sheet) for sheet in self.pending_sheets],
            "batches": [batch_to_dict(batch) for batch in self.batches],
            "pricing": pricing_to_dict(self.pricing),
            "floor_inventories": [floor_to_dict(record) for record in self.floor_inventories],
            "inventory_events": [event_to_dict(event) for event in self.inventory_events],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LaundryState":
        pricing_raw = raw.get("pricing")
        return cls(
            pending_sheets=tuple(sheet_from_dict(sheet) for sheet in raw.get("pending_sheets", [])),
            batches=tuple(batch_from_dict(batch) for batch in raw.get("batches", [])),
            pricing=pricing_from_dict(pricing_raw) if pricing_raw else default_pricing(),
            floor_inventories=tuple(floor_from_dict(record) for record in raw.get("floor_inventories", [])),
            inventory_events=tuple(event_from_dict(event) for event in raw.get("inventory_events", [])),
        )


class LaundryStore:
    """State container exposing the ledger's mutation and query operations."""

    def __init__(
        self,
        provider: Optional[StateStore] = None,
        state_key: str = DEFAULT_STATE_KEY,
        clock: Callable[[], datetime] = utc_now,
        initial_state: Optional[LaundryState] = None,
    ) -> None:
        self.provider = provider
        self.state_key = state_key
        self.clock = clock
        self._listeners: List[Listener] = []
        self._state = initial_state or self._hydrate()

    # ------------------------------------------------------------------
    # Snapshot plumbing
    def _hydrate(self) -> LaundryState:
        if self.provider is None:
            return LaundryState()
        raw = self.provider.load(self.state_key)
        if raw is None:
            return LaundryState()
        state = LaundryState.from_dict(raw)
        log_event(
            LOGGER,
            logging.INFO,
            "laundry_state_loaded",
            pending_sheets=len(state.pending_sheets),
            batches=len(state.batches),
            floors=len(state.floor_inventories),
            events=len(state.inventory_events),
        )
        return state

    @property
    def state(self) -> LaundryState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with every new snapshot.

        Returns a function that removes the registration.
        """

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_state: LaundryState, event: str, **fields: Any) -> LaundryState:
        if self.provider is not None:
            self.provider.save(self.state_key, new_state.to_dict())
        self._state = new_state
        log_event(LOGGER, logging.INFO, event, **fields)
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def _find_batch(self, batch_id: str) -> Optional[LaundryBatch]:
        return next((batch for batch in self._state.batches if batch.batch_id == batch_id), None)

    def _replace_batch(self, updated: LaundryBatch) -> tuple:
        return tuple(updated if batch.batch_id == updated.batch_id else batch for batch in self._state.batches)

    def _missing_batch(self, operation: str, batch_id: str) -> None:
        log_event(LOGGER, logging.WARNING, "batch_not_found", operation=operation, batch_id=batch_id)

    # ------------------------------------------------------------------
    # Pending sheets
    def add_pending_sheet(self, sheet: UploadedSheet) -> UploadedSheet:
        validate_items(sheet.items)
        if any(existing.sheet_id == sheet.sheet_id for existing in self._state.pending_sheets):
            raise ValueError(f"Sheet {sheet.sheet_id} is already pending")
        self._commit(
            replace(self._state, pending_sheets=self._state.pending_sheets + (sheet,)),
            "sheet_added",
            sheet_id=sheet.sheet_id,
            floor=sheet.floor,
        )
        return sheet

    def remove_pending_sheet(self, sheet_id: str) -> bool:
        remaining = tuple(sheet for sheet in self._state.pending_sheets if sheet.sheet_id != sheet_id)
        if len(remaining) == len(self._state.pending_sheets):
            return False
        self._commit(replace(self._state, pending_sheets=remaining), "sheet_removed", sheet_id=sheet_id)
        return True

    def clear_pending_sheets(self) -> int:
        cleared = len(self._state.pending_sheets)
        self._commit(replace(self._state, pending_sheets=()), "pending_sheets_cleared", cleared=cleared)
        return cleared

    # ------------------------------------------------------------------
    # Batches
    def create_batch(
        self,
        collection_fee: Optional[float] = None,
        notes: Optional[str] = None,
        sheet_ids: Optional[Iterable[str]] = None,
    ) -> LaundryBatch:
        """Aggregate pending sheets into a new batch.

        All pending sheets are consumed unless ``sheet_ids`` narrows the
        selection; the chosen sheets leave the pending pool in the same
        snapshot that adds the batch.
        """

        wanted = set(sheet_ids) if sheet_ids is not None else None
        chosen = [s for s in self._state.pending_sheets if wanted is None or s.sheet_id in wanted]
        kept = tuple(s for s in self._state.pending_sheets if wanted is not None and s.sheet_id not in wanted)
        fee = self._state.pricing.collection_fee if collection_fee is None else collection_fee
        batch = aggregation.create_batch(chosen, self._state.pricing, fee, self.clock(), notes=notes)
        self._commit(
            replace(self._state, batches=self._state.batches + (batch,), pending_sheets=kept),
            "batch_created",
            batch_id=batch.batch_id,
            sheets=len(chosen),
            total_cost=batch.total_cost,
        )
        return batch

    def update_batch(
        self,
        batch_id: str,
        items: Mapping[str, int],
        collection_fee: float,
        notes: Optional[str] = None,
    ) -> Optional[LaundryBatch]:
        batch = self._find_batch(batch_id)
        if batch is None:
            self._missing_batch("update_batch", batch_id)
            return None
        updated = aggregation.update_batch(batch, items, self._state.pricing, collection_fee, self.clock(), notes)
        self._commit(
            replace(self._state, batches=self._replace_batch(updated)),
            "batch_updated",
            batch_id=batch_id,
            total_cost=updated.total_cost,
        )
        return updated

    def mark_as_sent(
        self,
        batch_id: str,
        sent_by: str,
        expected_return_date: Optional[date] = None,
    ) -> Optional[LaundryBatch]:
        batch = self._find_batch(batch_id)
        if batch is None:
            self._missing_batch("mark_as_sent", batch_id)
            return None
        updated = lifecycle.mark_sent(batch, sent_by, self.clock(), expected_return_date)
        self._commit(replace(self._state, batches=self._replace_batch(updated)), "batch_sent", batch_id=batch_id)
        return updated

    def record_return(
        self,
        batch_id: str,
        returned_items: Mapping[str, int],
        return_image_url: str,
    ) -> Optional[LaundryBatch]:
        """Single-batch return path: the batch becomes ``received``."""

        batch = self._find_batch(batch_id)
        if batch is None:
            self._missing_batch("record_return", batch_id)
            return None
        updated = lifecycle.record_return(batch, returned_items, return_image_url, self.clock())
        self._commit(
            replace(self._state, batches=self._replace_batch(updated)),
            "batch_returned",
            batch_id=batch_id,
            discrepancies=len(updated.discrepancies or []),
            over_return=updated.over_return_flagged,
        )
        return updated

    def record_bulk_return(self, returned_items: Mapping[str, int], return_image_url: str) -> AllocationResult:
        """Allocate one return document across every open batch, oldest first.

        Leftover quantity is reported on the result, never absorbed.
        """

        returned = validate_items(dict(returned_items))
        result = allocate_bulk_return(self._state.batches, returned, return_image_url, self.clock())
        self._commit(
            replace(self._state, batches=tuple(result.batches)),
            "bulk_return_recorded",
            completed=result.completed_batch_ids,
            unmatched={entry.category: entry.quantity for entry in result.unmatched},
        )
        return result

    def mark_as_completed(self, batch_id: str) -> Optional[LaundryBatch]:
        batch = self._find_batch(batch_id)
        if batch is None:
            self._missing_batch("mark_as_completed", batch_id)
            return None
        updated = lifecycle.mark_completed(batch, self.clock())
        self._commit(replace(self._state, batches=self._replace_batch(updated)), "batch_completed", batch_id=batch_id)
        return updated

    def delete_batch(self, batch_id: str) -> Optional[LaundryBatch]:
        """Permanently discard a batch in any status.

        Ledger effects already recorded for the batch (events, floor stock)
        are left as they are.
        """

        batch = self._find_batch(batch_id)
        if batch is None:
            self._missing_batch("delete_batch", batch_id)
            return None
        remaining = tuple(b for b in self._state.batches if b.batch_id != batch_id)
        self._commit(
            replace(self._state, batches=remaining),
            "batch_deleted",
            batch_id=batch_id,
            status=batch.status.value,
        )
        return batch

    def get_batch(self, batch_id: str) -> Optional[LaundryBatch]:
        return self._find_batch(batch_id)

    def batches_with_status(self, status: BatchStatus) -> List[LaundryBatch]:
        return [batch for batch in self._state.batches if batch.status is status]

    # ------------------------------------------------------------------
    # Pricing
    def update_pricing(self, pricing: PricingConfig) -> PricingConfig:
        """Replace the pricing table; already stamped batch costs do not change."""

        self._commit(replace(self._state, pricing=pricing), "pricing_updated", collection_fee=pricing.collection_fee)
        return pricing

    # ------------------------------------------------------------------
    # Inventory
    def update_floor_stock(self, floor: str, items: Mapping[str, int]) -> FloorInventory:
        floors = inventory_ledger.replace_floor_stock(self._state.floor_inventories, floor, items, self.clock())
        record = inventory_ledger.find_floor(floors, floor.strip())
        self._commit(replace(self._state, floor_inventories=tuple(floors)), "floor_stock_updated", floor=record.floor)
        return record

    def record_event(
        self,
        event_type: InventoryEventType | str,
        category: str,
        quantity: int,
        floor: Optional[str] = None,
        reason: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> InventoryEvent:
        """Append one event to the log; floor stock is not touched."""

        event = inventory_ledger.new_event(
            event_type, category, quantity, self.clock(), floor=floor, reason=reason, batch_id=batch_id
        )
        self._commit(
            replace(self._state, inventory_events=self._state.inventory_events + (event,)),
            "inventory_event_recorded",
            event_type=event.event_type.value,
            category=event.category,
            quantity=event.quantity,
            batch_id=batch_id,
        )
        return event

    def get_floor_inventory(self, floor: str) -> Optional[FloorInventory]:
        return inventory_ledger.find_floor(self._state.floor_inventories, (floor or "").strip())

    def total_inventory(self) -> LaundryItems:
        return inventory_ledger.total_inventory(self._state.floor_inventories)

    def in_transit_totals(self) -> LaundryItems:
        return inventory_ledger.in_transit_totals(self._state.batches)

    def grand_total(self) -> LaundryItems:
        return inventory_ledger.grand_total(self._state.floor_inventories, self._state.batches)


__all__ = ["LaundryState", "LaundryStore", "DEFAULT_STATE_KEY", "utc_now"]
