"""Dispatch agent: batches pending sheets and sends them to the laundry."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import ValidationError

from agents.inventory_keeper import InventoryKeeperAgent
from laundry_app.config import LaundryConfig
from laundry_app.logging_config import get_logger, log_event, operation_context
from logic.lifecycle import InvalidTransitionError
from logic.validation import CountVectorInput, SendBatchInput, validation_failure
from memory.laundry_store import LaundryStore
from memory.serialization import batch_to_dict
from memory.state_store import StorageQuotaExceededError
from models.batch import LaundryBatch
from models.laundry_items import LaundryItems, has_positive, subtract_items, sum_items
from tools.documents import DocumentGenerator, DocumentMode
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)


class DispatchAgent:
    """Turns pending sheets into batches and ships them."""

    def __init__(
        self,
        config: LaundryConfig,
        store: LaundryStore,
        inventory: InventoryKeeperAgent,
        documents: DocumentGenerator,
    ) -> None:
        self.config = config
        self.store = store
        self.inventory = inventory
        self.documents = documents

    def create_batch(
        self,
        collection_fee: Optional[float] = None,
        notes: Optional[str] = None,
        sheet_ids: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        with operation_context("agent:dispatch.create_batch") as correlation_id:
            pending = self.store.state.pending_sheets
            wanted = set(sheet_ids) if sheet_ids is not None else None
            if not any(wanted is None or sheet.sheet_id in wanted for sheet in pending):
                return {"status": "empty", "message": "There are no pending sheets to put in a batch."}
            try:
                batch = self.store.create_batch(collection_fee=collection_fee, notes=notes, sheet_ids=wanted)
            except StorageQuotaExceededError as exc:
                return {"status": "storage_full", "message": exc.user_message}
            log_event(
                LOGGER,
                logging.INFO,
                "agent_call_completed",
                agent="dispatch",
                method="create_batch",
                batch_id=batch.batch_id,
                correlation_id=correlation_id,
            )
            return {"status": "created", "batch": batch_to_dict(batch)}

    def update_batch(
        self,
        batch_id: str,
        items: Mapping[str, Any],
        collection_fee: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Correct the totals of a batch that has not left yet."""

        try:
            counts = CountVectorInput(items=dict(items)).to_items()
        except ValidationError as exc:
            return validation_failure("Batch counts need review", exc)
        existing = self.store.get_batch(batch_id)
        if existing is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
        fee = existing.collection_fee if collection_fee is None else collection_fee
        try:
            batch = self.store.update_batch(batch_id, counts, fee, notes if notes is not None else existing.notes)
        except InvalidTransitionError as exc:
            return {"status": "not_editable", "message": str(exc)}
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        return {"status": "updated", "batch": batch_to_dict(batch)}

    def floor_debits(self, batch: LaundryBatch) -> Dict[str, LaundryItems]:
        """Quantities each floor gives up when ``batch`` ships.

        Sheets debit their own floor, or the linen room when they have none.
        Any gap between the sheets and an edited batch total is settled
        against the linen room.
        """

        debits: Dict[str, LaundryItems] = {}
        for sheet in batch.sheets:
            floor = sheet.floor or self.config.linen_room
            debits[floor] = sum_items([debits.get(floor, {}), sheet.items])
        residual = subtract_items(batch.total_items, sum_items(sheet.items for sheet in batch.sheets))
        if any(residual.values()):
            linen_room = self.config.linen_room
            debits[linen_room] = sum_items([debits.get(linen_room, {}), residual])
        return debits

    @instrument_operation(
        "send_batch",
        input_model=SendBatchInput,
        on_validation_error=lambda exc: validation_failure("Dispatch details need review", exc),
    )
    def send_batch(
        self,
        batch_id: str,
        sent_by: str,
        expected_return_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Mark a batch as sent, take its linen off the floors and print the requisition."""

        try:
            batch = self.store.mark_as_sent(batch_id, sent_by, expected_return_date)
        except InvalidTransitionError as exc:
            return {"status": "invalid_transition", "message": str(exc)}
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        if batch is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}

        shortfalls: Dict[str, LaundryItems] = {}
        try:
            for floor, debit in self.floor_debits(batch).items():
                _, shortfall = self.inventory.apply_stock_delta(
                    floor, {category: -quantity for category, quantity in debit.items()}, reason="batch_sent"
                )
                if has_positive(shortfall):
                    shortfalls[floor] = {k: v for k, v in shortfall.items() if v}
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message, "batch": batch_to_dict(batch)}

        document = self.documents.render(batch, DocumentMode.REQUISITION)
        return {
            "status": "sent",
            "batch": batch_to_dict(batch),
            "document": document.body,
            "stock_shortfalls": shortfalls,
        }

    def delete_batch(self, batch_id: str) -> Dict[str, Any]:
        try:
            batch = self.store.delete_batch(batch_id)
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        if batch is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
        return {"status": "deleted", "batch_id": batch_id}

    def requisition(self, batch_id: str) -> Dict[str, Any]:
        batch = self.store.get_batch(batch_id)
        if batch is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
        return {"status": "ok", "document": self.documents.render(batch, DocumentMode.REQUISITION).body}


__all__ = ["DispatchAgent"]
