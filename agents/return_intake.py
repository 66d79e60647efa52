"""Return intake agent: reconciles laundry deliveries against open batches."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from agents.inventory_keeper import InventoryKeeperAgent
from laundry_app.config import LaundryConfig
from laundry_app.logging_config import get_logger, log_event, operation_context
from logic.lifecycle import InvalidTransitionError
from logic.validation import CountVectorInput, validation_failure
from memory.laundry_store import LaundryStore
from memory.serialization import batch_to_dict
from memory.state_store import StorageQuotaExceededError
from models.batch import BatchStatus, LaundryBatch
from models.inventory import InventoryEventType
from models.laundry_items import LaundryItems, clamp_non_negative, has_positive, subtract_items, sum_items
from models.taxonomy import CATEGORIES
from tools.documents import DocumentGenerator, DocumentMode

LOGGER = get_logger(__name__)


def _discrepancy_rows(batch: LaundryBatch) -> List[Dict[str, Any]]:
    return [
        {"category": d.category, "sent": d.sent, "received": d.received, "difference": d.difference}
        for d in batch.discrepancies or []
    ]


class ReturnIntakeAgent:
    """Applies return documents to batches, the event log and the linen room."""

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

    def _log_returns(self, batch_id: str, items: Mapping[str, int], reason: str) -> int:
        logged = 0
        for category in CATEGORIES:
            quantity = items.get(category, 0)
            if quantity > 0:
                self.store.record_event(
                    InventoryEventType.RETURN,
                    category,
                    quantity,
                    floor=self.config.linen_room,
                    reason=reason,
                    batch_id=batch_id,
                )
                logged += 1
        return logged

    def _document_for(self, batch: LaundryBatch) -> Dict[str, str]:
        mode = DocumentMode.IN_TRANSIT_STATUS
        if batch.has_return_data and batch.status is not BatchStatus.IN_TRANSIT:
            mode = DocumentMode.RETURN_COMPARISON
        rendered = self.documents.render(batch, mode)
        return {"batch_id": batch.batch_id, "mode": rendered.mode.value, "body": rendered.body}

    def record_batch_return(self, batch_id: str, returned_items: Mapping[str, Any], return_image_url: str = "") -> Dict[str, Any]:
        """Close one batch against the delivery counted for it.

        ``returned_items`` is the full count for the batch. Only what exceeds
        earlier partial returns is credited to the linen room.
        """

        with operation_context("agent:return_intake.record_batch_return") as correlation_id:
            try:
                returned = CountVectorInput(items=dict(returned_items)).to_items()
            except ValidationError as exc:
                return validation_failure("Returned counts need review", exc)

            previous = self.store.get_batch(batch_id)
            if previous is None:
                return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
            try:
                batch = self.store.record_return(batch_id, returned, return_image_url)
                arrived = clamp_non_negative(subtract_items(returned, previous.returned_so_far))
                self._log_returns(batch_id, arrived, reason="batch return")
                if has_positive(arrived):
                    self.inventory.apply_stock_delta(self.config.linen_room, arrived, reason="batch_return")
            except InvalidTransitionError as exc:
                return {"status": "invalid_transition", "message": str(exc)}
            except StorageQuotaExceededError as exc:
                return {"status": "storage_full", "message": exc.user_message}

            log_event(
                LOGGER,
                logging.INFO,
                "agent_call_completed",
                agent="return_intake",
                method="record_batch_return",
                batch_id=batch_id,
                over_return=batch.over_return_flagged,
                correlation_id=correlation_id,
            )
            return {
                "status": "received",
                "batch": batch_to_dict(batch),
                "discrepancies": _discrepancy_rows(batch),
                "over_return": batch.over_return_flagged,
                "document": self.documents.render(batch, DocumentMode.RETURN_COMPARISON).body,
            }

    def record_bulk_return(self, returned_items: Mapping[str, Any], return_image_url: str = "") -> Dict[str, Any]:
        """Spread one delivery over every batch in transit, oldest shipment first.

        Quantity no open batch was owed is reported back as unmatched. It is
        only booked into stock, as adjustment events, when the configuration
        asks for it.
        """

        with operation_context("agent:return_intake.record_bulk_return") as correlation_id:
            try:
                returned = CountVectorInput(items=dict(returned_items)).to_items()
            except ValidationError as exc:
                return validation_failure("Returned counts need review", exc)

            try:
                result = self.store.record_bulk_return(returned, return_image_url)
                for batch_id, allocated in result.allocations.items():
                    self._log_returns(batch_id, allocated, reason="bulk return")
                matched = sum_items(result.allocations.values())
                if has_positive(matched):
                    self.inventory.apply_stock_delta(self.config.linen_room, matched, reason="bulk_return")

                unmatched = result.unmatched_items
                if result.has_unmatched:
                    log_event(
                        LOGGER,
                        logging.WARNING,
                        "bulk_return_unmatched",
                        unmatched={k: v for k, v in unmatched.items() if v},
                        recorded=self.config.record_unmatched_returns,
                        correlation_id=correlation_id,
                    )
                    if self.config.record_unmatched_returns:
                        for entry in result.unmatched:
                            self.store.record_event(
                                InventoryEventType.ADJUSTMENT,
                                entry.category,
                                entry.quantity,
                                floor=self.config.linen_room,
                                reason="unmatched bulk return",
                            )
                        self.inventory.apply_stock_delta(self.config.linen_room, unmatched, reason="unmatched_return")
            except StorageQuotaExceededError as exc:
                return {"status": "storage_full", "message": exc.user_message}

            credited = [self.store.get_batch(batch_id) for batch_id in result.allocations]
            return {
                "status": "recorded",
                "allocations": {batch_id: dict(items) for batch_id, items in result.allocations.items()},
                "completed_batch_ids": list(result.completed_batch_ids),
                "unmatched": {k: v for k, v in unmatched.items() if v},
                "documents": [self._document_for(batch) for batch in credited if batch is not None],
            }

    def status_report(self, batch_id: str) -> Dict[str, Any]:
        batch = self.store.get_batch(batch_id)
        if batch is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
        return {"status": "ok", "document": self.documents.render(batch, DocumentMode.IN_TRANSIT_STATUS).body}

    def return_report(self, batch_id: str) -> Dict[str, Any]:
        batch = self.store.get_batch(batch_id)
        if batch is None:
            return {"status": "not_found", "message": f"Batch {batch_id} does not exist."}
        try:
            body = self.documents.render(batch, DocumentMode.RETURN_COMPARISON).body
        except ValueError as exc:
            return {"status": "no_return_data", "message": str(exc)}
        return {"status": "ok", "document": body}


__all__ = ["ReturnIntakeAgent"]
