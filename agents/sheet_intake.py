"""Sheet intake agent: photograph in, reviewed pending sheet out."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from laundry_app.config import LaundryConfig
from laundry_app.logging_config import get_logger, log_event, operation_context
from logic.validation import SheetInput, validation_failure
from memory.laundry_store import LaundryStore
from memory.serialization import sheet_to_dict
from memory.state_store import StorageQuotaExceededError
from models.batch import UploadedSheet
from models.laundry_items import coerce_items
from tools.count_extraction import CountExtractor, ExtractionError, looks_empty
from tools.image_loader import ImageLoadError, LoadedImage, load_image
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)


def new_sheet_id() -> str:
    return f"sheet_{uuid.uuid4().hex[:12]}"


class SheetIntakeAgent:
    """Reads sheet photographs into drafts and files accepted sheets as pending."""

    def __init__(
        self,
        config: LaundryConfig,
        store: LaundryStore,
        extractor: CountExtractor,
        image_loader: Callable[..., LoadedImage] = load_image,
    ) -> None:
        self.config = config
        self.store = store
        self.extractor = extractor
        self.image_loader = image_loader

    def process_image(self, image_reference: str) -> Dict[str, Any]:
        """Extract a draft count vector for the reviewer to confirm.

        Failures come back as ``{"status": "error"}`` with a message that can
        be shown to the operator; nothing is stored at this stage.
        """

        with operation_context("agent:sheet_intake.process_image") as correlation_id:
            try:
                image = self.image_loader(image_reference, timeout=self.config.image_timeout_seconds)
                result = self.extractor.extract(image)
            except (ImageLoadError, ExtractionError) as exc:
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "sheet_extraction_failed",
                    error=str(exc),
                    correlation_id=correlation_id,
                )
                return {"status": "error", "message": str(exc)}

            log_event(
                LOGGER,
                logging.INFO,
                "agent_call_completed",
                agent="sheet_intake",
                method="process_image",
                source=result.source,
                empty=looks_empty(result),
                correlation_id=correlation_id,
            )
            return {
                "status": "draft",
                "items": result.items,
                "source": result.source,
                "confidence": result.confidence,
                "needs_attention": looks_empty(result),
            }

    @instrument_operation(
        "accept_sheet",
        input_model=SheetInput,
        on_validation_error=lambda exc: validation_failure("Sheet data needs review", exc),
    )
    def accept_sheet(
        self,
        items: Dict[str, Any],
        image_url: str = "",
        floor: Optional[str] = None,
        notes: Optional[str] = None,
        sheet_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """File reviewer-confirmed counts as a pending sheet."""

        now = self.store.clock()
        sheet = UploadedSheet(
            sheet_id=new_sheet_id(),
            date=sheet_date or now,
            image_url=image_url,
            items=coerce_items(items),
            uploaded_at=now,
            floor=floor,
            notes=notes,
        )
        try:
            self.store.add_pending_sheet(sheet)
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        return {"status": "pending", "sheet": sheet_to_dict(sheet)}

    def remove_sheet(self, sheet_id: str) -> Dict[str, Any]:
        try:
            removed = self.store.remove_pending_sheet(sheet_id)
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        return {"status": "removed" if removed else "not_found", "sheet_id": sheet_id}

    def clear_sheets(self) -> Dict[str, Any]:
        return {"status": "cleared", "cleared": self.store.clear_pending_sheets()}


__all__ = ["SheetIntakeAgent", "new_sheet_id"]
