"""Laundry control app bootstrap."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from agents.dispatch import DispatchAgent
from agents.inventory_keeper import InventoryKeeperAgent
from agents.return_intake import ReturnIntakeAgent
from agents.sheet_intake import SheetIntakeAgent
from laundry_app.config import LaundryConfig
from laundry_app.logging_config import configure_logging, get_logger, log_event
from memory.laundry_store import LaundryStore, utc_now
from memory.state_store import JSONStateStore, SQLiteStateStore, StateStore, StorageQuotaExceededError
from models.pricing import PricingConfig, default_pricing
from tools.count_extraction import (
    CountExtractor,
    FallbackCountExtractor,
    GeminiCountExtractor,
    OcrReader,
    TextPatternCountExtractor,
)
from tools.documents import DocumentGenerator, TextDocumentGenerator

LOGGER = get_logger(__name__)


class LaundryControlApp:
    """Wires configuration, persistence, collaborators and agents together."""

    def __init__(
        self,
        config: LaundryConfig | None = None,
        state_store: StateStore | None = None,
        extractor: CountExtractor | None = None,
        ocr_reader: OcrReader | None = None,
        documents: DocumentGenerator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or LaundryConfig.from_env()
        configure_logging()

        self.state_store = state_store or self._build_state_store()
        self.store = LaundryStore(provider=self.state_store, state_key=self.config.state_key, clock=clock)
        self._seed_pricing()

        self.extractor = extractor or self._build_extractor(ocr_reader)
        self.documents = documents or TextDocumentGenerator(hotel_name=self.config.hotel_name, clock=clock)

        self.inventory = InventoryKeeperAgent(config=self.config, store=self.store)
        self.sheet_intake = SheetIntakeAgent(config=self.config, store=self.store, extractor=self.extractor)
        self.dispatch = DispatchAgent(
            config=self.config, store=self.store, inventory=self.inventory, documents=self.documents
        )
        self.return_intake = ReturnIntakeAgent(
            config=self.config, store=self.store, inventory=self.inventory, documents=self.documents
        )
        log_event(
            LOGGER,
            logging.INFO,
            "laundry_app_ready",
            backend=self.config.state_store_backend,
            environment=self.config.environment or "local",
            extractor=self.extractor.source,
        )

    def _build_state_store(self) -> StateStore:
        if self.config.state_store_backend.lower() == "sqlite":
            return SQLiteStateStore(
                self.config.state_store_path or "data/laundry_state.db", max_bytes=self.config.storage_max_bytes
            )
        return JSONStateStore(self.config.state_store_path or "data/state", max_bytes=self.config.storage_max_bytes)

    def _build_extractor(self, ocr_reader: OcrReader | None) -> CountExtractor:
        gemini = GeminiCountExtractor(api_key=self.config.api_key, model_name=self.config.model)
        if ocr_reader is None:
            return gemini
        return FallbackCountExtractor(gemini, TextPatternCountExtractor(ocr_reader))

    def _seed_pricing(self) -> None:
        """Apply the configured collection fee to a store that still has factory pricing."""

        pricing = self.store.state.pricing
        if pricing == default_pricing() and pricing.collection_fee != self.config.default_collection_fee:
            self.store.update_pricing(
                PricingConfig(unit_prices=dict(pricing.unit_prices), collection_fee=self.config.default_collection_fee)
            )

    def update_pricing(self, unit_prices: Dict[str, float], collection_fee: Optional[float] = None) -> Dict[str, Any]:
        current = self.store.state.pricing
        merged = {**current.unit_prices, **unit_prices}
        fee = current.collection_fee if collection_fee is None else collection_fee
        try:
            pricing = self.store.update_pricing(PricingConfig(unit_prices=merged, collection_fee=fee))
        except ValueError as exc:
            return {"status": "error", "message": str(exc)}
        except StorageQuotaExceededError as exc:
            return {"status": "storage_full", "message": exc.user_message}
        return {"status": "ok", "unit_prices": dict(pricing.unit_prices), "collection_fee": pricing.collection_fee}


__all__ = ["LaundryControlApp"]
