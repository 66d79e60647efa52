"""Configuration loading, structured logging and operation instrumentation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from pydantic import BaseModel

from laundry_app.config import DEFAULT_GEMINI_MODEL, LaundryConfig
from laundry_app.logging_config import (
    CORRELATION_ID,
    JsonFormatter,
    correlation_context,
    ensure_correlation_id,
    redact_for_log,
)
from tools.observability import instrument_operation

_ENV_KEYS = (
    "APP_ENV",
    "APP_CONFIG_PATH",
    "LAUNDRY_CONFIG_DIR",
    "GOOGLE_API_KEY",
    "MODEL",
    "HOTEL_NAME",
    "STATE_STORE_BACKEND",
    "STATE_STORE_PATH",
    "STORAGE_MAX_BYTES",
    "DEFAULT_COLLECTION_FEE",
    "LINEN_ROOM",
    "RECORD_UNMATCHED_RETURNS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_environment() -> None:
    config = LaundryConfig.from_env()

    assert config.api_key is None
    assert config.model == DEFAULT_GEMINI_MODEL
    assert config.state_store_backend == "json"
    assert config.state_key == "laundry-storage"
    assert config.default_collection_fee == 150.0
    assert config.linen_room == "Rouparia"
    assert config.record_unmatched_returns is False
    assert config.storage_max_bytes is None


def test_environment_yaml_is_merged_with_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "staging.yaml").write_text(
        "\n".join(
            [
                "# staging overrides",
                "hotel_name: \"Hotel Staging\"",
                "state_store_backend: sqlite",
                "default_collection_fee: 99,5",
                "record_unmatched_returns: yes",
                "storage_max_bytes: 5000000",
            ]
        )
    )
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("LAUNDRY_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("GOOGLE_API_KEY", "secret-key")
    monkeypatch.setenv("HOTEL_NAME", "Hotel From Env")

    config = LaundryConfig.from_env()

    assert config.environment == "staging"
    assert config.api_key == "secret-key"
    assert config.hotel_name == "Hotel From Env"
    assert config.state_store_backend == "sqlite"
    assert config.default_collection_fee == pytest.approx(99.5)
    assert config.record_unmatched_returns is True
    assert config.storage_max_bytes == 5_000_000


def test_explicit_config_path_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("linen_room: Lavandaria\nstorage_max_bytes: lots\n")
    monkeypatch.setenv("APP_CONFIG_PATH", str(path))

    config = LaundryConfig.from_env()

    assert config.linen_room == "Lavandaria"
    assert config.storage_max_bytes is None


def test_redaction_masks_images_urls_and_credentials() -> None:
    payload = {
        "api_key": "abc",
        "sent_by": "Maria",
        "note": "contact maria@example.com",
        "preview": "data:image/png;base64,AAAA",
        "nested": [{"link": "https://example.com/x.jpg"}, b"raw"],
        "count": 3,
    }

    scrubbed = redact_for_log(payload)

    assert scrubbed["api_key"] == "[redacted]"
    assert scrubbed["sent_by"] == "[redacted]"
    assert scrubbed["note"] == "contact [redacted-email]"
    assert scrubbed["preview"] == "[redacted-image]"
    assert scrubbed["nested"] == [{"link": "[redacted-url]"}, "[3 bytes]"]
    assert scrubbed["count"] == 3


def test_json_formatter_includes_event_fields_and_correlation() -> None:
    record = logging.LogRecord("laundry", logging.INFO, __file__, 1, "batch_sent", None, None)
    record.event = "batch_sent"
    record.batch_id = "batch_1"
    record.return_image_url = "https://example.com/r.jpg"

    with correlation_context("corr-123"):
        payload = json.loads(JsonFormatter().format(record))

    assert payload["event"] == "batch_sent"
    assert payload["correlation_id"] == "corr-123"
    assert payload["batch_id"] == "batch_1"
    assert payload["return_image_url"] == "[redacted-url]"
    assert payload["level"] == "INFO"


def test_correlation_context_restores_previous_id() -> None:
    outer = ensure_correlation_id("outer")
    with correlation_context("inner") as inner:
        assert CORRELATION_ID.get() == inner == "inner"
    assert CORRELATION_ID.get() == outer


class _Payload(BaseModel):
    quantity: int


def test_instrument_operation_validates_and_reports_failures() -> None:
    @instrument_operation("double", input_model=_Payload, on_validation_error=lambda exc: {"status": "needs_review"})
    def double(quantity: int) -> int:
        return quantity * 2

    @instrument_operation("explode")
    def explode() -> None:
        raise RuntimeError("boom")

    assert double(quantity="4") == 8
    assert double(quantity="four") == {"status": "needs_review"}
    with pytest.raises(RuntimeError):
        explode()


def test_json_formatter_keeps_record_metadata_out_of_the_payload() -> None:
    record = logging.LogRecord("laundry", logging.WARNING, __file__, 7, "sheet_added", None, None)
    record.sent_by = "maria@example.com"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["event"] == "sheet_added"
    assert payload["sent_by"] == "[redacted-email]"
    assert not {"lineno", "pathname", "args", "msg"} & set(payload)
