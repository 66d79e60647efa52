"""Pydantic schemas for validating workflow inputs and collaborator payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.laundry_items import LaundryItems, coerce_count, coerce_items
from models.taxonomy import CATEGORIES, validate_category


class ExtractedCounts(BaseModel):
    """Counts read from a sheet photograph.

    Missing categories default to zero, unknown keys are ignored and anything
    that is not a non-negative number is treated as zero rather than failing
    the whole extraction.
    """

    model_config = ConfigDict(extra="ignore")

    l_casal: int = 0
    l_solteiro: int = 0
    fronha: int = 0
    t_banho: int = 0
    t_rosto: int = 0
    piso: int = 0
    edredom: int = 0
    colcha: int = 0
    capa_edredom: int = 0
    sala: int = 0
    box: int = 0
    capa_colchao: int = 0
    toalha_mesa: int = 0

    @field_validator(*CATEGORIES, mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return 0 if value is None else coerce_count(value)

    def to_items(self) -> LaundryItems:
        return {category: getattr(self, category) for category in CATEGORIES}


class CountVectorInput(BaseModel):
    """Loose count mapping from a form or API body, overlaid on a zero vector."""

    items: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("items")
    @classmethod
    def _known_categories(cls, items: Dict[str, Any]) -> Dict[str, Any]:
        for key in items:
            validate_category(key)
        return items

    def to_items(self) -> LaundryItems:
        return coerce_items(self.items)


class SheetInput(CountVectorInput):
    """Reviewer-accepted sheet data."""

    image_url: str = ""
    floor: Optional[str] = None
    notes: Optional[str] = None
    sheet_date: Optional[datetime] = None

    @field_validator("floor", "notes")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None


class SendBatchInput(BaseModel):
    """Input contract for dispatching a batch."""

    batch_id: str = Field(min_length=1)
    sent_by: str = Field(min_length=1)
    expected_return_date: Optional[date] = None

    @field_validator("sent_by")
    @classmethod
    def _non_blank_sender(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("sent_by cannot be blank")
        return stripped


class DamageInput(BaseModel):
    """Input contract for recording damaged or lost linen on a floor."""

    event_type: Literal["damage", "loss"]
    floor: str = Field(min_length=1)
    category: str
    quantity: int = Field(gt=0)
    reason: Optional[str] = None

    @field_validator("floor")
    @classmethod
    def _non_blank_floor(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("floor cannot be blank")
        return stripped

    @field_validator("category")
    @classmethod
    def _canonical_category(cls, value: str) -> str:
        return validate_category(value)


class ValidationResult(BaseModel):
    """Wrapper returned to callers when validation fails."""

    status: Literal["needs_review"] = "needs_review"
    message: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, exc: ValidationError) -> Dict[str, Any]:
    """Translate Pydantic errors into a consistent review payload."""

    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]
    return ValidationResult(message=message, details=details).model_dump()


__all__ = [
    "ExtractedCounts",
    "CountVectorInput",
    "SheetInput",
    "SendBatchInput",
    "DamageInput",
    "ValidationResult",
    "validation_failure",
]
