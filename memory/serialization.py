"""Conversion between the in-memory laundry state and its persisted JSON form."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from models.batch import BatchStatus, Discrepancy, LaundryBatch, UploadedSheet
from models.inventory import FloorInventory, InventoryEvent, InventoryEventType
from models.laundry_items import coerce_items
from models.pricing import PricingConfig

SCHEMA_VERSION = 1


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


def _parse_date(raw: Optional[str]) -> Optional[date]:
    return date.fromisoformat(raw) if raw else None


def sheet_to_dict(sheet: UploadedSheet) -> Dict[str, Any]:
    return {
        "id": sheet.sheet_id,
        "date": _dt(sheet.date),
        "floor": sheet.floor,
        "image_url": sheet.image_url,
        "items": dict(sheet.items),
        "uploaded_at": _dt(sheet.uploaded_at),
        "notes": sheet.notes,
    }


def sheet_from_dict(raw: Dict[str, Any]) -> UploadedSheet:
    return UploadedSheet(
        sheet_id=raw["id"],
        date=_parse_dt(raw["date"]),
        floor=raw.get("floor"),
        image_url=raw.get("image_url", ""),
        items=coerce_items(raw.get("items")),
        uploaded_at=_parse_dt(raw["uploaded_at"]),
        notes=raw.get("notes"),
    )


def batch_to_dict(batch: LaundryBatch) -> Dict[str, Any]:
    return {
        "id": batch.batch_id,
        "status": batch.status.value,
        "sheets": [sheet_to_dict(sheet) for sheet in batch.sheets],
        "total_items": dict(batch.total_items),
        "collection_fee": batch.collection_fee,
        "total_cost": batch.total_cost,
        "created_at": _dt(batch.created_at),
        "updated_at": _dt(batch.updated_at),
        "sent_date": _dt(batch.sent_date),
        "sent_by": batch.sent_by,
        "expected_return_date": batch.expected_return_date.isoformat() if batch.expected_return_date else None,
        "returned_date": _dt(batch.returned_date),
        "returned_items": dict(batch.returned_items) if batch.returned_items is not None else None,
        "return_image_url": batch.return_image_url,
        "discrepancies": (
            [
                {"category": d.category, "sent": d.sent, "received": d.received, "difference": d.difference}
                for d in batch.discrepancies
            ]
            if batch.discrepancies is not None
            else None
        ),
        "over_return_flagged": batch.over_return_flagged,
        "notes": batch.notes,
    }


def batch_from_dict(raw: Dict[str, Any]) -> LaundryBatch:
    discrepancies = raw.get("discrepancies")
    returned_items = raw.get("returned_items")
    return LaundryBatch(
        batch_id=raw["id"],
        status=BatchStatus(raw["status"]),
        sheets=tuple(sheet_from_dict(sheet) for sheet in raw.get("sheets", [])),
        total_items=coerce_items(raw.get("total_items")),
        collection_fee=float(raw.get("collection_fee", 0.0)),
        total_cost=float(raw.get("total_cost", 0.0)),
        created_at=_parse_dt(raw["created_at"]),
        updated_at=_parse_dt(raw["updated_at"]),
        sent_date=_parse_dt(raw.get("sent_date")),
        sent_by=raw.get("sent_by"),
        expected_return_date=_parse_date(raw.get("expected_return_date")),
        returned_date=_parse_dt(raw.get("returned_date")),
        returned_items=coerce_items(returned_items) if returned_items is not None else None,
        return_image_url=raw.get("return_image_url"),
        discrepancies=[Discrepancy(**entry) for entry in discrepancies] if discrepancies is not None else None,
        over_return_flagged=bool(raw.get("over_return_flagged", False)),
        notes=raw.get("notes"),
    )


def floor_to_dict(record: FloorInventory) -> Dict[str, Any]:
    return {"floor": record.floor, "items": dict(record.items), "last_updated": _dt(record.last_updated)}


def floor_from_dict(raw: Dict[str, Any]) -> FloorInventory:
    return FloorInventory(
        floor=raw["floor"],
        items=coerce_items(raw.get("items")),
        last_updated=_parse_dt(raw["last_updated"]),
    )


def event_to_dict(event: InventoryEvent) -> Dict[str, Any]:
    return {
        "id": event.event_id,
        "date": _dt(event.date),
        "type": event.event_type.value,
        "floor": event.floor,
        "category": event.category,
        "quantity": event.quantity,
        "reason": event.reason,
        "batch_id": event.batch_id,
    }


def event_from_dict(raw: Dict[str, Any]) -> InventoryEvent:
    return InventoryEvent(
        event_id=raw["id"],
        date=_parse_dt(raw["date"]),
        event_type=InventoryEventType(raw["type"]),
        floor=raw.get("floor"),
        category=raw["category"],
        quantity=int(raw["quantity"]),
        reason=raw.get("reason"),
        batch_id=raw.get("batch_id"),
    )


def pricing_to_dict(pricing: PricingConfig) -> Dict[str, Any]:
    return {"unit_prices": dict(pricing.unit_prices), "collection_fee": pricing.collection_fee}


def pricing_from_dict(raw: Dict[str, Any]) -> PricingConfig:
    return PricingConfig(
        unit_prices=dict(raw.get("unit_prices", {})),
        collection_fee=float(raw.get("collection_fee", 0.0)),
    )


__all__ = [
    "SCHEMA_VERSION",
    "sheet_to_dict",
    "sheet_from_dict",
    "batch_to_dict",
    "batch_from_dict",
    "floor_to_dict",
    "floor_from_dict",
    "event_to_dict",
    "event_from_dict",
    "pricing_to_dict",
    "pricing_from_dict",
]
