"""FastAPI server exposing the laundry workflows."""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from laundry_app.app import LaundryControlApp
from memory.serialization import batch_to_dict, sheet_to_dict

app = FastAPI(title="Hotel Laundry Control", version="0.1.0")

_ERROR_CODES = {
    "not_found": 404,
    "needs_review": 422,
    "storage_full": 507,
    "invalid_transition": 409,
    "not_editable": 409,
    "empty": 409,
    "no_return_data": 409,
    "error": 400,
}


@lru_cache(maxsize=1)
def get_laundry_app() -> LaundryControlApp:
    """Build the app from the environment once per process."""

    return LaundryControlApp()


def _raise_for_status(response: Dict[str, Any]) -> Dict[str, Any]:
    code = _ERROR_CODES.get(response.get("status", ""))
    if code:
        raise HTTPException(status_code=code, detail=response.get("message") or response)
    return response


class ImageRequest(BaseModel):
    image_url: str = Field(..., description="data: URL, http(s) URL or server-side path of the sheet photo")


class SheetRequest(BaseModel):
    items: Dict[str, Any] = Field(default_factory=dict)
    image_url: str = ""
    floor: Optional[str] = None
    notes: Optional[str] = None
    sheet_date: Optional[datetime] = None


class BatchRequest(BaseModel):
    collection_fee: Optional[float] = None
    notes: Optional[str] = None
    sheet_ids: Optional[list[str]] = None


class BatchUpdateRequest(BaseModel):
    items: Dict[str, Any]
    collection_fee: Optional[float] = None
    notes: Optional[str] = None


class SendRequest(BaseModel):
    sent_by: str
    expected_return_date: Optional[date] = None


class ReturnRequest(BaseModel):
    items: Dict[str, Any]
    return_image_url: str = ""


class StockRequest(BaseModel):
    items: Dict[str, Any]
    reason: Optional[str] = None


class DamageRequest(BaseModel):
    event_type: str
    floor: str
    category: str
    quantity: int
    reason: Optional[str] = None


class PricingRequest(BaseModel):
    unit_prices: Dict[str, float] = Field(default_factory=dict)
    collection_fee: Optional[float] = None


@app.get("/healthz")
async def healthcheck(laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return {
        "status": "ok",
        "service": "laundry-control",
        "environment": laundry.config.environment or "local",
        "backend": laundry.config.state_store_backend,
    }


@app.post("/sheets/extract")
def extract_sheet(request: ImageRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.sheet_intake.process_image(request.image_url))


@app.get("/sheets")
def list_sheets(laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return {"sheets": [sheet_to_dict(sheet) for sheet in laundry.store.state.pending_sheets]}


@app.post("/sheets", status_code=201)
def accept_sheet(request: SheetRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.sheet_intake.accept_sheet(**request.model_dump()))


@app.delete("/sheets")
def clear_sheets(laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.sheet_intake.clear_sheets())


@app.delete("/sheets/{sheet_id}")
def delete_sheet(sheet_id: str, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.sheet_intake.remove_sheet(sheet_id))


@app.get("/batches")
def list_batches(laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return {"batches": [batch_to_dict(batch) for batch in laundry.store.state.batches]}


@app.post("/batches", status_code=201)
def create_batch(request: BatchRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.dispatch.create_batch(**request.model_dump()))


@app.get("/batches/{batch_id}")
def get_batch(batch_id: str, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    batch = laundry.store.get_batch(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail=f"Batch {batch_id} does not exist.")
    return {"batch": batch_to_dict(batch)}


@app.put("/batches/{batch_id}")
def update_batch(
    batch_id: str, request: BatchUpdateRequest, laundry: LaundryControlApp = Depends(get_laundry_app)
) -> dict:
    return _raise_for_status(laundry.dispatch.update_batch(batch_id, **request.model_dump()))


@app.delete("/batches/{batch_id}")
def delete_batch(batch_id: str, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.dispatch.delete_batch(batch_id))


@app.post("/batches/{batch_id}/send")
def send_batch(batch_id: str, request: SendRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(
        laundry.dispatch.send_batch(
            batch_id=batch_id, sent_by=request.sent_by, expected_return_date=request.expected_return_date
        )
    )


@app.post("/batches/{batch_id}/return")
def record_return(batch_id: str, request: ReturnRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(
        laundry.return_intake.record_batch_return(batch_id, request.items, request.return_image_url)
    )


@app.post("/returns/bulk")
def record_bulk_return(request: ReturnRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.return_intake.record_bulk_return(request.items, request.return_image_url))


@app.get("/inventory")
def inventory_overview(laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return laundry.inventory.overview()


@app.put("/inventory/floors/{floor}")
def set_floor_stock(floor: str, request: StockRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    if request.reason:
        return _raise_for_status(laundry.inventory.adjust_floor_stock(floor, request.items, reason=request.reason))
    return _raise_for_status(laundry.inventory.set_floor_stock(floor, request.items))


@app.post("/inventory/damage")
def record_damage(request: DamageRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.inventory.record_damage_or_loss(**request.model_dump()))


@app.put("/pricing")
def update_pricing(request: PricingRequest, laundry: LaundryControlApp = Depends(get_laundry_app)) -> dict:
    return _raise_for_status(laundry.update_pricing(request.unit_prices, request.collection_fee))


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=8080, reload=False)
