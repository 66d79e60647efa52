"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.batch import BatchStatus, Discrepancy, LaundryBatch, UploadedSheet, calculate_discrepancies
from models.inventory import FloorInventory, InventoryEvent, InventoryEventType
from models.laundry_items import LaundryItems, coerce_items, empty_items, sum_items
from models.pricing import PricingConfig, calculate_cost, default_pricing

__all__ = [
    "BatchStatus",
    "Discrepancy",
    "LaundryBatch",
    "UploadedSheet",
    "calculate_discrepancies",
    "FloorInventory",
    "InventoryEvent",
    "InventoryEventType",
    "LaundryItems",
    "coerce_items",
    "empty_items",
    "sum_items",
    "PricingConfig",
    "calculate_cost",
    "default_pricing",
]
