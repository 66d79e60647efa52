"""Pricing table used to cost shipped linen."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from models.taxonomy import CATEGORIES, validate_category

DEFAULT_COLLECTION_FEE = 150.0

DEFAULT_UNIT_PRICES: Dict[str, float] = {
    "l_casal": 2.5,
    "l_solteiro": 2.0,
    "fronha": 1.0,
    "t_banho": 1.5,
    "t_rosto": 0.8,
    "piso": 1.2,
    "edredom": 5.0,
    "colcha": 4.0,
    "capa_edredom": 3.0,
    "sala": 2.0,
    "box": 1.0,
    "capa_colchao": 3.5,
    "toalha_mesa": 2.0,
}


@dataclass(frozen=True)
class PricingConfig:
    """Unit price per category plus the flat collection fee charged per batch."""

    unit_prices: Dict[str, float] = field(default_factory=dict)
    collection_fee: float = DEFAULT_COLLECTION_FEE

    def __post_init__(self) -> None:
        prices: Dict[str, float] = {}
        for key, value in self.unit_prices.items():
            price = float(value)
            if price < 0:
                raise ValueError(f"Unit price for '{key}' cannot be negative")
            prices[validate_category(key)] = price
        if float(self.collection_fee) < 0:
            raise ValueError("Collection fee cannot be negative")
        object.__setattr__(self, "unit_prices", prices)
        object.__setattr__(self, "collection_fee", float(self.collection_fee))

    def unit_price(self, category: str) -> float:
        """Unit price for a category; unconfigured categories cost nothing."""

        return self.unit_prices.get(category, 0.0)


def default_pricing() -> PricingConfig:
    return PricingConfig(unit_prices=dict(DEFAULT_UNIT_PRICES), collection_fee=DEFAULT_COLLECTION_FEE)


def calculate_cost(items: Mapping[str, int], pricing: PricingConfig) -> float:
    """Cost of a count vector at the given prices, excluding the collection fee."""

    return sum((items.get(category, 0) or 0) * pricing.unit_price(category) for category in CATEGORIES)


def batch_total_cost(items: Mapping[str, int], pricing: PricingConfig, collection_fee: float) -> float:
    """Item cost plus the flat collection fee for one batch."""

    return calculate_cost(items, pricing) + float(collection_fee)


__all__ = [
    "DEFAULT_COLLECTION_FEE",
    "DEFAULT_UNIT_PRICES",
    "PricingConfig",
    "default_pricing",
    "calculate_cost",
    "batch_total_cost",
]
