"""Category count vectors and the arithmetic the ledger performs on them."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from models.taxonomy import CATEGORIES, validate_category

LaundryItems = Dict[str, int]


def empty_items() -> LaundryItems:
    """Return a zero vector over every category."""

    return {category: 0 for category in CATEGORIES}


def coerce_count(value: object) -> int:
    """Loosely parse one count; anything unusable or negative is zero."""

    if isinstance(value, bool):
        return 0
    try:
        count = int(float(str(value).strip().replace(",", ".")))
    except (TypeError, ValueError, OverflowError):
        return 0
    return count if count >= 0 else 0


def coerce_items(partial: Optional[Mapping[str, object]]) -> LaundryItems:
    """Overlay loosely typed counts onto a zero vector.

    Used at read boundaries only (extraction output, form input): unknown
    categories are dropped and missing, negative or unparseable counts
    become zero.
    """

    items = empty_items()
    for raw_key, raw_value in (partial or {}).items():
        try:
            category = validate_category(str(raw_key))
        except ValueError:
            continue
        items[category] = coerce_count(raw_value)
    return items


def validate_items(items: Mapping[str, object]) -> LaundryItems:
    """Check that a vector is complete and non-negative before it is stored.

    Raises a :class:`ValueError` listing missing, unknown or negative entries.
    """

    unknown = sorted(set(items) - set(CATEGORIES))
    missing = [category for category in CATEGORIES if category not in items]
    if unknown or missing:
        raise ValueError(f"Count vector must cover every category (missing={missing}, unknown={unknown})")

    validated: LaundryItems = {}
    for category in CATEGORIES:
        value = items[category]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Count for '{category}' must be a non-negative integer, got {value!r}")
        validated[category] = value
    return validated


def sum_items(vectors: Iterable[Mapping[str, int]]) -> LaundryItems:
    """Component-wise sum; categories absent from a source count as zero."""

    total = empty_items()
    for vector in vectors:
        for category in CATEGORIES:
            total[category] += vector.get(category, 0) or 0
    return total


def subtract_items(minuend: Mapping[str, int], subtrahend: Mapping[str, int]) -> LaundryItems:
    """Signed component-wise difference ``minuend - subtrahend``."""

    return {
        category: (minuend.get(category, 0) or 0) - (subtrahend.get(category, 0) or 0)
        for category in CATEGORIES
    }


def clamp_non_negative(items: Mapping[str, int]) -> LaundryItems:
    return {category: max(0, items.get(category, 0) or 0) for category in CATEGORIES}


def total_quantity(items: Mapping[str, int]) -> int:
    return sum(items.get(category, 0) or 0 for category in CATEGORIES)


def has_positive(items: Mapping[str, int]) -> bool:
    return any((items.get(category, 0) or 0) > 0 for category in CATEGORIES)


__all__ = [
    "LaundryItems",
    "empty_items",
    "coerce_count",
    "coerce_items",
    "validate_items",
    "sum_items",
    "subtract_items",
    "clamp_non_negative",
    "total_quantity",
    "has_positive",
]
