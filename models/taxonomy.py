"""Canonical linen categories handled by the laundry service.

The set is closed: every count vector carries exactly these thirteen keys.
Display labels follow the abbreviations printed on the hotel's handwritten
collection sheets, which is also what extraction prompts and documents show.
"""

import re
import unicodedata
from typing import Dict, Tuple

CATEGORIES: Tuple[str, ...] = (
    "l_casal",
    "l_solteiro",
    "fronha",
    "t_banho",
    "t_rosto",
    "piso",
    "edredom",
    "colcha",
    "capa_edredom",
    "sala",
    "box",
    "capa_colchao",
    "toalha_mesa",
)

CATEGORY_LABELS: Dict[str, str] = {
    "l_casal": "L. Casal",
    "l_solteiro": "L. Solteiro",
    "fronha": "Fronha",
    "t_banho": "T. Banho",
    "t_rosto": "T. Rosto",
    "piso": "Piso",
    "edredom": "Edredom",
    "colcha": "Colcha",
    "capa_edredom": "Capa Edredom",
    "sala": "Sala",
    "box": "Box",
    "capa_colchao": "Capa Colchão",
    "toalha_mesa": "Toalha Mesa",
}

CATEGORY_DESCRIPTIONS: Dict[str, str] = {
    "l_casal": "Lençol de Casal",
    "l_solteiro": "Lençol de Solteiro",
    "fronha": "Fronha",
    "t_banho": "Toalha de Banho",
    "t_rosto": "Toalha de Rosto",
    "piso": "Tapete de Piso",
    "edredom": "Edredom",
    "colcha": "Colcha",
    "capa_edredom": "Capa de Edredom",
    "sala": "Sala",
    "box": "Tapete de Box",
    "capa_colchao": "Capa de Colchão",
    "toalha_mesa": "Toalha de Mesa",
}


def _normalize_key(value: str) -> str:
    """Normalise a free-form label ("L. Casal", "capa colchão") into a key."""

    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "_", folded.strip().lower()).strip("_")


_LABEL_INDEX: Dict[str, str] = {
    **{_normalize_key(label): key for key, label in CATEGORY_LABELS.items()},
    **{_normalize_key(text): key for key, text in CATEGORY_DESCRIPTIONS.items()},
    **{key: key for key in CATEGORIES},
}


def validate_category(value: str) -> str:
    """Validate and normalise a category key or display label.

    Raises a :class:`ValueError` if the value does not name one of the
    canonical categories.
    """

    key = _LABEL_INDEX.get(_normalize_key(str(value)))
    if key is None:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {list(CATEGORIES)}")
    return key


def category_label(category: str) -> str:
    return CATEGORY_LABELS[validate_category(category)]


__all__ = [
    "CATEGORIES",
    "CATEGORY_LABELS",
    "CATEGORY_DESCRIPTIONS",
    "validate_category",
    "category_label",
]
