"""Image-to-counts collaborators for handwritten laundry sheets.

Extraction is best effort: the reviewer confirms every draft, so partial or
garbled output is overlaid on a zero vector instead of being rejected. Only a
complete failure (no key, no response, nothing parseable) raises
:class:`ExtractionError`, whose message is meant for the operator.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import google.generativeai as genai
from pydantic import ValidationError

from laundry_app.config import DEFAULT_GEMINI_MODEL
from laundry_app.logging_config import get_logger, log_event
from logic.validation import ExtractedCounts
from models.laundry_items import LaundryItems, coerce_items, has_positive
from models.taxonomy import CATEGORIES, CATEGORY_DESCRIPTIONS, category_label
from tools.image_loader import LoadedImage

LOGGER = get_logger(__name__)

OcrReader = Callable[[bytes], Tuple[str, float]]


class ExtractionError(RuntimeError):
    """Raised when no counts at all could be read from a sheet."""


@dataclass(frozen=True)
class ExtractionResult:
    items: LaundryItems
    source: str
    confidence: Optional[float] = None
    raw_text: Optional[str] = None


class CountExtractor(ABC):
    """Turns one sheet photograph into a draft count vector."""

    source = "unknown"

    @abstractmethod
    def extract(self, image: LoadedImage) -> ExtractionResult:
        """Return a complete count vector for ``image``."""


def _category_lines() -> str:
    return "\n".join(
        f"- {category_label(category)} ({CATEGORY_DESCRIPTIONS[category]})" for category in CATEGORIES
    )


EXTRACTION_PROMPT = (
    "You extract data from handwritten hotel laundry sheets.\n\n"
    "Read the photographed sheet and report the quantity written for each item type:\n"
    f"{_category_lines()}\n\n"
    "Reply with ONLY a JSON object using exactly these keys:\n"
    + json.dumps({category: 0 for category in CATEGORIES}, indent=2)
    + "\n\nUse 0 for any item you cannot identify. If a category appears on several "
    "lines or days, add them together. Do not wrap the JSON in markdown or add explanations."
)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


def parse_counts_json(text: str) -> LaundryItems:
    """Read the first JSON object out of a model reply.

    Markdown fences and surrounding prose are tolerated; category values that
    are missing or unusable become zero.
    """

    cleaned = _FENCE_PATTERN.sub("", (text or "").strip())
    match = _OBJECT_PATTERN.search(cleaned)
    if not match:
        raise ExtractionError("The model reply did not contain any counts.")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"The model reply was not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ExtractionError("The model reply was not a JSON object.")
    try:
        return ExtractedCounts.model_validate(payload).to_items()
    except ValidationError as exc:
        raise ExtractionError("The model reply could not be read as counts.") from exc


class GeminiCountExtractor(CountExtractor):
    """Reads sheets with a Gemini multimodal model."""

    source = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = DEFAULT_GEMINI_MODEL,
        model: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self._model = model

    def _get_model(self) -> Any:
        if self._model is None:
            if not self.api_key:
                raise ExtractionError("Gemini API key is not configured. Set GOOGLE_API_KEY.")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def extract(self, image: LoadedImage) -> ExtractionResult:
        model = self._get_model()
        try:
            response = model.generate_content(
                [EXTRACTION_PROMPT, {"mime_type": image.mime_type, "data": image.data}]
            )
            text = response.text
        except Exception as exc:
            log_event(LOGGER, logging.ERROR, "gemini_extraction_failed", model_name=self.model_name, error=str(exc))
            raise ExtractionError(f"Could not process the image with Gemini: {exc}") from exc

        items = parse_counts_json(text)
        log_event(LOGGER, logging.INFO, "gemini_extraction_completed", model_name=self.model_name)
        return ExtractionResult(items=items, source=self.source, raw_text=text)


# Specific categories come first: a line is attributed to the first category
# whose pattern matches, so "capa edredom" never also counts as "edredom".
TEXT_PATTERNS: Dict[str, List[re.Pattern]] = {
    category: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
    for category, patterns in (
        ("capa_edredom", [r"capa\s*edredo[mn]", r"c\.?\s*edredom"]),
        ("capa_colchao", [r"capa\s*colch[aã]o", r"c\.?\s*colch[aã]o", r"colch[aã]o", r"capa\s*col"]),
        ("toalha_mesa", [r"toalha\s*mesa", r"t\.?\s*mesa", r"\bmesa\b"]),
        ("l_casal", [r"l\.?\s*casal", r"len[cç]ol\s*casal", r"\bcasal\b", r"l\s*cas"]),
        ("l_solteiro", [r"l\.?\s*solteiro", r"len[cç]ol\s*solteiro", r"\bsolteiro\b", r"l\s*solt"]),
        ("fronha", [r"fronha", r"fronia"]),
        ("t_banho", [r"t\.?\s*banho", r"toalha\s*banho", r"\bbanho\b", r"t\s*ban"]),
        ("t_rosto", [r"t\.?\s*rosto", r"toalha\s*rosto", r"\brosto\b", r"t\s*rost"]),
        ("piso", [r"piso", r"plso", r"p1so"]),
        ("edredom", [r"edredo[mn]", r"edred"]),
        ("colcha", [r"colcha", r"coicha"]),
        ("sala", [r"sala"]),
        ("box", [r"b[o0]x"]),
    )
}
_NUMBER_PATTERN = re.compile(r"\d+")


def extract_items_from_text(text: str) -> Dict[str, int]:
    """Match OCR lines against handwriting-tolerant category patterns.

    The last number between 0 and 999 on a matching line is taken as the
    quantity; a later line for the same category overrides an earlier one.
    """

    found: Dict[str, int] = {}
    for line in (text or "").splitlines():
        line = line.strip()
        numbers = [int(token) for token in _NUMBER_PATTERN.findall(line) if int(token) < 1000]
        if not numbers:
            continue
        for category, patterns in TEXT_PATTERNS.items():
            if any(pattern.search(line) for pattern in patterns):
                found[category] = numbers[-1]
                break
    return found


class TextPatternCountExtractor(CountExtractor):
    """Fallback reader: OCR text plus keyword patterns."""

    source = "ocr"

    def __init__(self, reader: OcrReader) -> None:
        self.reader = reader

    def extract(self, image: LoadedImage) -> ExtractionResult:
        try:
            text, confidence = self.reader(image.data)
        except Exception as exc:
            raise ExtractionError(f"Text recognition failed: {exc}") from exc
        found = extract_items_from_text(text)
        if not found:
            log_event(LOGGER, logging.WARNING, "ocr_no_categories_matched", characters=len(text or ""))
        return ExtractionResult(items=coerce_items(found), source=self.source, confidence=confidence, raw_text=text)


class FallbackCountExtractor(CountExtractor):
    """Try the primary extractor, then the fallback when it fails outright."""

    def __init__(self, primary: CountExtractor, fallback: CountExtractor) -> None:
        self.primary = primary
        self.fallback = fallback

    @property
    def source(self) -> str:  # type: ignore[override]
        return f"{self.primary.source}+{self.fallback.source}"

    def extract(self, image: LoadedImage) -> ExtractionResult:
        try:
            return self.primary.extract(image)
        except ExtractionError as exc:
            log_event(
                LOGGER,
                logging.WARNING,
                "extraction_fallback_used",
                primary=self.primary.source,
                fallback=self.fallback.source,
                error=str(exc),
            )
            return self.fallback.extract(image)


def looks_empty(result: ExtractionResult) -> bool:
    return not has_positive(result.items)


__all__ = [
    "EXTRACTION_PROMPT",
    "ExtractionError",
    "ExtractionResult",
    "CountExtractor",
    "GeminiCountExtractor",
    "TextPatternCountExtractor",
    "FallbackCountExtractor",
    "OcrReader",
    "extract_items_from_text",
    "looks_empty",
    "parse_counts_json",
]
