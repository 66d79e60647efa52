"""Resolve sheet photograph references to raw image bytes."""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class ImageLoadError(RuntimeError):
    """Raised when an image reference cannot be turned into bytes."""


@dataclass(frozen=True)
class LoadedImage:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


def _decode_data_url(reference: str) -> LoadedImage:
    header, _, payload = reference.partition(",")
    if not payload:
        raise ImageLoadError("Data URL has no payload")
    mime_type = header[len("data:"):].split(";")[0] or DEFAULT_MIME_TYPE
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageLoadError(f"Data URL payload is not valid base64: {exc}") from exc
    return LoadedImage(data=data, mime_type=mime_type)


def _fetch_url(url: str, timeout: Optional[float]) -> LoadedImage:
    logger.info("Fetching sheet image", extra={"host": urlparse(url).netloc})
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise ImageLoadError(f"Network error fetching image: {exc}") from exc

    if not 200 <= response.status_code < 300:
        logger.warning("Non-success status fetching image", extra={"status_code": response.status_code})
        raise ImageLoadError(f"Failed to fetch image: HTTP {response.status_code}")

    content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
    return LoadedImage(data=response.content, mime_type=content_type or DEFAULT_MIME_TYPE)


def _read_path(reference: str) -> LoadedImage:
    path = Path(reference)
    if not path.is_file():
        raise ImageLoadError(f"Image file not found: {path.name}")
    mime_type, _ = mimetypes.guess_type(path.name)
    return LoadedImage(data=path.read_bytes(), mime_type=mime_type or DEFAULT_MIME_TYPE)


def load_image(reference: str, timeout: Optional[float] = 10.0) -> LoadedImage:
    """Load an image from a ``data:`` URL, an HTTP(S) URL or a local path.

    Raises:
        ImageLoadError: If the reference is empty, unreachable or undecodable.
    """

    reference = (reference or "").strip()
    if not reference:
        raise ImageLoadError("No image reference provided")
    if reference.startswith("data:"):
        return _decode_data_url(reference)
    parsed = urlparse(reference)
    if parsed.scheme in {"http", "https"}:
        if not parsed.netloc:
            raise ImageLoadError("Image URL is missing a host")
        return _fetch_url(reference, timeout)
    return _read_path(reference)


def to_data_url(image: LoadedImage) -> str:
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.mime_type};base64,{encoded}"


__all__ = ["DEFAULT_MIME_TYPE", "ImageLoadError", "LoadedImage", "load_image", "to_data_url"]
