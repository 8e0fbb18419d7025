"""Utilities for handling hand-drawn report signatures."""

from __future__ import annotations

import base64
import binascii
import io
from typing import Mapping

from PIL import Image, UnidentifiedImageError

from ..config import MAX_SIGNATURE_BYTES

SIGNATURE_ROLES: Mapping[str, str] = {
    "referee": "Referee",
    "captainA": "Captain A",
    "captainB": "Captain B",
}
PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class SignatureError(Exception):
    """Raised when a submitted signature cannot be accepted."""

    def __init__(self, status_code: int, detail: str, code: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.code = code


def decode_signature(data_url: str, *, max_size: int = MAX_SIGNATURE_BYTES) -> bytes:
    """Validate a PNG data URL and return the decoded image bytes.

    Only ``data:image/png;base64,`` payloads are accepted, mirroring what a
    canvas ``toDataURL()`` call produces.
    """

    if not isinstance(data_url, str) or not data_url.startswith(PNG_DATA_URL_PREFIX):
        raise SignatureError(415, "Unsupported media type", "signature_media_type")

    encoded = data_url[len(PNG_DATA_URL_PREFIX):].strip()
    # base64 inflates by 4/3, reject oversized payloads before decoding
    if len(encoded) * 3 // 4 > max_size:
        raise SignatureError(413, "Signature too large", "signature_too_large")

    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise SignatureError(400, "Signature is not valid base64", "signature_invalid")

    if not raw:
        raise SignatureError(400, "Signature is empty", "signature_invalid")
    if len(raw) > max_size:
        raise SignatureError(413, "Signature too large", "signature_too_large")

    try:
        with Image.open(io.BytesIO(raw)) as img:
            detected_format = (img.format or "").lower()
            img.verify()
    except (UnidentifiedImageError, OSError):
        raise SignatureError(415, "Unsupported media type", "signature_media_type")

    if detected_format != "png":
        raise SignatureError(415, "Unsupported media type", "signature_media_type")

    return raw


def normalize_signature(data_url: str, *, max_size: int = MAX_SIGNATURE_BYTES) -> str:
    """Return a canonical data URL for a validated signature."""

    raw = decode_signature(data_url, max_size=max_size)
    return PNG_DATA_URL_PREFIX + base64.b64encode(raw).decode("ascii")
