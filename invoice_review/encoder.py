"""Turn an uploaded PDF into a self-describing data URI and back."""

from __future__ import annotations

import base64
import binascii
import logging

from invoice_review.config import PDF_MIME_TYPE
from invoice_review.errors import InvalidInputError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"
BASE64_MARKER = ";base64,"


def is_pdf(mime_type: str | None) -> bool:
    """Return True when the upload MIME type is a PDF."""
    return (mime_type or "").strip().lower() == PDF_MIME_TYPE


def ensure_pdf(mime_type: str | None) -> None:
    """Reject anything whose declared type is not application/pdf."""
    if not is_pdf(mime_type):
        logger.info("Rejected upload with declared type %r", mime_type)
        raise InvalidInputError(f"Expected a PDF file, got {mime_type or 'unknown type'!r}.")


def encode_document(file_bytes: bytes, mime_type: str) -> str:
    """Encode a PDF payload as `data:application/pdf;base64,<payload>`."""
    ensure_pdf(mime_type)
    encoded = base64.b64encode(file_bytes).decode("utf-8")
    return f"{DATA_URI_PREFIX}{PDF_MIME_TYPE}{BASE64_MARKER}{encoded}"


def decode_document(data_uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its MIME type and raw bytes."""
    if not data_uri.startswith(DATA_URI_PREFIX) or BASE64_MARKER not in data_uri:
        raise InvalidInputError("Document is not a base64 data URI.")

    header, payload = data_uri[len(DATA_URI_PREFIX) :].split(BASE64_MARKER, 1)
    try:
        return header, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Document payload is not valid base64.") from exc
