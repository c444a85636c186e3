"""Extract, review and export invoice data from PDF documents."""

from invoice_review.errors import (
    InvalidInputError,
    InvoiceReviewError,
    ProcessingError,
    RecordNotFoundError,
)
from invoice_review.models import AnnotatedField, InvoiceRecord, RawExtractionResult, RawInvoice
from invoice_review.pipeline import process_document
from invoice_review.store import ReviewStore

__all__ = [
    "AnnotatedField",
    "InvalidInputError",
    "InvoiceRecord",
    "InvoiceReviewError",
    "ProcessingError",
    "RawExtractionResult",
    "RawInvoice",
    "RecordNotFoundError",
    "ReviewStore",
    "process_document",
]
