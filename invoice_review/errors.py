"""Exceptions raised by the extraction pipeline and the review store."""


class InvoiceReviewError(Exception):
    """Base class for all invoice_review errors."""


class InvalidInputError(InvoiceReviewError):
    """The uploaded document is not a PDF (or not a usable data URI)."""


class ExtractionFailure(InvoiceReviewError):
    """The model response could not be turned into invoices.

    Only raised inside the extraction client, which converts it to an empty
    result before returning.
    """


class ProcessingError(InvoiceReviewError):
    """A candidate invoice could not be annotated or assembled."""


class RecordNotFoundError(InvoiceReviewError, KeyError):
    """No record with the given id is held by the review store."""
