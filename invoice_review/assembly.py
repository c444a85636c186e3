"""Build reviewable InvoiceRecords from annotated candidates."""

from __future__ import annotations

import uuid

from invoice_review.models import AnnotatedInvoice, InvoiceRecord


def new_record_id() -> str:
    return str(uuid.uuid4())


def assemble_record(annotated: AnnotatedInvoice, source_file: str) -> InvoiceRecord:
    """Attach a fresh id and the originating filename to one annotated invoice."""
    return InvoiceRecord(
        id=new_record_id(),
        source_file=source_file,
        supplier=annotated.supplier.model_copy(),
        date=annotated.date.model_copy(),
        description=annotated.description.model_copy(),
        amount=annotated.amount.model_copy(),
    )
