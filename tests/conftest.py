import pytest

from invoice_review.assembly import assemble_record
from invoice_review.annotation import annotate_invoice
from invoice_review.extraction import StaticExtractor
from invoice_review.models import RawExtractionResult, RawInvoice
from invoice_review.store import ReviewStore

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\n%%EOF\n"


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def two_candidates():
    return RawExtractionResult(
        invoices=[
            RawInvoice(
                supplier="Acme Hosting SL",
                date="",
                description="Web hosting, March",
                amount=100.0,
                missing_fields=["date"],
            ),
            RawInvoice(
                supplier="Papeleria Central",
                date="2024-03-15",
                description="Office supplies",
                amount=42.5,
            ),
        ]
    )


@pytest.fixture
def static_extractor(two_candidates):
    return StaticExtractor(two_candidates)


@pytest.fixture
def make_record():
    def _make(supplier="Acme", date="2024-01-31", description="Consulting", amount=100.0,
              missing=(), source_file="invoices.pdf"):
        raw = RawInvoice(
            supplier=supplier,
            date=date,
            description=description,
            amount=amount,
            missing_fields=list(missing),
        )
        return assemble_record(annotate_invoice(raw), source_file)

    return _make


@pytest.fixture
def store():
    return ReviewStore()
