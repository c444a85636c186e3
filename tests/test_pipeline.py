import asyncio
import random

import pytest

from invoice_review.annotation import simulated_confidence
from invoice_review.errors import InvalidInputError, ProcessingError
from invoice_review.extraction import StaticExtractor
from invoice_review.models import RawInvoice
from invoice_review.pipeline import process_document
from invoice_review.store import ReviewStore


@pytest.mark.asyncio
async def test_non_pdf_is_rejected_before_extraction(static_extractor, pdf_bytes):
    with pytest.raises(InvalidInputError):
        await process_document(pdf_bytes, "image/png", "scan.png", static_extractor)

    assert static_extractor.calls == []


@pytest.mark.asyncio
async def test_zero_invoices_is_an_empty_batch(pdf_bytes):
    store = ReviewStore()

    records = await process_document(pdf_bytes, "application/pdf", "blank.pdf", StaticExtractor())
    added = store.add_batch(records)

    assert records == []
    assert added == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_two_candidates_become_two_records(static_extractor, pdf_bytes):
    records = await process_document(pdf_bytes, "application/pdf", "march.pdf", static_extractor)

    assert len(records) == 2
    first, second = records
    assert first.date.uncertain is True
    assert first.date.value == ""
    assert first.supplier.uncertain is False
    assert second.needs_review is False
    assert {record.source_file for record in records} == {"march.pdf"}
    assert first.id != second.id
    assert static_extractor.calls[0].startswith("data:application/pdf;base64,")


@pytest.mark.asyncio
async def test_low_confidence_scores_flag_fields(static_extractor, pdf_bytes):
    def low_amount(invoice):
        return {"amount": 0.5, "supplier": 0.8}

    records = await process_document(pdf_bytes, "application/pdf", "m.pdf", static_extractor, low_amount)

    assert all(record.amount.uncertain for record in records)
    assert not any(record.supplier.uncertain for record in records)


@pytest.mark.asyncio
async def test_simulated_confidence_runs_through_pipeline(static_extractor, pdf_bytes):
    records = await process_document(
        pdf_bytes, "application/pdf", "m.pdf", static_extractor, simulated_confidence(random.Random(1))
    )

    assert len(records) == 2
    # The explicit signal still wins whatever the simulated score.
    assert records[0].date.uncertain is True


@pytest.mark.asyncio
async def test_annotation_failure_is_a_processing_error(static_extractor, pdf_bytes):
    store = ReviewStore()

    def broken(invoice):
        if invoice.supplier == "Papeleria Central":
            return {"amount": 7.0}
        return {}

    with pytest.raises(ProcessingError):
        store.add_batch(await process_document(pdf_bytes, "application/pdf", "m.pdf", static_extractor, broken))

    assert len(store) == 0


@pytest.mark.asyncio
async def test_concurrent_runs_each_keep_their_whole_batch(pdf_bytes):
    store = ReviewStore()
    one = StaticExtractor([RawInvoice(supplier="A", date="2024-01-01", description="a", amount=1)])
    three = StaticExtractor(
        [RawInvoice(supplier=f"B{i}", date="2024-01-01", description="b", amount=2) for i in range(3)]
    )

    async def run(extractor, name):
        records = await process_document(pdf_bytes, "application/pdf", name, extractor)
        store.add_batch(records)

    await asyncio.gather(run(one, "one.pdf"), run(three, "three.pdf"), run(StaticExtractor(), "none.pdf"))

    sources = [record.source_file for record in store.records()]
    assert len(sources) == 4
    assert sources.count("three.pdf") == 3
    # Batches are contiguous.
    first_three = sources.index("three.pdf")
    assert sources[first_three:first_three + 3] == ["three.pdf"] * 3

