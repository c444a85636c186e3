import threading

import pytest

from invoice_review.errors import RecordNotFoundError
from invoice_review.store import ReviewStore


def test_add_batch_prepends_newest_batch(store, make_record):
    older = [make_record(supplier="Old")]
    newer = [make_record(supplier="New 1"), make_record(supplier="New 2")]

    store.add_batch(older)
    store.add_batch(newer)

    assert [record.supplier.value for record in store.records()] == ["New 1", "New 2", "Old"]


def test_edit_amount_keeps_uncertain_flag(store, make_record):
    record = make_record(amount=100.0, missing=["amount"])
    store.add_batch([record])

    store.update_field(record.id, "amount", 150)

    edited = store.get(record.id)
    assert edited.amount.value == 150.0
    assert edited.amount.uncertain is True
    assert edited.id == record.id
    assert edited.source_file == "invoices.pdf"


def test_edit_string_field(store, make_record):
    record = make_record(date="")
    store.add_batch([record])

    store.update_field(record.id, "date", "2024-04-01")

    assert store.get(record.id).date.value == "2024-04-01"


@pytest.mark.parametrize("field", ["id", "source_file", "total"])
def test_only_value_fields_can_be_edited(store, make_record, field):
    record = make_record()
    store.add_batch([record])

    with pytest.raises(ValueError):
        store.update_field(record.id, field, "x")


@pytest.mark.parametrize("value", ["abc", None, True])
def test_amount_must_be_numeric(store, make_record, value):
    record = make_record()
    store.add_batch([record])

    with pytest.raises(ValueError):
        store.update_field(record.id, "amount", value)
    assert store.get(record.id).amount.value == 100.0


def test_delete_removes_exactly_one(store, make_record):
    records = [make_record(supplier=name) for name in ("A", "B", "C")]
    store.add_batch(records)
    before = {record.id: record.content() for record in store.records() if record.id != records[1].id}

    store.delete(records[1].id)

    assert len(store) == 2
    assert {record.id: record.content() for record in store.records()} == before


def test_unknown_ids_raise(store):
    with pytest.raises(RecordNotFoundError):
        store.delete("missing")
    with pytest.raises(KeyError):
        store.update_field("missing", "supplier", "x")


def test_summary(store, make_record):
    store.add_batch([make_record(amount=10.0), make_record(amount=5.5, missing=["date"])])

    summary = store.summary()

    assert summary.total_amount == pytest.approx(15.5)
    assert summary.processed_count == 2
    assert summary.needs_review_count == 1


def test_concurrent_batches_are_not_lost(store, make_record):
    batches = [[make_record(supplier=f"{n}-{i}") for i in range(5)] for n in range(20)]
    threads = [threading.Thread(target=store.add_batch, args=(batch,)) for batch in batches]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 100


def test_clear(store, make_record):
    store.add_batch([make_record()])
    store.clear()

    assert store.records() == []
