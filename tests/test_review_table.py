from invoice_review.export import export_columns
from invoice_review.review_table import (
    DELETE_COLUMN,
    REVIEW_COLUMN,
    apply_table_edits,
    ids_marked_for_deletion,
    records_to_table,
)


def test_table_is_indexed_by_record_id(make_record):
    records = [make_record(), make_record(missing=["amount", "date"])]

    table = records_to_table(records)

    assert list(table.index) == [record.id for record in records]
    assert table.loc[records[0].id, REVIEW_COLUMN] == ""
    assert table.loc[records[1].id, REVIEW_COLUMN] == "⚠ date, amount"
    assert not table[DELETE_COLUMN].any()


def test_table_uses_the_export_column_names(make_record):
    table = records_to_table([make_record(source_file="march.pdf")])

    shared = [column for column in table.columns if column in export_columns()]
    assert shared == ["Supplier", "Date", "Description", "Amount", "Source File"]
    assert table.iloc[0]["Source File"] == "march.pdf"


def test_unchanged_table_applies_nothing(store, make_record):
    store.add_batch([make_record(), make_record()])

    assert apply_table_edits(store, records_to_table(store.records())) == 0


def test_edited_cells_reach_the_store(store, make_record):
    record = make_record(amount=100.0, missing=["amount"])
    store.add_batch([record])
    table = records_to_table(store.records())

    table.loc[record.id, "Amount"] = 150.0
    table.loc[record.id, "Supplier"] = "Acme Corp"

    assert apply_table_edits(store, table) == 2
    stored = store.get(record.id)
    assert stored.amount.value == 150.0
    assert stored.amount.uncertain is True
    assert stored.supplier.value == "Acme Corp"


def test_cleared_cells_become_zero_values(store, make_record):
    record = make_record()
    store.add_batch([record])
    table = records_to_table(store.records())

    table.loc[record.id, "Amount"] = None
    table.loc[record.id, "Description"] = None
    apply_table_edits(store, table)

    stored = store.get(record.id)
    assert stored.amount.value == 0.0
    assert stored.description.value == ""


def test_rows_marked_for_deletion(make_record):
    records = [make_record(), make_record(), make_record()]
    table = records_to_table(records)
    table.loc[records[2].id, DELETE_COLUMN] = True

    assert ids_marked_for_deletion(table) == [records[2].id]
    assert ids_marked_for_deletion(records_to_table([])) == []
