"""Glue between the review store and an editable table (st.data_editor)."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from invoice_review.export import SOURCE_COLUMN, VALUE_COLUMNS
from invoice_review.models import FIELD_NAMES, STRING_FIELDS, InvoiceRecord
from invoice_review.store import ReviewStore

ID_COLUMN = "id"
REVIEW_COLUMN = "Check"
DELETE_COLUMN = "Delete"
UNCERTAIN_MARK = "⚠"

EDITABLE_COLUMNS = [VALUE_COLUMNS[name] for name in FIELD_NAMES] + [DELETE_COLUMN]


def review_hint(record: InvoiceRecord) -> str:
    """Short label listing the fields a reviewer should look at."""
    if not record.needs_review:
        return ""
    return f"{UNCERTAIN_MARK} " + ", ".join(record.uncertain_fields)


def records_to_table(records: Iterable[InvoiceRecord]) -> pd.DataFrame:
    rows = []
    for record in records:
        row = {ID_COLUMN: record.id}
        row.update({VALUE_COLUMNS[name]: record.field(name).value for name in FIELD_NAMES})
        row[SOURCE_COLUMN] = record.source_file
        row[REVIEW_COLUMN] = review_hint(record)
        row[DELETE_COLUMN] = False
        rows.append(row)

    columns = [ID_COLUMN, *(VALUE_COLUMNS[name] for name in FIELD_NAMES), SOURCE_COLUMN, REVIEW_COLUMN, DELETE_COLUMN]
    return pd.DataFrame(rows, columns=columns).set_index(ID_COLUMN)


def _cell_value(field: str, value):
    if pd.isna(value):
        return "" if field in STRING_FIELDS else 0.0
    return value


def apply_table_edits(store: ReviewStore, edited: pd.DataFrame) -> int:
    """Push changed cells from an edited table back into the store. Returns the number of edits."""
    changes = 0
    for record_id, row in edited.iterrows():
        record = store.get(str(record_id))
        for name in FIELD_NAMES:
            value = _cell_value(name, row[VALUE_COLUMNS[name]])
            current = record.field(name).value
            if name in STRING_FIELDS:
                changed = str(value) != current
            else:
                changed = float(value) != current
            if changed:
                store.update_field(record.id, name, value)
                changes += 1
    return changes


def ids_marked_for_deletion(edited: pd.DataFrame) -> list[str]:
    if edited.empty:
        return []
    marked = edited[edited[DELETE_COLUMN].fillna(False).astype(bool)]
    return [str(record_id) for record_id in marked.index]
