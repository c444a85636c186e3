"""Spreadsheet export of the records currently under review."""

from __future__ import annotations

from io import BytesIO
from typing import Iterable

import pandas as pd
from openpyxl.utils import get_column_letter

from invoice_review.models import FIELD_NAMES, InvoiceRecord

SHEET_NAME = "Invoices"
DEFAULT_EXPORT_NAME = "invoices_export.xlsx"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

VALUE_COLUMNS = {
    "supplier": "Supplier",
    "date": "Date",
    "description": "Description",
    "amount": "Amount",
}
SOURCE_COLUMN = "Source File"
REVIEW_COLUMN = "Needs Review"

COLUMN_WIDTHS = {
    "Supplier": 30,
    "Date": 15,
    "Description": 50,
    "Amount": 15,
    SOURCE_COLUMN: 30,
}
FLAG_COLUMN_WIDTH = 14


def uncertain_column(field: str) -> str:
    return f"{VALUE_COLUMNS[field]} Uncertain"


def export_columns() -> list[str]:
    columns = [VALUE_COLUMNS[name] for name in FIELD_NAMES] + [SOURCE_COLUMN]
    columns += [uncertain_column(name) for name in FIELD_NAMES] + [REVIEW_COLUMN]
    return columns


def records_to_dataframe(records: Iterable[InvoiceRecord]) -> pd.DataFrame:
    """One row per record, read from the records as they are right now."""
    rows = []
    for record in records:
        row = {VALUE_COLUMNS[name]: record.field(name).value for name in FIELD_NAMES}
        row[SOURCE_COLUMN] = record.source_file
        for name in FIELD_NAMES:
            row[uncertain_column(name)] = record.field(name).uncertain
        row[REVIEW_COLUMN] = record.needs_review
        rows.append(row)
    return pd.DataFrame(rows, columns=export_columns())


def export_to_excel(records: Iterable[InvoiceRecord]) -> bytes:
    """Write the records to an .xlsx workbook and return its bytes."""
    df = records_to_dataframe(records)
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        worksheet = writer.sheets[SHEET_NAME]
        for index, column in enumerate(df.columns, start=1):
            width = COLUMN_WIDTHS.get(column, FLAG_COLUMN_WIDTH)
            worksheet.column_dimensions[get_column_letter(index)].width = width
    return buffer.getvalue()


def export_to_csv(records: Iterable[InvoiceRecord]) -> bytes:
    return records_to_dataframe(records).to_csv(index=False).encode("utf-8-sig")
