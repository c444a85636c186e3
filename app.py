"""
Invoice review app built with Streamlit + LangGraph + Ollama.

This file is organized in layers:
1) Configuration and session state
2) Upload processing (drives the invoice_review pipeline)
3) Streamlit UI (summary, editable table, export)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import streamlit as st

from invoice_review import config
from invoice_review.annotation import ConfidenceSource, no_confidence, simulated_confidence
from invoice_review.errors import InvalidInputError, InvoiceReviewError, ProcessingError
from invoice_review.export import DEFAULT_EXPORT_NAME, XLSX_MIME_TYPE, export_to_csv, export_to_excel
from invoice_review.extraction import OllamaExtractor
from invoice_review.pipeline import process_document
from invoice_review.review_table import (
    DELETE_COLUMN,
    EDITABLE_COLUMNS,
    apply_table_edits,
    ids_marked_for_deletion,
    records_to_table,
)
from invoice_review.store import ReviewStore

config.configure_logging()
logger = logging.getLogger(__name__)


# ----------------------------- Configuration ---------------------------------
APP_TITLE = "Invoice Review"
MODE_OPTIONS = {"Page images (multimodal)": config.MODE_MULTIMODAL, "PDF text layer": config.MODE_TEXT}


def get_store() -> ReviewStore:
    """One review store per browser session."""
    if "review_store" not in st.session_state:
        st.session_state["review_store"] = ReviewStore()
    return st.session_state["review_store"]


# --------------------------- Upload Processing -------------------------------
async def run_upload(
    store: ReviewStore,
    upload: Any,
    extractor: OllamaExtractor,
    confidence_source: ConfidenceSource,
) -> Any:
    """Run one pipeline and append its batch as soon as it finishes; return the records or the error."""
    try:
        records = await process_document(upload.getvalue(), upload.type, upload.name, extractor, confidence_source)
    except InvoiceReviewError as exc:
        return exc
    store.add_batch(records)
    return records


async def process_uploads(
    store: ReviewStore,
    uploads: list[Any],
    extractor: OllamaExtractor,
    confidence_source: ConfidenceSource,
) -> list[tuple[str, Any]]:
    """Run one pipeline per upload concurrently; pair each file name with its records or error."""
    runs = [run_upload(store, upload, extractor, confidence_source) for upload in uploads]
    outcomes = await asyncio.gather(*runs, return_exceptions=True)
    return [(upload.name, outcome) for upload, outcome in zip(uploads, outcomes)]


def describe_outcome(file_name: str, outcome: Any) -> tuple[str, str]:
    """Toast text and icon for one finished run."""
    if isinstance(outcome, InvalidInputError):
        return f"{file_name}: not a valid file. Please upload a PDF.", ":material/block:"
    if isinstance(outcome, ProcessingError):
        logger.error("Processing %s failed: %s", file_name, outcome)
        return f"{file_name}: could not be processed.", ":material/error:"
    if isinstance(outcome, BaseException):
        logger.error("Unexpected failure processing %s", file_name, exc_info=outcome)
        return f"{file_name}: unexpected error while processing.", ":material/error:"
    return f"{file_name}: {len(outcome)} invoice(s) extracted.", ":material/check_circle:"


def queue_notices(outcomes: list[tuple[str, Any]]) -> None:
    # Kept in session state so an interrupted run still shows them on the next one.
    pending = st.session_state.setdefault("pending_notices", [])
    pending.extend(describe_outcome(file_name, outcome) for file_name, outcome in outcomes)


def show_pending_notices() -> None:
    for message, icon in st.session_state.pop("pending_notices", []):
        st.toast(message, icon=icon)


# ------------------------------- UI Helpers ----------------------------------
def render_sidebar() -> tuple[OllamaExtractor, ConfidenceSource]:
    with st.sidebar:
        st.subheader("Configuration")
        model_name = st.text_input(
            "Ollama model",
            value=config.DEFAULT_MODEL_NAME,
            help="Vision-capable model for page images (for example: llava, llama3.2-vision).",
        )
        default_mode = list(MODE_OPTIONS.values()).index(config.EXTRACTION_MODE)
        mode_label = st.radio("Document input", list(MODE_OPTIONS), index=default_mode)
        simulate = st.checkbox(
            "Simulate confidence scores",
            value=config.SIMULATE_CONFIDENCE,
            help=f"Flag fields whose placeholder score is below {config.CONFIDENCE_THRESHOLD}.",
        )

    extractor = OllamaExtractor(model_name=model_name, mode=MODE_OPTIONS[mode_label])
    confidence_source = simulated_confidence() if simulate else no_confidence
    return extractor, confidence_source


def render_upload(store: ReviewStore, extractor: OllamaExtractor, confidence_source: ConfidenceSource) -> None:
    uploads = st.file_uploader(
        "Upload invoices",
        type=["pdf"],
        accept_multiple_files=True,
        key=f"uploader_{st.session_state.get('uploader_generation', 0)}",
    )
    if not uploads:
        return

    if st.button("Extract invoices", type="primary"):
        with st.spinner(f"Extracting invoices from {len(uploads)} file(s)..."):
            outcomes = asyncio.run(process_uploads(store, uploads, extractor, confidence_source))
            # Session state only: nothing here can hand control to a queued rerun.
            queue_notices(outcomes)
            # A new uploader key clears the selected files.
            st.session_state["uploader_generation"] = st.session_state.get("uploader_generation", 0) + 1
        st.rerun()


def render_summary(store: ReviewStore) -> None:
    summary = store.summary()
    total_col, count_col, review_col = st.columns(3)
    total_col.metric("Total amount", f"{summary.total_amount:,.2f}")
    count_col.metric("Invoices processed", summary.processed_count)
    review_col.metric("Pending review", summary.needs_review_count)


def render_table(store: ReviewStore) -> None:
    st.subheader("Invoice details")
    records = store.records()
    if not records:
        st.info("No invoices yet. Start by uploading a PDF.")
        return

    table = records_to_table(records)
    edited = st.data_editor(
        table,
        hide_index=True,
        width="stretch",
        disabled=[column for column in table.columns if column not in EDITABLE_COLUMNS],
        column_config={
            "Amount": st.column_config.NumberColumn("Amount", format="%.2f"),
            DELETE_COLUMN: st.column_config.CheckboxColumn(DELETE_COLUMN),
        },
        key="invoice_table",
    )

    changes = apply_table_edits(store, edited)
    if changes:
        logger.debug("Applied %d edit(s) from the table", changes)

    marked = ids_marked_for_deletion(edited)
    if marked and st.button(f"Delete {len(marked)} selected", type="secondary"):
        for record_id in marked:
            store.delete(record_id)
        st.session_state.pop("invoice_table", None)
        st.rerun(scope="fragment")


def render_export(store: ReviewStore) -> None:
    records = store.records()
    excel_col, csv_col = st.columns(2)
    excel_col.download_button(
        "Export to Excel",
        data=export_to_excel(records),
        file_name=DEFAULT_EXPORT_NAME,
        mime=XLSX_MIME_TYPE,
        disabled=not records,
    )
    csv_col.download_button(
        "Export to CSV",
        data=export_to_csv(records),
        file_name=DEFAULT_EXPORT_NAME.replace(".xlsx", ".csv"),
        mime="text/csv",
        disabled=not records,
    )


@st.fragment
def render_review(store: ReviewStore) -> None:
    """Summary, table and export rerun on their own, so edits never interrupt an extraction."""
    render_summary(store)
    render_table(store)
    render_export(store)


# --------------------------------- App --------------------------------------
def main() -> None:
    st.set_page_config(page_title=APP_TITLE, page_icon=":receipt:", layout="wide")
    st.title(APP_TITLE)
    st.write("Upload PDF invoices, check the highlighted fields, and export the results.")

    store = get_store()
    show_pending_notices()
    extractor, confidence_source = render_sidebar()

    render_upload(store, extractor, confidence_source)
    st.markdown("---")
    render_review(store)


if __name__ == "__main__":
    main()
