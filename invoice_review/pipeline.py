"""
One pipeline run per uploaded PDF, built as a linear LangGraph workflow:

    encode -> extract -> annotate -> assemble

Each run gets its own graph state, so several uploads can be in flight at
once. The run returns the whole batch of records or raises; it never returns
part of a batch.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, TypedDict

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from invoice_review.annotation import ConfidenceSource, annotate_invoice, no_confidence
from invoice_review.assembly import assemble_record
from invoice_review.config import CONFIDENCE_THRESHOLD
from invoice_review.encoder import encode_document, ensure_pdf
from invoice_review.errors import ProcessingError
from invoice_review.extraction import DocumentExtractor
from invoice_review.models import AnnotatedInvoice, InvoiceRecord, RawExtractionResult

logger = logging.getLogger(__name__)


class PipelineState(TypedDict, total=False):
    """State object shared across LangGraph nodes."""

    # Inputs from the upload
    file_name: str
    file_type: str
    file_bytes: bytes

    # Values produced by graph nodes
    encoded_document: str
    extraction: RawExtractionResult
    annotated: list[AnnotatedInvoice]
    records: list[InvoiceRecord]


def _configurable(config: RunnableConfig) -> dict[str, Any]:
    return (config or {}).get("configurable", {})


# ================================ Graph Nodes ================================ #
def encode_node(state: PipelineState) -> PipelineState:
    return {"encoded_document": encode_document(state["file_bytes"], state["file_type"])}


async def extract_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    extractor: DocumentExtractor = _configurable(config)["extractor"]
    extraction = await extractor.extract(state["encoded_document"])
    return {"extraction": extraction}


def annotate_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    options = _configurable(config)
    confidence_source: ConfidenceSource = options.get("confidence_source") or no_confidence
    threshold: float = options.get("threshold", CONFIDENCE_THRESHOLD)

    annotated: list[AnnotatedInvoice] = []
    for index, candidate in enumerate(state["extraction"].invoices):
        try:
            annotated.append(annotate_invoice(candidate, confidence_source(candidate), threshold))
        except Exception as exc:
            raise ProcessingError(
                f"Could not annotate invoice {index + 1} of {state['file_name']}"
            ) from exc
    return {"annotated": annotated}


def assemble_node(state: PipelineState) -> PipelineState:
    records: list[InvoiceRecord] = []
    for index, annotated in enumerate(state["annotated"]):
        try:
            records.append(assemble_record(annotated, state["file_name"]))
        except Exception as exc:
            raise ProcessingError(
                f"Could not assemble invoice {index + 1} of {state['file_name']}"
            ) from exc
    return {"records": records}


# ================================ Graph Builder ============================== #
@lru_cache(maxsize=1)
def build_pipeline_graph():
    """Create and cache the compiled workflow."""
    graph = StateGraph(PipelineState)
    graph.add_node("encode", encode_node)
    graph.add_node("extract", extract_node)
    graph.add_node("annotate", annotate_node)
    graph.add_node("assemble", assemble_node)

    graph.set_entry_point("encode")
    graph.add_edge("encode", "extract")
    graph.add_edge("extract", "annotate")
    graph.add_edge("annotate", "assemble")
    graph.add_edge("assemble", END)
    return graph.compile()


async def process_document(
    file_bytes: bytes,
    mime_type: str,
    file_name: str,
    extractor: DocumentExtractor,
    confidence_source: ConfidenceSource = no_confidence,
    threshold: float = CONFIDENCE_THRESHOLD,
) -> list[InvoiceRecord]:
    """Run the full pipeline for one uploaded document and return its records."""
    # Reject before any extraction call is made.
    ensure_pdf(mime_type)

    logger.info("Processing %s (%d bytes)", file_name, len(file_bytes))
    result: PipelineState = await build_pipeline_graph().ainvoke(
        {"file_name": file_name, "file_type": mime_type, "file_bytes": file_bytes},
        config={
            "configurable": {
                "extractor": extractor,
                "confidence_source": confidence_source,
                "threshold": threshold,
            }
        },
    )
    records = result.get("records", [])
    logger.info("Extracted %d invoice(s) from %s", len(records), file_name)
    return records

