"""
Extraction client: ask a generative model for every invoice in a PDF.

This module is split into layers:
1. Prompt and capability interface
2. Pure response-repair helpers (easy to unit-test)
3. Extractor implementations (static fake, Ollama-backed)

Whatever goes wrong in here, `extract` returns an empty result instead of
raising. Callers cannot tell "no invoices" from "extraction broke".
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import math
import re
from datetime import datetime
from io import BytesIO
from typing import Any, Iterable, Protocol, runtime_checkable

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from pdf2image import convert_from_bytes
from pypdf import PdfReader

from invoice_review import config
from invoice_review.encoder import decode_document
from invoice_review.errors import ExtractionFailure
from invoice_review.models import FIELD_NAMES, RawExtractionResult, RawInvoice

logger = logging.getLogger(__name__)


# ================================ Prompt ===================================== #
EXTRACTION_PROMPT = """You are an expert accounting assistant specialized in extracting structured data from PDF documents.
Analyze the provided document and extract information for ALL invoices contained within it.

For each invoice, extract these fields:
- supplier: the name of the supplier or vendor.
- date: the invoice date, formatted as YYYY-MM-DD.
- description: a short description of the invoice purpose or main items.
- amount: the total numerical amount of the invoice.

CRITICAL INSTRUCTIONS:
1. If you cannot determine a field with high confidence:
   - return "" for supplier, date or description,
   - return the number 0 for amount,
   - add the field name (for example "supplier" or "date") to that invoice's "missing_fields" array.
2. Return valid JSON only, with this exact shape:
   {"invoices": [{"supplier": "", "date": "", "description": "", "amount": 0, "missing_fields": []}]}
3. If the document contains no invoices, or anything prevents extraction, return {"invoices": []}.
4. Return every invoice you find in the "invoices" array, in document order."""

PAGE_INSTRUCTION = "Extract every invoice from the attached document pages."
TEXT_INSTRUCTION = "Extract every invoice from this document text.\n\n{document_text}"


@runtime_checkable
class DocumentExtractor(Protocol):
    """Anything that turns an encoded PDF into candidate invoices."""

    async def extract(self, encoded_document: str) -> RawExtractionResult: ...


# =========================== Response Repair ================================= #
FIELD_ALIASES = {
    "supplier": "supplier",
    "vendor": "supplier",
    "vendor_name": "supplier",
    "proveedor": "supplier",
    "date": "date",
    "invoice_date": "date",
    "fecha": "date",
    "description": "description",
    "concept": "description",
    "concepto": "description",
    "amount": "amount",
    "total": "amount",
    "importe": "amount",
}
MISSING_KEYS = ("missing_fields", "missingfields", "missing", "campos_faltantes")
LIST_KEYS = ("invoices", "facturas", "items", "results")

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def normalize_message_content(content: Any) -> str:
    """Convert LangChain message content into a plain string."""
    if isinstance(content, str):
        return content

    if isinstance(content, dict):
        if isinstance(content.get("text"), str):
            return content["text"]
        return json.dumps(content)

    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
            else:
                parts.append(json.dumps(item))
        return "\n".join(parts)

    return str(content)


def remove_markdown_fences(text: str) -> str:
    """Strip markdown code fences around model output, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :].strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[len("```") :].strip()
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3].strip()
    return cleaned


def parse_first_json_block(text: str) -> Any:
    """
    Parse the first JSON object/array found in a string.

    Some models prepend or append extra text; this parser is tolerant of that.
    """
    cleaned = remove_markdown_fences(text)
    decoder = json.JSONDecoder()

    for index, char in enumerate(cleaned):
        if char not in "{[":
            continue
        try:
            parsed, _ = decoder.raw_decode(cleaned[index:])
        except json.JSONDecodeError:
            continue
        return parsed

    raise ExtractionFailure("No JSON object found in model output.")


def parse_amount(value: Any) -> float | None:
    """Read a money amount from a number or a loosely formatted string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # JSON NaN / Infinity count as unreadable.
        return float(value) if math.isfinite(value) else None

    text = re.sub(r"[^0-9,.\-]", "", str(value))
    if not text or not re.search(r"\d", text):
        return None

    if "," in text and "." in text:
        # Whichever separator comes last is the decimal one.
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if text.count(",") > 1 or re.fullmatch(r"-?\d{1,3},\d{3}", text):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        amount = float(text)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def normalize_date(value: Any) -> str:
    """Return the date as YYYY-MM-DD, or "" when it cannot be read."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""

    # ISO timestamps: keep the date part only.
    iso_match = re.match(r"^(\d{4}-\d{2}-\d{2})[T ]", text)
    if iso_match:
        text = iso_match.group(1)

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return ""


def _missing_names(raw: Any) -> list[str]:
    if raw is None:
        return []
    names = [raw] if isinstance(raw, str) else list(raw)
    return [FIELD_ALIASES.get(str(name).strip().lower(), str(name).strip().lower()) for name in names]


def normalize_invoice_payload(item: dict[str, Any]) -> dict[str, Any]:
    """
    Repair one invoice-shaped dict into the RawInvoice field set.

    Values that are absent, empty or unreadable become zero values and are
    listed in missing_fields.
    """
    fields: dict[str, Any] = {}
    missing: list[str] = []

    for raw_key, raw_value in item.items():
        key = str(raw_key).strip().lower()
        if key in MISSING_KEYS:
            missing.extend(_missing_names(raw_value))
            continue
        target = FIELD_ALIASES.get(key)
        if target and target not in fields:
            fields[target] = raw_value

    supplier = fields.get("supplier")
    description = fields.get("description")
    repaired: dict[str, Any] = {
        "supplier": "" if supplier is None else str(supplier).strip(),
        "date": normalize_date(fields.get("date")),
        "description": "" if description is None else str(description).strip(),
    }
    amount = parse_amount(fields.get("amount"))
    repaired["amount"] = amount if amount is not None else 0.0

    for name in FIELD_NAMES:
        value = repaired[name]
        if value in ("", 0.0) and name not in missing:
            missing.append(name)

    repaired["missing_fields"] = missing
    return repaired


def _candidate_items(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        raise ExtractionFailure(f"Unexpected model payload type: {type(payload).__name__}")

    lowered = {str(key).strip().lower(): value for key, value in payload.items()}
    for key in LIST_KEYS:
        if key in lowered:
            items = lowered[key]
            if items is None:
                return []
            if not isinstance(items, list):
                raise ExtractionFailure(f"'{key}' is not a list")
            return items

    # A single invoice returned without the wrapper object.
    if any(key in FIELD_ALIASES for key in lowered):
        return [payload]
    return []


def coerce_extraction_result(payload: Any) -> RawExtractionResult:
    """Validate and repair a decoded model payload into a RawExtractionResult."""
    invoices: list[RawInvoice] = []
    for item in _candidate_items(payload):
        if not isinstance(item, dict):
            logger.warning("Skipping non-object invoice entry: %r", item)
            continue
        invoices.append(RawInvoice.model_validate(normalize_invoice_payload(item)))
    return RawExtractionResult(invoices=invoices)


def parse_model_response(content: Any) -> RawExtractionResult:
    """Turn raw chat-model content into candidate invoices (may raise)."""
    if isinstance(content, (dict, list)) and not _is_text_parts(content):
        payload = content
    else:
        payload = parse_first_json_block(normalize_message_content(content))
    return coerce_extraction_result(payload)


def _is_text_parts(content: Any) -> bool:
    return isinstance(content, list) and all(
        isinstance(item, str) or (isinstance(item, dict) and "text" in item) for item in content
    )


# ============================== Extractors =================================== #
class StaticExtractor:
    """Deterministic extractor returning a fixed result."""

    def __init__(self, result: RawExtractionResult | Iterable[RawInvoice] | None = None):
        if result is None:
            result = RawExtractionResult.empty()
        elif not isinstance(result, RawExtractionResult):
            result = RawExtractionResult(invoices=list(result))
        self.result = result
        self.calls: list[str] = []

    async def extract(self, encoded_document: str) -> RawExtractionResult:
        self.calls.append(encoded_document)
        return self.result.model_copy(deep=True)


def pdf_pages_to_png_b64(file_bytes: bytes, max_pages: int, dpi: int) -> list[str]:
    """Rasterize the first `max_pages` PDF pages into base64-encoded PNGs."""
    pages = convert_from_bytes(file_bytes, first_page=1, last_page=max_pages, dpi=dpi)
    encoded: list[str] = []
    for image in pages:
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        encoded.append(base64.b64encode(buffer.getvalue()).decode("utf-8"))
    return encoded


def extract_text_from_pdf(file_bytes: bytes, max_pages: int) -> str:
    """Extract raw text from the first `max_pages` pages and join it."""
    reader = PdfReader(BytesIO(file_bytes))
    page_texts = [page.extract_text() or "" for page in reader.pages[:max_pages]]
    return "\n\n".join(page_texts)


class OllamaExtractor:
    """Extractor backed by a local Ollama chat model via LangChain."""

    def __init__(
        self,
        model_name: str = config.DEFAULT_MODEL_NAME,
        base_url: str = config.OLLAMA_BASE_URL,
        mode: str = config.EXTRACTION_MODE,
        max_pages: int = config.MAX_PDF_PAGES,
        dpi: int = config.PDF_RENDER_DPI,
        timeout: float = config.OLLAMA_TIMEOUT,
    ):
        if mode not in (config.MODE_MULTIMODAL, config.MODE_TEXT):
            raise ValueError(f"Unknown extraction mode: {mode!r}")
        self.model_name = model_name
        self.base_url = base_url
        self.mode = mode
        self.max_pages = max_pages
        self.dpi = dpi
        self.timeout = timeout

    def build_llm(self) -> ChatOllama:
        # temperature=0 keeps answers as repeatable as the model allows.
        return ChatOllama(
            model=self.model_name,
            temperature=0,
            format="json",
            base_url=self.base_url,
            client_kwargs={"timeout": self.timeout},
        )

    def build_messages(self, encoded_document: str) -> list[BaseMessage]:
        """Build the system + human messages for one encoded PDF."""
        _, file_bytes = decode_document(encoded_document)

        if self.mode == config.MODE_TEXT:
            document_text = extract_text_from_pdf(file_bytes, self.max_pages)
            human = HumanMessage(content=TEXT_INSTRUCTION.format(document_text=document_text))
        else:
            content: list[dict[str, Any]] = [{"type": "text", "text": PAGE_INSTRUCTION}]
            for page_b64 in pdf_pages_to_png_b64(file_bytes, self.max_pages, self.dpi):
                content.append(
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{page_b64}"}}
                )
            human = HumanMessage(content=content)

        return [SystemMessage(content=EXTRACTION_PROMPT), human]

    async def extract(self, encoded_document: str) -> RawExtractionResult:
        try:
            messages = await asyncio.to_thread(self.build_messages, encoded_document)
            response = await self.build_llm().ainvoke(messages)
            result = parse_model_response(response.content)
        except Exception:
            logger.exception("Invoice extraction with %s failed; returning no invoices", self.model_name)
            return RawExtractionResult.empty()

        logger.info("Model %s returned %d candidate invoice(s)", self.model_name, len(result.invoices))
        return result
