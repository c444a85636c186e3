"""Runtime configuration read from the environment (and a local .env file)."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

# Load local environment variables (OLLAMA_BASE_URL, LOG_LEVEL, ...).
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ----------------------------- Model backend ---------------------------------
DEFAULT_MODEL_NAME = os.getenv("INVOICE_MODEL_NAME", "llava")
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_BASE_URL)
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "120"))

MODE_MULTIMODAL = "multimodal"
MODE_TEXT = "text"
EXTRACTION_MODE = os.getenv("EXTRACTION_MODE", MODE_MULTIMODAL)
MAX_PDF_PAGES = int(os.getenv("MAX_PDF_PAGES", "10"))
PDF_RENDER_DPI = int(os.getenv("PDF_RENDER_DPI", "200"))

# ----------------------------- Review policy ---------------------------------
PDF_MIME_TYPE = "application/pdf"
CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", "0.8"))
SIMULATE_CONFIDENCE = _env_bool("SIMULATE_CONFIDENCE", False)

# ------------------------------- Logging -------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the app process."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
