"""Decide which extracted fields a reviewer should double-check."""

from __future__ import annotations

import random
from typing import Callable, Iterable, Mapping

from invoice_review.config import CONFIDENCE_THRESHOLD
from invoice_review.models import FIELD_NAMES, FIELD_TYPES, AnnotatedField, AnnotatedInvoice, RawInvoice

ConfidenceSource = Callable[[RawInvoice], Mapping[str, float]]

# Range of the placeholder scores produced by simulated_confidence.
SIMULATED_CONFIDENCE_RANGE = (0.7, 1.0)


def is_uncertain(
    field: str,
    missing_fields: Iterable[str],
    confidence: float | None = None,
    threshold: float = CONFIDENCE_THRESHOLD,
) -> bool:
    """A field is uncertain if the extractor listed it as missing or its score is below threshold."""
    if field in missing_fields:
        return True
    if confidence is None:
        return False
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"Confidence for {field!r} must be within [0, 1], got {confidence}")
    return confidence < threshold


def annotate_invoice(
    invoice: RawInvoice,
    confidences: Mapping[str, float] | None = None,
    threshold: float = CONFIDENCE_THRESHOLD,
) -> AnnotatedInvoice:
    """Pair each field value of a candidate invoice with its uncertainty flag."""
    confidences = confidences or {}
    unknown = set(confidences) - set(FIELD_NAMES)
    if unknown:
        raise ValueError(f"Confidence scores given for unknown fields: {sorted(unknown)}")

    annotated = {
        name: AnnotatedField[FIELD_TYPES[name]](
            value=getattr(invoice, name),
            uncertain=is_uncertain(name, invoice.missing_fields, confidences.get(name), threshold),
        )
        for name in FIELD_NAMES
    }
    return AnnotatedInvoice(**annotated)


def no_confidence(invoice: RawInvoice) -> Mapping[str, float]:
    """Rely on the extractor's missing_fields list alone."""
    return {}


def simulated_confidence(rng: random.Random | None = None) -> ConfidenceSource:
    """
    Build a source of placeholder scores, uniform in [0.7, 1.0) per field.

    The extractor reports no numeric confidence; these stand in for one so the
    threshold path can be exercised. Enabled with SIMULATE_CONFIDENCE.
    """
    rng = rng or random.Random()
    low, high = SIMULATED_CONFIDENCE_RANGE

    def scores(invoice: RawInvoice) -> Mapping[str, float]:
        return {name: rng.uniform(low, high) for name in FIELD_NAMES}

    return scores
