"""Session-scoped, in-memory list of records under review."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from invoice_review.errors import RecordNotFoundError
from invoice_review.models import FIELD_NAMES, STRING_FIELDS, InvoiceRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSummary:
    total_amount: float
    processed_count: int
    needs_review_count: int


class ReviewStore:
    """
    Holds the reviewable records of one session.

    The only mutations are whole-batch append, per-field edit and per-record
    delete. All of them take the same lock, since Streamlit serves sessions
    from worker threads and pipeline runs can finish concurrently.
    """

    def __init__(self, records: Iterable[InvoiceRecord] = ()):
        self._lock = threading.Lock()
        self._records: list[InvoiceRecord] = list(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[InvoiceRecord]:
        return iter(self.records())

    def records(self) -> list[InvoiceRecord]:
        """Snapshot of the current records, newest batch first."""
        with self._lock:
            return list(self._records)

    def get(self, record_id: str) -> InvoiceRecord:
        with self._lock:
            return self._find(record_id)

    def add_batch(self, records: Iterable[InvoiceRecord]) -> int:
        """Prepend one pipeline run's records in a single step."""
        batch = list(records)
        with self._lock:
            self._records = batch + self._records
        logger.debug("Added %d record(s) to review store", len(batch))
        return len(batch)

    def update_field(self, record_id: str, field: str, value: Any) -> InvoiceRecord:
        """Change a field's value. Its uncertain flag is left as it was."""
        if field not in FIELD_NAMES:
            raise ValueError(f"Field {field!r} cannot be edited")
        coerced = _coerce_value(field, value)
        with self._lock:
            record = self._find(record_id)
            record.field(field).value = coerced
            return record

    def delete(self, record_id: str) -> InvoiceRecord:
        with self._lock:
            record = self._find(record_id)
            self._records = [item for item in self._records if item.id != record_id]
        logger.debug("Deleted record %s", record_id)
        return record

    def clear(self) -> None:
        with self._lock:
            self._records = []

    def summary(self) -> StoreSummary:
        records = self.records()
        return StoreSummary(
            total_amount=sum(record.amount.value for record in records),
            processed_count=len(records),
            needs_review_count=sum(1 for record in records if record.needs_review),
        )

    def _find(self, record_id: str) -> InvoiceRecord:
        for record in self._records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(record_id)


def _coerce_value(field: str, value: Any) -> Any:
    if field in STRING_FIELDS:
        return "" if value is None else str(value)
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Amount must be a number, got {value!r}") from exc
