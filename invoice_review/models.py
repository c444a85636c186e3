"""
Data shapes shared by the pipeline, the review store and the exporter.

RawInvoice / RawExtractionResult mirror the JSON the model is asked to
return. AnnotatedField / InvoiceRecord are what reviewers see and edit.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

FIELD_NAMES = ("supplier", "date", "description", "amount")
STRING_FIELDS = ("supplier", "date", "description")
FIELD_TYPES = {"supplier": str, "date": str, "description": str, "amount": float}


class RawInvoice(BaseModel):
    """One candidate invoice proposed by the extractor."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    supplier: str = ""
    date: str = ""
    description: str = ""
    amount: float = 0.0
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")

    @field_validator("missing_fields", mode="before")
    @classmethod
    def keep_known_fields(cls, value):
        # Unknown names are dropped; order of first appearance is kept.
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen: list[str] = []
        for name in value:
            key = str(name).strip().lower()
            if key in FIELD_NAMES and key not in seen:
                seen.append(key)
        return seen


class RawExtractionResult(BaseModel):
    """Ordered candidates found in one document. Empty is a valid result."""

    invoices: list[RawInvoice] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "RawExtractionResult":
        return cls(invoices=[])


class AnnotatedField(BaseModel, Generic[T]):
    """A value plus whether a human should double-check it."""

    value: T
    uncertain: bool = False


class AnnotatedInvoice(BaseModel):
    supplier: AnnotatedField[str]
    date: AnnotatedField[str]
    description: AnnotatedField[str]
    amount: AnnotatedField[float]


class InvoiceRecord(BaseModel):
    """The unit held by the review store and written by the exporter."""

    id: str
    source_file: str
    supplier: AnnotatedField[str]
    date: AnnotatedField[str]
    description: AnnotatedField[str]
    amount: AnnotatedField[float]

    def field(self, name: str) -> AnnotatedField:
        if name not in FIELD_NAMES:
            raise ValueError(f"Unknown invoice field: {name!r}")
        return getattr(self, name)

    @property
    def uncertain_fields(self) -> list[str]:
        return [name for name in FIELD_NAMES if self.field(name).uncertain]

    @property
    def needs_review(self) -> bool:
        return bool(self.uncertain_fields)

    def content(self) -> dict:
        """Everything except the generated id."""
        return self.model_dump(exclude={"id"})
