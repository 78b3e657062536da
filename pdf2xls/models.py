"""
Core data models for the pdf2xls invoice pipeline.

This module defines the Pydantic models and value types passed between the
extraction providers, the normalizer and the spreadsheet sink.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class ProcessingStatus(str, Enum):
    """Status of a document at an extraction provider."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.DONE, ProcessingStatus.FAILED)


class ProviderType(str, Enum):
    """Supported field-extraction providers."""

    OPENAI = "openai"
    NUDELTA = "nudelta"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProviderType":
        """Map a configured provider name onto a provider, defaulting to OpenAI."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OPENAI


class StatusTracker:
    """
    Follow the status of one document while polling.

    Terminal states are sticky: once DONE or FAILED is observed, a later
    response claiming anything else is rejected.
    """

    def __init__(self) -> None:
        self.current: Optional[ProcessingStatus] = None
        self.history: List[ProcessingStatus] = []

    def advance(self, status: ProcessingStatus) -> ProcessingStatus:
        if self.current is not None and self.current.is_terminal and status != self.current:
            raise ValueError(f"Illegal status transition {self.current.value} -> {status.value}")
        self.current = status
        self.history.append(status)
        return status


# =============================================================================
# Extraction Models
# =============================================================================


# Parsed provider payload; nodes are scalars, dicts or lists
RawFieldTree = Dict[str, Any]


class ExtractionRequest(BaseModel):
    """One document handed to an extraction provider."""

    model_config = ConfigDict(frozen=True)

    document: Path = Field(..., description="Path of the document to extract from")
    provider: ProviderType = Field(default=ProviderType.OPENAI, description="Provider selector")
    response_schema: Optional[str] = Field(
        None,
        description="JSON schema text the assistant must follow",
    )

    @property
    def filename(self) -> str:
        return self.document.name

    def read_bytes(self) -> bytes:
        return self.document.read_bytes()


# =============================================================================
# Normalized Record
# =============================================================================


class NormalizedInvoiceRecord(Mapping):
    """
    Read-only mapping of canonical field name to normalized value.

    Values are strings (possibly empty) or None. Use ``with_fields`` to derive
    a record with additional or replaced values.
    """

    def __init__(self, fields: Optional[Mapping] = None, **extra: Optional[str]) -> None:
        data = dict(fields or {})
        data.update(extra)
        self._fields = MappingProxyType(data)

    def __getitem__(self, key: str) -> Optional[str]:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"NormalizedInvoiceRecord({dict(self._fields)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._fields) == dict(other)
        return NotImplemented

    __hash__ = None

    def with_fields(self, **updates: Optional[str]) -> "NormalizedInvoiceRecord":
        return NormalizedInvoiceRecord(self._fields, **updates)

    def missing(self, required: Tuple[str, ...]) -> List[str]:
        """Return the required fields that are absent or blank."""
        return [name for name in required if not (self._fields.get(name) or "").strip()]


# =============================================================================
# Sink Models
# =============================================================================


class ColumnMapping(BaseModel):
    """Canonical field name to spreadsheet column letter; blank means unmapped."""

    model_config = ConfigDict(frozen=True)

    columns: Dict[str, str] = Field(default_factory=dict)

    @field_validator("columns")
    @classmethod
    def strip_letters(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {name: (letter or "").strip() for name, letter in v.items()}

    @classmethod
    def from_dict(cls, columns: Dict[str, str]) -> "ColumnMapping":
        return cls(columns=columns)

    def items(self):
        return self.columns.items()


@dataclass(frozen=True)
class CellWrite:
    """A single typed value addressed by zero-based row and column."""

    row: int
    column: int
    value: Any
    number_format: Optional[Dict[str, str]] = None

    def to_request(self, sheet_id: int) -> Dict[str, Any]:
        """Build a Sheets ``updateCells`` request for this cell."""
        if isinstance(self.value, str):
            user_value = {"stringValue": self.value}
        else:
            user_value = {"numberValue": self.value}

        cell: Dict[str, Any] = {"userEnteredValue": user_value}
        fields = "userEnteredValue"
        if self.number_format:
            cell["userEnteredFormat"] = {"numberFormat": self.number_format}
            fields += ",userEnteredFormat.numberFormat"

        return {
            "updateCells": {
                "start": {"sheetId": sheet_id, "rowIndex": self.row, "columnIndex": self.column},
                "rows": [{"values": [cell]}],
                "fields": fields,
            }
        }


@dataclass(frozen=True)
class WriteResult:
    """Outcome of appending one record to the sheet."""

    row: Optional[int]
    cells_written: int
    skipped: bool = False
