"""Common Pydantic v2 data models shared by every report."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field


class HealthStatus(str, Enum):
    """Serving status reported by the health service."""
    UNKNOWN = "UNKNOWN"
    SERVING = "SERVING"
    NOT_SERVING = "NOT_SERVING"
    SERVICE_UNKNOWN = "SERVICE_UNKNOWN"


def lenient_enum(enum_cls: type[Enum], fallback: Enum) -> Any:
    """Enum field type that maps values this client has no name for to *fallback*.

    Protobuf enums are open, so a newer remote may send a bare number.
    """

    def _coerce(value: Any) -> Any:
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(value)
        except ValueError:
            return fallback

    return Annotated[enum_cls, BeforeValidator(_coerce)]


class Row(BaseModel):
    """A table row; an errored row carries ``error`` instead of full cells."""
    cells: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class Table(BaseModel):
    """A fixed-column block of rows.

    Key/value detail blocks are tables without a header row.
    """
    title: str = ""
    headers: list[str] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list)
    show_header: bool = True


class Report(BaseModel):
    """An ordered sequence of tables printed with a divider between them."""
    tables: list[Table] = Field(default_factory=list)

    def add(self, table: Table) -> None:
        self.tables.append(table)
