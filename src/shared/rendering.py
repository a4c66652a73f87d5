"""Rendering helpers shared by every report.

This module contains only pure functions -- no I/O, no side effects.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from pydantic import BaseModel

from src.shared.models.common import Row, Table


def to_document(obj: Any) -> Any:
    """Convert models (or sequences of them) to plain JSON-ready data.

    Only fields the remote actually set are emitted, plus any extra fields
    the models do not declare, so nothing the remote returned is dropped.
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", exclude_unset=True)
    if isinstance(obj, (list, tuple)):
        return [to_document(item) for item in obj]
    return obj


def render_document(obj: Any) -> str:
    """Serialise an entity, snapshot or collection as indented JSON."""
    return json.dumps(to_document(obj), indent=2, ensure_ascii=False)


def triple(started: int, succeeded: int, failed: int) -> str:
    """Format a started/succeeded/failed counter triple."""
    return f"{started}/{succeeded}/{failed}"


def key_value_table(
    items: Iterable[tuple[str, Any]], title: str = ""
) -> Table:
    """Build a headerless two-column detail table."""
    rows = [Row(cells=[f"{key}:", "" if value is None else str(value)]) for key, value in items]
    return Table(title=title, headers=["Field", "Value"], rows=rows, show_header=False)
