"""Tabular health report."""

from __future__ import annotations

from typing import Sequence

from src.shared.constants import OVERALL_SERVICE, OVERALL_SERVICE_LABEL
from src.shared.models.common import HealthStatus, Report, Row, Table


def health_report(statuses: Sequence[tuple[str, HealthStatus]]) -> Report:
    """One ``service: STATUS`` line per checked service."""
    table = Table(headers=["Service", "Status"], show_header=False)
    for service, status in statuses:
        label = OVERALL_SERVICE_LABEL if service == OVERALL_SERVICE else service
        table.rows.append(Row(cells=[f"{label}:", status.value]))
    return Report(tables=[table])
