"""Tabular xDS status report."""

from __future__ import annotations

from typing import Sequence

from src.shared.models.common import Report, Row, Table
from src.shared.models.xds import StatusRow
from src.shared.utils import TimeFormatter

_STATUS_HEADERS = ["Name", "Status", "Version", "Type", "LastUpdated"]


def xds_status_report(
    rows: Sequence[StatusRow], time_formatter: TimeFormatter | None = None
) -> Report:
    """One line per managed resource, in snapshot order."""
    time_formatter = time_formatter or TimeFormatter()
    table = Table(headers=list(_STATUS_HEADERS))
    for row in rows:
        table.rows.append(Row(cells=[
            row.name,
            row.client_status,
            row.version,
            row.type,
            time_formatter.format(row.last_updated),
        ]))
    return Report(tables=[table])
