"""Shared utility functions for timestamps and their display."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import humanize
from google.protobuf import timestamp_pb2


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> timestamp_pb2.Timestamp | None:
    """Parse an RFC 3339 timestamp as found in the protobuf JSON mapping.

    The remote reports "unknown" as the zero timestamp, so both a missing
    value and ``1970-01-01T00:00:00Z`` yield ``None``.

    Raises:
        ValueError: If *value* is not a valid RFC 3339 timestamp.
    """
    if not value:
        return None
    timestamp = timestamp_pb2.Timestamp()
    timestamp.FromJsonString(value)
    if timestamp.seconds == 0 and timestamp.nanos == 0:
        return None
    return timestamp


class TimeFormatter:
    """Render timestamps either exactly or relative to now.

    The mode is fixed at construction so every timestamp in one report is
    rendered the same way.
    """

    def __init__(
        self,
        absolute: bool = False,
        now: Callable[[], datetime] = now_utc,
    ) -> None:
        self.absolute = absolute
        self._now = now

    def format(self, value: str | None) -> str:
        try:
            timestamp = parse_timestamp(value)
        except ValueError:
            # Not RFC 3339; show what the remote sent
            return value or ""
        if timestamp is None:
            return ""
        if self.absolute:
            return timestamp.ToJsonString()
        moment = timestamp.ToDatetime(tzinfo=timezone.utc)
        return humanize.naturaltime(self._now() - moment)
