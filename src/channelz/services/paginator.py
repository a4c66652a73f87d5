"""Pagination driver for the paged channelz queries.

Two modes are supported:

* **bounded** -- the caller passes ``start_id`` and/or ``max_results``; exactly
  one request is issued and the service is trusted to honour the cap.
* **exhaustive** -- no bounds; requests are repeated with the cursor set one
  past the highest identifier seen until the service signals end-of-list.

The driver never re-sorts: items come back in remote response order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from src.shared.constants import DEFAULT_PAGE_SIZE
from src.shared.errors import PaginationError
from src.shared.models.channelz import entity_key
from src.shared.protocols import TopologyService

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int], tuple[list[Any], bool]]


class PageKind(str, Enum):
    """Paged queries offered by the topology service."""
    CHANNELS = "channels"
    SERVERS = "servers"
    SERVER_SOCKETS = "server_sockets"


@dataclass
class PageResult:
    """Accumulated items and whether the service has more beyond them."""

    items: list[Any] = field(default_factory=list)
    has_more: bool = False


class Paginator:
    """Drive paged topology queries in bounded or exhaustive mode."""

    def __init__(
        self,
        topology: TopologyService,
        page_size: int = DEFAULT_PAGE_SIZE,
        log: logging.Logger | None = None,
    ) -> None:
        self._topology = topology
        self._page_size = page_size
        self._logger = log or logger

    def page_query(
        self,
        kind: PageKind,
        start_id: int | None = None,
        max_results: int | None = None,
        *,
        server_id: int | None = None,
    ) -> PageResult:
        """Run a paged query.

        Args:
            kind: Which listing to page through.
            start_id: First identifier to return (bounded mode).
            max_results: Cap on returned items (bounded mode).
            server_id: Owning server, required for ``SERVER_SOCKETS``.

        Returns:
            The accumulated :class:`PageResult`.

        Raises:
            PaginationError: In exhaustive mode, if a page comes back empty
                or fails to advance without the end-of-list signal.
        """
        fetch = self._fetcher(kind, server_id)
        if start_id is not None or max_results is not None:
            items, end = fetch(start_id or 0, max_results or 0)
            self._logger.debug(
                "Bounded %s query returned %d item(s), end=%s",
                kind.value, len(items), end,
            )
            return PageResult(items=list(items), has_more=not end)
        return self._exhaust(kind, fetch)

    def _fetcher(self, kind: PageKind, server_id: int | None) -> PageFetcher:
        if kind is PageKind.CHANNELS:
            return self._topology.list_channels
        if kind is PageKind.SERVERS:
            return self._topology.list_servers
        if kind is PageKind.SERVER_SOCKETS:
            if server_id is None:
                raise ValueError("server_id is required for server socket queries")
            return lambda start, count: self._topology.list_server_sockets(
                server_id, start, count
            )
        raise ValueError(f"Unknown page kind: {kind!r}")

    def _exhaust(self, kind: PageKind, fetch: PageFetcher) -> PageResult:
        collected: list[Any] = []
        seen: set[int] = set()
        cursor = 0
        pages = 0
        while True:
            items, end = fetch(cursor, self._page_size)
            pages += 1
            if not items and not end:
                raise PaginationError(
                    f"Empty {kind.value} page at start_id={cursor} "
                    "without end-of-list signal"
                )
            highest = cursor - 1
            for item in items:
                key = entity_key(item)
                if key is None:
                    collected.append(item)
                    continue
                item_id = key[1]
                highest = max(highest, item_id)
                if item_id in seen:
                    self._logger.debug(
                        "Dropping duplicate %s id=%d", kind.value, item_id
                    )
                    continue
                seen.add(item_id)
                collected.append(item)
            if end:
                self._logger.debug(
                    "Exhaustive %s query finished after %d page(s), %d item(s)",
                    kind.value, pages, len(collected),
                )
                return PageResult(items=collected, has_more=False)
            if highest < cursor:
                raise PaginationError(
                    f"{kind.value} page at start_id={cursor} did not advance "
                    "the cursor"
                )
            cursor = highest + 1
