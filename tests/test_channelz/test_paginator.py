"""Tests for the pagination driver."""
from __future__ import annotations

import logging

import pytest

from src.channelz.services.paginator import PageKind, PageResult, Paginator
from src.shared.errors import PaginationError
from tests.conftest import FakeTopology, make_channel, make_server


class ScriptedTopology(FakeTopology):
    """Topology whose channel listing replays a fixed sequence of pages."""

    def __init__(self, pages: list[tuple[list[int], bool]]) -> None:
        super().__init__()
        self.pages = list(pages)

    def list_channels(self, start_id: int, max_results: int):
        self.calls.append(("list_channels", start_id, max_results))
        ids, end = self.pages.pop(0)
        return [make_channel(i) for i in ids], end


def _ids(result: PageResult) -> list[int]:
    return [item.ref.channel_id for item in result.items]


class TestBoundedMode:
    def test_single_request(self, topology):
        result = Paginator(topology).page_query(PageKind.CHANNELS, start_id=0, max_results=1)
        assert _ids(result) == [1]
        assert result.has_more is True
        assert topology.calls == [("list_channels", 0, 1)]

    def test_start_id_only(self, topology):
        result = Paginator(topology).page_query(PageKind.CHANNELS, start_id=2)
        assert _ids(result) == [4]
        assert result.has_more is False
        assert topology.calls == [("list_channels", 2, 0)]

    def test_trusts_the_service_cap(self):
        topology = ScriptedTopology([([1, 2, 3], False)])
        result = Paginator(topology).page_query(PageKind.CHANNELS, max_results=3)
        assert _ids(result) == [1, 2, 3]
        assert result.has_more is True


class TestExhaustiveMode:
    def test_follows_cursor_until_end(self):
        topology = FakeTopology(
            channels=[make_channel(i) for i in (1, 4, 9)], page_limit=2
        )
        result = Paginator(topology, page_size=2).page_query(PageKind.CHANNELS)
        assert _ids(result) == [1, 4, 9]
        assert result.has_more is False
        assert topology.calls == [("list_channels", 0, 2), ("list_channels", 5, 2)]

    def test_uses_configured_page_size(self, topology):
        Paginator(topology, page_size=25).page_query(PageKind.SERVERS)
        assert topology.calls == [("list_servers", 0, 25)]

    def test_duplicates_are_dropped(self, caplog):
        topology = ScriptedTopology([([1, 2], False), ([2, 3], False), ([4], True)])
        with caplog.at_level(logging.DEBUG, logger="src.channelz.services.paginator"):
            result = Paginator(topology).page_query(PageKind.CHANNELS)
        assert _ids(result) == [1, 2, 3, 4]
        assert "Dropping duplicate channels id=2" in caplog.text

    def test_stops_exactly_on_end_signal(self):
        topology = ScriptedTopology([([1], False), ([2], True), ([3], True)])
        result = Paginator(topology).page_query(PageKind.CHANNELS)
        assert _ids(result) == [1, 2]
        assert len(topology.pages) == 1

    def test_empty_final_page_with_end(self):
        topology = ScriptedTopology([([1], False), ([], True)])
        assert _ids(Paginator(topology).page_query(PageKind.CHANNELS)) == [1]

    def test_empty_page_without_end_raises(self):
        topology = ScriptedTopology([([1], False), ([], False)])
        with pytest.raises(PaginationError, match="start_id=2"):
            Paginator(topology).page_query(PageKind.CHANNELS)

    def test_page_that_does_not_advance_raises(self):
        topology = ScriptedTopology([([5], False), ([5], False)])
        with pytest.raises(PaginationError, match="did not advance"):
            Paginator(topology).page_query(PageKind.CHANNELS)


class TestServerSockets:
    def test_pages_socket_refs(self, topology):
        result = Paginator(topology).page_query(PageKind.SERVER_SOCKETS, server_id=20)
        assert [ref.socket_id for ref in result.items] == [22, 23]
        assert topology.calls == [("list_server_sockets", 20, 0, 100)]

    def test_requires_server_id(self, topology):
        with pytest.raises(ValueError):
            Paginator(topology).page_query(PageKind.SERVER_SOCKETS)

    def test_servers_listing(self):
        topology = FakeTopology(servers=[make_server(3), make_server(1)])
        result = Paginator(topology).page_query(PageKind.SERVERS)
        assert [s.ref.server_id for s in result.items] == [1, 3]
