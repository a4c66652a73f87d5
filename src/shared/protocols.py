"""Runtime-checkable protocols for the three remote introspection services."""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from src.shared.models.channelz import Channel, Server, Socket, SocketRef, Subchannel
from src.shared.models.common import HealthStatus
from src.shared.models.xds import ClientStatusSnapshot


@runtime_checkable
class TopologyService(Protocol):
    """Paged and point queries over the channelz object graph.

    Point lookups raise ``NotFoundError`` for unknown identifiers.
    """

    def list_channels(
        self, start_id: int, max_results: int
    ) -> tuple[list[Channel], bool]:
        """Return one page of top channels and the end-of-list flag."""
        ...

    def get_channel(self, channel_id: int) -> Channel:
        ...

    def get_subchannel(self, subchannel_id: int) -> Subchannel:
        ...

    def list_servers(
        self, start_id: int, max_results: int
    ) -> tuple[list[Server], bool]:
        """Return one page of servers and the end-of-list flag."""
        ...

    def get_server(self, server_id: int) -> Server:
        ...

    def get_socket(self, socket_id: int) -> Socket:
        ...

    def list_server_sockets(
        self, server_id: int, start_id: int, max_results: int
    ) -> tuple[list[SocketRef], bool]:
        """Return one page of a server's socket references."""
        ...


@runtime_checkable
class HealthService(Protocol):
    """Health checking of named services."""

    def check(self, service: str) -> HealthStatus:
        """Return the serving status; never raises for RPC failures."""
        ...

    def check_all(self, services: Iterable[str]) -> list[tuple[str, HealthStatus]]:
        ...


@runtime_checkable
class ConfigStatusService(Protocol):
    """Client status discovery (CSDS)."""

    def fetch_snapshot(self) -> ClientStatusSnapshot:
        ...
