"""Shared test fixtures: builders and in-memory introspection services."""
from __future__ import annotations

import base64
import ipaddress
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

import grpc
import pytest

from src.shared.constants import ROOT_LOGGER
from src.shared.errors import NotFoundError
from src.shared.models.channelz import (
    Channel,
    EntityKind,
    Server,
    Socket,
    SocketRef,
    Subchannel,
)
from src.shared.models.xds import ClientStatusSnapshot
from src.shared.utils import TimeFormatter

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

LISTENER_TYPE = "type.googleapis.com/envoy.config.listener.v3.Listener"
ROUTE_TYPE = "type.googleapis.com/envoy.config.route.v3.RouteConfiguration"
CLUSTER_TYPE = "type.googleapis.com/envoy.config.cluster.v3.Cluster"
ENDPOINT_TYPE = "type.googleapis.com/envoy.config.endpoint.v3.ClusterLoadAssignment"


# ---------------------------------------------------------------------------
# Entity builders
# ---------------------------------------------------------------------------


def tcpip(ip: str, port: int) -> dict[str, Any]:
    packed = ipaddress.ip_address(ip).packed
    return {
        "tcpip_address": {
            "ip_address": base64.b64encode(packed).decode("ascii"),
            "port": port,
        }
    }


def make_channel(
    channel_id: int,
    target: str = "dns:///backend.example.com:443",
    state: str = "READY",
    subchannel_ids: Iterable[int] = (),
    calls: tuple[int, int, int] = (0, 0, 0),
    created: str | None = None,
    events: Iterable[dict[str, Any]] = (),
) -> Channel:
    trace: dict[str, Any] = {"events": list(events)}
    if created is not None:
        trace["creation_timestamp"] = created
    return Channel.model_validate({
        "ref": {"channel_id": str(channel_id)},
        "data": {
            "state": {"state": state},
            "target": target,
            "trace": trace,
            "calls_started": str(calls[0]),
            "calls_succeeded": str(calls[1]),
            "calls_failed": str(calls[2]),
        },
        "subchannel_ref": [{"subchannel_id": str(i)} for i in subchannel_ids],
    })


def make_subchannel(
    subchannel_id: int,
    target: str = "10.0.0.1:443",
    state: str = "READY",
    socket_ids: Iterable[int] = (),
    calls: tuple[int, int, int] = (0, 0, 0),
) -> Subchannel:
    return Subchannel.model_validate({
        "ref": {"subchannel_id": str(subchannel_id)},
        "data": {
            "state": {"state": state},
            "target": target,
            "calls_started": str(calls[0]),
            "calls_succeeded": str(calls[1]),
            "calls_failed": str(calls[2]),
        },
        "socket_ref": [{"socket_id": str(i)} for i in socket_ids],
    })


def make_server(
    server_id: int,
    listen_socket_ids: Iterable[int] = (),
    calls: tuple[int, int, int] = (0, 0, 0),
    last_call: str | None = None,
) -> Server:
    data: dict[str, Any] = {
        "calls_started": str(calls[0]),
        "calls_succeeded": str(calls[1]),
        "calls_failed": str(calls[2]),
    }
    if last_call is not None:
        data["last_call_started_timestamp"] = last_call
    return Server.model_validate({
        "ref": {"server_id": str(server_id)},
        "data": data,
        "listen_socket": [{"socket_id": str(i)} for i in listen_socket_ids],
    })


def make_socket(
    socket_id: int,
    local: dict[str, Any] | None = None,
    remote: dict[str, Any] | None = None,
    streams: tuple[int, int, int] = (0, 0, 0),
    messages: tuple[int, int] = (0, 0),
    security: dict[str, Any] | None = None,
    options: Iterable[dict[str, Any]] = (),
) -> Socket:
    payload: dict[str, Any] = {
        "ref": {"socket_id": str(socket_id)},
        "data": {
            "streams_started": str(streams[0]),
            "streams_succeeded": str(streams[1]),
            "streams_failed": str(streams[2]),
            "messages_sent": str(messages[0]),
            "messages_received": str(messages[1]),
            "option": list(options),
        },
        "local": local if local is not None else tcpip("127.0.0.1", 50051),
    }
    if remote is not None:
        payload["remote"] = remote
    if security is not None:
        payload["security"] = security
    return Socket.model_validate(payload)


# ---------------------------------------------------------------------------
# Fake services
# ---------------------------------------------------------------------------


class FakeTopology:
    """In-memory topology service paging entities in id order."""

    def __init__(
        self,
        channels: Iterable[Channel] = (),
        subchannels: Iterable[Subchannel] = (),
        servers: Iterable[Server] = (),
        sockets: Iterable[Socket] = (),
        server_sockets: dict[int, list[int]] | None = None,
        page_limit: int = 0,
    ) -> None:
        self.channels = {c.ref.channel_id: c for c in channels}
        self.subchannels = {s.ref.subchannel_id: s for s in subchannels}
        self.servers = {s.ref.server_id: s for s in servers}
        self.sockets = {s.ref.socket_id: s for s in sockets}
        self.server_sockets = dict(server_sockets or {})
        self.page_limit = page_limit
        self.calls: list[tuple[Any, ...]] = []

    def _page(self, entities: dict[int, Any], start_id: int, max_results: int):
        ids = sorted(i for i in entities if i >= start_id)
        limit = max_results or len(ids)
        if self.page_limit:
            limit = min(limit, self.page_limit)
        page = ids[:limit]
        return [entities[i] for i in page], len(page) == len(ids)

    def _get(self, entities: dict[int, Any], kind: EntityKind, entity_id: int) -> Any:
        self.calls.append((f"get_{kind.value}", entity_id))
        try:
            return entities[entity_id]
        except KeyError:
            raise NotFoundError(
                f"{kind.value} {entity_id} not found", kind=kind.value, entity_id=entity_id
            ) from None

    def list_channels(self, start_id: int, max_results: int):
        self.calls.append(("list_channels", start_id, max_results))
        return self._page(self.channels, start_id, max_results)

    def list_servers(self, start_id: int, max_results: int):
        self.calls.append(("list_servers", start_id, max_results))
        return self._page(self.servers, start_id, max_results)

    def list_server_sockets(self, server_id: int, start_id: int, max_results: int):
        self.calls.append(("list_server_sockets", server_id, start_id, max_results))
        if server_id not in self.servers:
            raise NotFoundError(
                f"server {server_id} not found", kind="server", entity_id=server_id
            )
        refs = {i: SocketRef(socket_id=i) for i in self.server_sockets.get(server_id, [])}
        return self._page(refs, start_id, max_results)

    def get_channel(self, channel_id: int) -> Channel:
        return self._get(self.channels, EntityKind.CHANNEL, channel_id)

    def get_subchannel(self, subchannel_id: int) -> Subchannel:
        return self._get(self.subchannels, EntityKind.SUBCHANNEL, subchannel_id)

    def get_server(self, server_id: int) -> Server:
        return self._get(self.servers, EntityKind.SERVER, server_id)

    def get_socket(self, socket_id: int) -> Socket:
        return self._get(self.sockets, EntityKind.SOCKET, socket_id)


class FakeCsds:
    """Config status service returning a canned snapshot."""

    def __init__(self, snapshot: ClientStatusSnapshot) -> None:
        self.snapshot = snapshot

    def fetch_snapshot(self) -> ClientStatusSnapshot:
        return self.snapshot


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def legacy_snapshot() -> ClientStatusSnapshot:
    """One client config with per-type dumps in endpoint-first order."""
    return ClientStatusSnapshot.model_validate({
        "config": [{
            "node": {"id": "projects/1/networks/default/nodes/client"},
            "xds_config": [
                {"endpoint_config": {"dynamic_endpoint_configs": [{
                    "version_info": "3",
                    "endpoint_config": {"@type": ENDPOINT_TYPE, "cluster_name": "backend-cluster"},
                    "last_updated": "2024-01-01T11:58:00Z",
                    "client_status": "ACKED",
                }]}},
                {"cluster_config": {"version_info": "2", "dynamic_active_clusters": [{
                    "version_info": "2",
                    "cluster": {"@type": CLUSTER_TYPE, "name": "backend-cluster"},
                    "last_updated": "2024-01-01T11:57:00Z",
                    "client_status": "ACKED",
                }]}},
                {"listener_config": {"version_info": "1", "dynamic_listeners": [{
                    "name": "backend.example.com:443",
                    "active_state": {
                        "version_info": "1",
                        "listener": {"@type": LISTENER_TYPE, "name": "backend.example.com:443"},
                        "last_updated": "2024-01-01T11:55:00Z",
                    },
                    "client_status": "ACKED",
                }]}},
                {"route_config": {"dynamic_route_configs": [{
                    "version_info": "1",
                    "route_config": {"@type": ROUTE_TYPE, "name": "backend-route"},
                    "last_updated": "2024-01-01T11:56:00Z",
                    "client_status": "NACKED",
                }]}},
            ],
        }],
    })


def generic_snapshot() -> ClientStatusSnapshot:
    """One client config in the generic shape, cluster entries first."""
    return ClientStatusSnapshot.model_validate({
        "config": [{
            "generic_xds_configs": [
                {
                    "type_url": CLUSTER_TYPE,
                    "name": "cluster-a",
                    "version_info": "7",
                    "xds_config": {"@type": CLUSTER_TYPE, "name": "cluster-a"},
                    "client_status": "ACKED",
                },
                {
                    "type_url": CLUSTER_TYPE,
                    "name": "cluster-b",
                    "version_info": "7",
                    "client_status": "REQUESTED",
                },
                {
                    "type_url": LISTENER_TYPE,
                    "name": "listener-a",
                    "version_info": "5",
                    "last_updated": "2024-01-01T11:00:00Z",
                    "client_status": "ACKED",
                },
                {
                    "type_url": "type.googleapis.com/envoy.extensions.Custom",
                    "name": "custom-a",
                    "client_status": "UNKNOWN",
                },
                {
                    "type_url": ROUTE_TYPE,
                    "name": "route-a",
                    "version_info": "6",
                    "client_status": "DOES_NOT_EXIST",
                },
            ],
        }],
    })


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Undo CLI logging setup so caplog keeps seeing records."""
    yield
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def fixed_formatter() -> TimeFormatter:
    """Relative-time formatter pinned to ``FIXED_NOW``."""
    return TimeFormatter(now=lambda: FIXED_NOW)


@pytest.fixture
def topology() -> FakeTopology:
    """A small client and server topology.

    Channel 1 -> subchannels 2, 3 -> sockets 10, 11; server 20 listens on
    socket 21 and has accepted sockets 22, 23.
    """
    return FakeTopology(
        channels=[
            make_channel(1, subchannel_ids=[2, 3], calls=(10, 9, 1)),
            make_channel(4, target="dns:///other.example.com:443", state="IDLE"),
        ],
        subchannels=[
            make_subchannel(2, socket_ids=[10]),
            make_subchannel(3, target="10.0.0.2:443", state="CONNECTING", socket_ids=[11]),
        ],
        servers=[make_server(20, listen_socket_ids=[21], calls=(5, 5, 0))],
        sockets=[
            make_socket(10, tcpip("10.0.0.9", 40000), tcpip("10.0.0.1", 443), streams=(3, 2, 1)),
            make_socket(11, tcpip("10.0.0.9", 40001), tcpip("10.0.0.2", 443)),
            make_socket(21, local=tcpip("::", 50051)),
            make_socket(22, tcpip("127.0.0.1", 50051), tcpip("127.0.0.1", 36000), messages=(4, 7)),
            make_socket(23, tcpip("127.0.0.1", 50051), tcpip("127.0.0.1", 36002)),
        ],
        server_sockets={20: [22, 23]},
    )


class FakeRpcError(grpc.RpcError):
    """A failed RPC as raised by a synchronous stub call."""

    def __init__(self, code: grpc.StatusCode, details: str = "boom") -> None:
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._code

    def details(self) -> str:
        return self._details
