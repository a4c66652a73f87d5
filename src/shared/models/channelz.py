"""Channelz entity snapshots as Pydantic v2 models.

Models are validated from the protobuf JSON mapping of the
``grpc.channelz.v1`` messages with proto field names preserved.  They are
frozen snapshots and accept unknown fields, so dumping a model with
``exclude_unset=True`` reproduces everything the remote returned.

Conventions carried over from the JSON mapping:

* int64 counters and ids arrive as strings and are coerced to ``int``;
* timestamps stay as RFC 3339 strings (nanosecond precision intact);
* ``bytes`` fields (IP addresses, certificates) stay base64 text;
* ``google.protobuf.Any`` values stay plain dicts carrying ``@type``.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from src.shared.models.common import lenient_enum


class _Snapshot(BaseModel):
    model_config = {"extra": "allow", "frozen": True}


class EntityKind(str, Enum):
    """Kinds of entities addressable by numeric id."""
    CHANNEL = "channel"
    SUBCHANNEL = "subchannel"
    SERVER = "server"
    SOCKET = "socket"


class ConnectivityState(str, Enum):
    """Channel connectivity states."""
    UNKNOWN = "UNKNOWN"
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    READY = "READY"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    SHUTDOWN = "SHUTDOWN"


class TraceSeverity(str, Enum):
    """Severity of a channel trace event."""
    CT_UNKNOWN = "CT_UNKNOWN"
    CT_INFO = "CT_INFO"
    CT_WARNING = "CT_WARNING"
    CT_ERROR = "CT_ERROR"


ConnectivityStateField = lenient_enum(ConnectivityState, ConnectivityState.UNKNOWN)
TraceSeverityField = lenient_enum(TraceSeverity, TraceSeverity.CT_UNKNOWN)


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class ChannelRef(_Snapshot):
    channel_id: int = 0
    name: str = ""


class SubchannelRef(_Snapshot):
    subchannel_id: int = 0
    name: str = ""


class SocketRef(_Snapshot):
    socket_id: int = 0
    name: str = ""


class ServerRef(_Snapshot):
    server_id: int = 0
    name: str = ""


EntityRef = Union[ChannelRef, SubchannelRef, SocketRef, ServerRef]


# ---------------------------------------------------------------------------
# Channels and subchannels
# ---------------------------------------------------------------------------


class ChannelState(_Snapshot):
    state: ConnectivityStateField = ConnectivityState.UNKNOWN


class ChannelTraceEvent(_Snapshot):
    """One lifecycle event in a channel or subchannel trace."""
    description: str = ""
    severity: TraceSeverityField = TraceSeverity.CT_UNKNOWN
    timestamp: str | None = None
    channel_ref: ChannelRef | None = None
    subchannel_ref: SubchannelRef | None = None


class ChannelTrace(_Snapshot):
    num_events_logged: int = 0
    creation_timestamp: str | None = None
    events: list[ChannelTraceEvent] = Field(default_factory=list)


class ChannelData(_Snapshot):
    """Counters and state shared by channels and subchannels."""
    state: ChannelState | None = None
    target: str = ""
    trace: ChannelTrace | None = None
    calls_started: int = 0
    calls_succeeded: int = 0
    calls_failed: int = 0
    last_call_started_timestamp: str | None = None

    @property
    def connectivity(self) -> ConnectivityState:
        if self.state is None:
            return ConnectivityState.UNKNOWN
        return self.state.state

    @property
    def creation_timestamp(self) -> str | None:
        if self.trace is None:
            return None
        return self.trace.creation_timestamp


class Channel(_Snapshot):
    ref: ChannelRef | None = None
    data: ChannelData | None = None
    channel_ref: list[ChannelRef] = Field(default_factory=list)
    subchannel_ref: list[SubchannelRef] = Field(default_factory=list)
    socket_ref: list[SocketRef] = Field(default_factory=list)


class Subchannel(_Snapshot):
    ref: SubchannelRef | None = None
    data: ChannelData | None = None
    channel_ref: list[ChannelRef] = Field(default_factory=list)
    subchannel_ref: list[SubchannelRef] = Field(default_factory=list)
    socket_ref: list[SocketRef] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Servers
# ---------------------------------------------------------------------------


class ServerData(_Snapshot):
    trace: ChannelTrace | None = None
    calls_started: int = 0
    calls_succeeded: int = 0
    calls_failed: int = 0
    last_call_started_timestamp: str | None = None


class Server(_Snapshot):
    ref: ServerRef | None = None
    data: ServerData | None = None
    listen_socket: list[SocketRef] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sockets
# ---------------------------------------------------------------------------


class TcpIpAddress(_Snapshot):
    ip_address: str = ""
    port: int = 0


class UdsAddress(_Snapshot):
    filename: str = ""


class OtherAddress(_Snapshot):
    name: str = ""
    value: dict[str, Any] | None = None


class Address(_Snapshot):
    """Transport address; exactly one variant is expected to be set."""
    tcpip_address: TcpIpAddress | None = None
    uds_address: UdsAddress | None = None
    other_address: OtherAddress | None = None


class SocketOption(_Snapshot):
    name: str = ""
    value: str = ""
    additional: dict[str, Any] | None = None


class SocketData(_Snapshot):
    streams_started: int = 0
    streams_succeeded: int = 0
    streams_failed: int = 0
    messages_sent: int = 0
    messages_received: int = 0
    keep_alives_sent: int = 0
    last_local_stream_created_timestamp: str | None = None
    last_remote_stream_created_timestamp: str | None = None
    last_message_sent_timestamp: str | None = None
    last_message_received_timestamp: str | None = None
    local_flow_control_window: int | None = None
    remote_flow_control_window: int | None = None
    option: list[SocketOption] = Field(default_factory=list)


class TlsSecurity(_Snapshot):
    standard_name: str | None = None
    other_name: str | None = None
    local_certificate: str | None = None
    remote_certificate: str | None = None


class OtherSecurity(_Snapshot):
    name: str = ""
    value: dict[str, Any] | None = None


class Security(_Snapshot):
    """Transport security; exactly one model is expected to be set."""
    tls: TlsSecurity | None = None
    other: OtherSecurity | None = None


class Socket(_Snapshot):
    ref: SocketRef | None = None
    data: SocketData | None = None
    local: Address | None = None
    remote: Address | None = None
    security: Security | None = None
    remote_name: str = ""


ChannelzEntity = Union[Channel, Subchannel, Server, Socket]


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


def ref_key(ref: EntityRef) -> tuple[EntityKind, int]:
    """Return the ``(kind, id)`` arena key of a reference."""
    if isinstance(ref, ChannelRef):
        return EntityKind.CHANNEL, ref.channel_id
    if isinstance(ref, SubchannelRef):
        return EntityKind.SUBCHANNEL, ref.subchannel_id
    if isinstance(ref, SocketRef):
        return EntityKind.SOCKET, ref.socket_id
    if isinstance(ref, ServerRef):
        return EntityKind.SERVER, ref.server_id
    raise TypeError(f"Not an entity reference: {type(ref).__name__}")


def entity_key(entity: Any) -> tuple[EntityKind, int] | None:
    """Return the ``(kind, id)`` key of an entity or reference.

    Entities without a ``ref`` have no identity and yield ``None``.
    """
    if isinstance(entity, (ChannelRef, SubchannelRef, SocketRef, ServerRef)):
        return ref_key(entity)
    ref = getattr(entity, "ref", None)
    if ref is None:
        return None
    return ref_key(ref)
