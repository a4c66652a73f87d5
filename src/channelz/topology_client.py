"""Channelz client: the topology service over ``grpc.channelz.v1``.

Each call carries its own deadline.  Responses are converted to the frozen
snapshot models through the protobuf JSON mapping with proto field names
preserved.  gRPC ``NOT_FOUND`` becomes :class:`NotFoundError`; every other
RPC failure becomes :class:`TransportError` naming the operation.
"""

from __future__ import annotations

import logging
from typing import Any

import grpc
from grpc_channelz.v1 import channelz_pb2, channelz_pb2_grpc
from pydantic import BaseModel, ValidationError

from src.shared.constants import DEFAULT_RPC_TIMEOUT
from src.shared.errors import MalformedPayloadError, NotFoundError, TransportError
from src.shared.messages import message_to_dict
from src.shared.models.channelz import (
    Channel,
    EntityKind,
    Server,
    Socket,
    SocketRef,
    Subchannel,
)

logger = logging.getLogger(__name__)


class TopologyClient:
    """Synchronous channelz stub wrapper returning snapshot models."""

    def __init__(
        self,
        channel: grpc.Channel | None = None,
        rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
        stub: Any = None,
        log: logging.Logger | None = None,
    ) -> None:
        if stub is None and channel is None:
            raise ValueError("Either a channel or a stub is required")
        self._stub = stub or channelz_pb2_grpc.ChannelzStub(channel)
        self._rpc_timeout = rpc_timeout
        self._logger = log or logger

    # ------------------------------------------------------------------
    # Paged listings
    # ------------------------------------------------------------------

    def list_channels(self, start_id: int, max_results: int) -> tuple[list[Channel], bool]:
        response = self._call(
            "GetTopChannels",
            channelz_pb2.GetTopChannelsRequest(
                start_channel_id=start_id, max_results=max_results
            ),
            "fetch top channels",
        )
        channels = self._convert_all(Channel, response.channel)
        return channels, response.end

    def list_servers(self, start_id: int, max_results: int) -> tuple[list[Server], bool]:
        response = self._call(
            "GetServers",
            channelz_pb2.GetServersRequest(
                start_server_id=start_id, max_results=max_results
            ),
            "fetch servers",
        )
        servers = self._convert_all(Server, response.server)
        return servers, response.end

    def list_server_sockets(
        self, server_id: int, start_id: int, max_results: int
    ) -> tuple[list[SocketRef], bool]:
        response = self._call(
            "GetServerSockets",
            channelz_pb2.GetServerSocketsRequest(
                server_id=server_id, start_socket_id=start_id, max_results=max_results
            ),
            f"fetch server sockets (id={server_id})",
            kind=EntityKind.SERVER,
            entity_id=server_id,
        )
        refs = self._convert_all(SocketRef, response.socket_ref)
        return refs, response.end

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    def get_channel(self, channel_id: int) -> Channel:
        response = self._call(
            "GetChannel",
            channelz_pb2.GetChannelRequest(channel_id=channel_id),
            f"fetch channel (id={channel_id})",
            kind=EntityKind.CHANNEL,
            entity_id=channel_id,
        )
        return self._convert(Channel, response.channel)

    def get_subchannel(self, subchannel_id: int) -> Subchannel:
        response = self._call(
            "GetSubchannel",
            channelz_pb2.GetSubchannelRequest(subchannel_id=subchannel_id),
            f"fetch subchannel (id={subchannel_id})",
            kind=EntityKind.SUBCHANNEL,
            entity_id=subchannel_id,
        )
        return self._convert(Subchannel, response.subchannel)

    def get_server(self, server_id: int) -> Server:
        response = self._call(
            "GetServer",
            channelz_pb2.GetServerRequest(server_id=server_id),
            f"fetch server (id={server_id})",
            kind=EntityKind.SERVER,
            entity_id=server_id,
        )
        return self._convert(Server, response.server)

    def get_socket(self, socket_id: int) -> Socket:
        response = self._call(
            "GetSocket",
            channelz_pb2.GetSocketRequest(socket_id=socket_id),
            f"fetch socket (id={socket_id})",
            kind=EntityKind.SOCKET,
            entity_id=socket_id,
        )
        return self._convert(Socket, response.socket)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _call(
        self,
        method: str,
        request: Any,
        operation: str,
        kind: EntityKind | None = None,
        entity_id: int | None = None,
    ) -> Any:
        self._logger.debug("Channelz %s", operation)
        try:
            return getattr(self._stub, method)(request, timeout=self._rpc_timeout)
        except grpc.RpcError as exc:
            raise translate_rpc_error(exc, operation, self._rpc_timeout, kind, entity_id) from exc

    def _convert(self, model: type[BaseModel], message: Any) -> Any:
        """Validate one entity.

        Raises:
            MalformedPayloadError: If the entity does not fit its model.
        """
        try:
            return model.model_validate(message_to_dict(message, self._logger))
        except ValidationError as exc:
            raise MalformedPayloadError(
                f"malformed {model.__name__}: {exc.error_count()} invalid field(s)"
            ) from exc

    def _convert_all(self, model: type[BaseModel], messages: Any) -> list[Any]:
        converted: list[Any] = []
        for message in messages:
            try:
                converted.append(self._convert(model, message))
            except MalformedPayloadError as exc:
                self._logger.warning("Skipping %s", exc.detail)
        return converted


def translate_rpc_error(
    exc: grpc.RpcError,
    operation: str,
    rpc_timeout: float,
    kind: EntityKind | None = None,
    entity_id: int | None = None,
) -> NotFoundError | TransportError:
    """Map a failed RPC onto the application error taxonomy."""
    code = exc.code() if hasattr(exc, "code") else None
    details = exc.details() if hasattr(exc, "details") else str(exc)
    if code == grpc.StatusCode.NOT_FOUND and kind is not None:
        return NotFoundError(
            detail=f"failed to {operation}: {details}",
            kind=kind.value,
            entity_id=entity_id,
        )
    if code == grpc.StatusCode.DEADLINE_EXCEEDED:
        detail = f"failed to {operation}: deadline of {rpc_timeout:g}s exceeded"
    else:
        detail = f"failed to {operation}: {details}"
    return TransportError(
        detail=detail,
        operation=operation,
        code=code.name if code is not None else "",
    )
