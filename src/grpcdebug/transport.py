"""Channel setup and the per-invocation connection bundle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import grpc

from src.channelz.topology_client import TopologyClient
from src.grpcdebug.config import SecurityMode, ServerConfig, TimeoutConfig
from src.health.health_client import HealthClient
from src.shared.errors import ConfigurationError, TransportError
from src.shared.protocols import ConfigStatusService, HealthService, TopologyService
from src.xds.csds_client import CsdsClient

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    """An open channel plus the clients bound to it."""

    channel: grpc.Channel
    topology: TopologyService
    health: HealthService
    csds: ConfigStatusService

    def close(self) -> None:
        self.channel.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_channel(server: ServerConfig) -> grpc.Channel:
    """Open a channel to *server* without waiting for it to connect.

    Raises:
        ConfigurationError: If the TLS root certificates cannot be read.
    """
    if server.security is not SecurityMode.TLS and not server.credential_file:
        return grpc.insecure_channel(server.real_address)
    try:
        with open(server.credential_file, "rb") as f:
            root_certificates = f.read()
    except OSError as exc:
        raise ConfigurationError(f"failed to create credential: {exc}") from exc
    credentials = grpc.ssl_channel_credentials(root_certificates=root_certificates)
    options = []
    if server.server_name_override:
        options.append(("grpc.ssl_target_name_override", server.server_name_override))
    return grpc.secure_channel(server.real_address, credentials, options=options)


def connect(server: ServerConfig, timeouts: TimeoutConfig | None = None) -> Connection:
    """Open a channel and block until it is ready.

    Raises:
        TransportError: If the channel is not ready within the connect
            timeout.
        ConfigurationError: If the credentials cannot be loaded.
    """
    timeouts = timeouts or TimeoutConfig()
    logger.debug("Connecting with %s", server)
    channel = create_channel(server)
    try:
        grpc.channel_ready_future(channel).result(timeout=timeouts.connect)
    except grpc.FutureTimeoutError as exc:
        channel.close()
        raise TransportError(
            detail=(
                f"failed to connect: {server.real_address} not ready "
                f"within {timeouts.connect:g}s"
            ),
            operation="connect",
        ) from exc
    return Connection(
        channel=channel,
        topology=TopologyClient(channel, rpc_timeout=timeouts.rpc),
        health=HealthClient(channel, rpc_timeout=timeouts.rpc),
        csds=CsdsClient(channel, rpc_timeout=timeouts.rpc),
    )
