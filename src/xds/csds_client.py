"""Client Status Discovery Service client.

Fetches one ``ClientStatusResponse`` and converts it into a
:class:`ClientStatusSnapshot`.  Packed xDS resources are expanded through
the protobuf JSON mapping, which needs the resource descriptors registered;
the envoy modules below are imported for that side effect.

A packed payload whose type is not registered, at any depth, stays opaque
without hiding its siblings; an entry that does not fit its model is
skipped with a warning.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import grpc
from envoy.config.cluster.v3 import cluster_pb2  # noqa: F401
from envoy.config.endpoint.v3 import endpoint_pb2  # noqa: F401
from envoy.config.listener.v3 import listener_pb2  # noqa: F401
from envoy.config.route.v3 import route_pb2, scoped_route_pb2  # noqa: F401
from envoy.extensions.filters.http.fault.v3 import fault_pb2  # noqa: F401
from envoy.extensions.filters.http.router.v3 import router_pb2  # noqa: F401
from envoy.extensions.filters.network.http_connection_manager.v3 import (  # noqa: F401
    http_connection_manager_pb2,
)
from envoy.service.status.v3 import csds_pb2, csds_pb2_grpc
from pydantic import ValidationError

from src.channelz.topology_client import translate_rpc_error
from src.shared.constants import DEFAULT_RPC_TIMEOUT
from src.shared.messages import message_to_dict
from src.shared.models.xds import (
    ClientConfig,
    ClientStatusSnapshot,
    GenericXdsConfig,
    PerXdsConfig,
)

logger = logging.getLogger(__name__)

_Entry = TypeVar("_Entry", PerXdsConfig, GenericXdsConfig)

_FETCH_OPERATION = "fetch xds config"


class CsdsClient:
    """Synchronous CSDS stub wrapper returning snapshot models."""

    def __init__(
        self,
        channel: grpc.Channel | None = None,
        rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
        stub: Any = None,
        log: logging.Logger | None = None,
    ) -> None:
        if stub is None and channel is None:
            raise ValueError("Either a channel or a stub is required")
        self._stub = stub or csds_pb2_grpc.ClientStatusDiscoveryServiceStub(channel)
        self._rpc_timeout = rpc_timeout
        self._logger = log or logger

    def fetch_snapshot(self) -> ClientStatusSnapshot:
        """Fetch the current xDS client status of the target.

        Raises:
            TransportError: If the RPC fails or exceeds its deadline.
        """
        self._logger.debug("CSDS %s", _FETCH_OPERATION)
        try:
            response = self._stub.FetchClientStatus(
                csds_pb2.ClientStatusRequest(), timeout=self._rpc_timeout
            )
        except grpc.RpcError as exc:
            raise translate_rpc_error(exc, _FETCH_OPERATION, self._rpc_timeout) from exc
        return snapshot_from_response(response, self._logger)


def snapshot_from_response(
    response: csds_pb2.ClientStatusResponse,
    log: logging.Logger | None = None,
) -> ClientStatusSnapshot:
    """Convert a ``ClientStatusResponse`` entry by entry."""
    log = log or logger
    return ClientStatusSnapshot(
        config=[_client_config(config, log) for config in response.config]
    )


def _client_config(config: csds_pb2.ClientConfig, log: logging.Logger) -> ClientConfig:
    fields: dict[str, Any] = {}
    if config.HasField("node"):
        fields["node"] = message_to_dict(config.node, log)
    if config.client_scope:
        fields["client_scope"] = config.client_scope
    legacy = _entries(PerXdsConfig, config.xds_config, log)
    if legacy:
        fields["xds_config"] = legacy
    generic = _entries(GenericXdsConfig, config.generic_xds_configs, log)
    if generic:
        fields["generic_xds_configs"] = generic
    return ClientConfig.model_validate(fields)


def _entries(model: type[_Entry], messages: Any, log: logging.Logger) -> list[_Entry]:
    entries: list[_Entry] = []
    for message in messages:
        try:
            entries.append(model.model_validate(message_to_dict(message, log)))
        except ValidationError as exc:
            log.warning(
                "Skipping malformed %s: %d invalid field(s)",
                model.__name__, exc.error_count(),
            )
    return entries
