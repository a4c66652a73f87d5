"""Health checking client over ``grpc.health.v1``.

An unreachable or erroring check is reported as ``SERVICE_UNKNOWN`` instead
of raising, so a health report always has a value to print.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import grpc
from grpc_health.v1 import health_pb2, health_pb2_grpc

from src.shared.constants import DEFAULT_RPC_TIMEOUT, OVERALL_SERVICE
from src.shared.models.common import HealthStatus

logger = logging.getLogger(__name__)


class HealthClient:
    """Synchronous health stub wrapper."""

    def __init__(
        self,
        channel: grpc.Channel | None = None,
        rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
        stub: Any = None,
        log: logging.Logger | None = None,
    ) -> None:
        if stub is None and channel is None:
            raise ValueError("Either a channel or a stub is required")
        self._stub = stub or health_pb2_grpc.HealthStub(channel)
        self._rpc_timeout = rpc_timeout
        self._logger = log or logger

    def check(self, service: str) -> HealthStatus:
        try:
            response = self._stub.Check(
                health_pb2.HealthCheckRequest(service=service),
                timeout=self._rpc_timeout,
            )
        except grpc.RpcError as exc:
            self._logger.debug(
                'failed to fetch health status for "%s": %s', service, exc
            )
            return HealthStatus.SERVICE_UNKNOWN
        name = health_pb2.HealthCheckResponse.ServingStatus.Name(response.status)
        return HealthStatus(name)

    def check_all(self, services: Iterable[str]) -> list[tuple[str, HealthStatus]]:
        """Check the overall status plus every named service, in name order."""
        return [(service, self.check(service)) for service in ordered_service_names(services)]


def ordered_service_names(services: Iterable[str]) -> list[str]:
    """Deduplicate and sort service names, always including the overall one."""
    return sorted({OVERALL_SERVICE, *services})
