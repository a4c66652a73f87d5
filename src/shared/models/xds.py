"""CSDS client status snapshots as Pydantic v2 models.

Mirrors the protobuf JSON mapping of ``envoy.service.status.v3`` with
proto field names preserved.  Packed resources (``google.protobuf.Any``)
are kept as dicts carrying ``@type`` so that only the status flattening
step has to look inside them.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.shared.models.common import lenient_enum


class _Snapshot(BaseModel):
    model_config = {"extra": "allow", "frozen": True}


class ClientResourceStatus(str, Enum):
    """Client-side status of an xDS resource."""
    UNKNOWN = "UNKNOWN"
    REQUESTED = "REQUESTED"
    DOES_NOT_EXIST = "DOES_NOT_EXIST"
    ACKED = "ACKED"
    NACKED = "NACKED"
    RECEIVED_ERROR = "RECEIVED_ERROR"
    TIMEOUT = "TIMEOUT"


ClientResourceStatusField = lenient_enum(
    ClientResourceStatus, ClientResourceStatus.UNKNOWN
)


class XdsConfigType(str, Enum):
    """Which xDS resource family a config entry carries."""
    LISTENER = "listener"
    ROUTE = "route"
    SCOPED_ROUTE = "scoped_route"
    CLUSTER = "cluster"
    ENDPOINT = "endpoint"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Legacy per-type config dumps (envoy.admin.v3)
# ---------------------------------------------------------------------------


class ListenerState(_Snapshot):
    version_info: str = ""
    listener: dict[str, Any] | None = None
    last_updated: str | None = None


class DynamicListener(_Snapshot):
    name: str = ""
    active_state: ListenerState | None = None
    warming_state: ListenerState | None = None
    draining_state: ListenerState | None = None
    error_state: dict[str, Any] | None = None
    client_status: ClientResourceStatusField = ClientResourceStatus.UNKNOWN


class ListenersConfigDump(_Snapshot):
    version_info: str = ""
    dynamic_listeners: list[DynamicListener] = Field(default_factory=list)


class DynamicRouteConfig(_Snapshot):
    version_info: str = ""
    route_config: dict[str, Any] | None = None
    last_updated: str | None = None
    error_state: dict[str, Any] | None = None
    client_status: ClientResourceStatusField = ClientResourceStatus.UNKNOWN


class RoutesConfigDump(_Snapshot):
    dynamic_route_configs: list[DynamicRouteConfig] = Field(default_factory=list)


class DynamicCluster(_Snapshot):
    version_info: str = ""
    cluster: dict[str, Any] | None = None
    last_updated: str | None = None
    error_state: dict[str, Any] | None = None
    client_status: ClientResourceStatusField = ClientResourceStatus.UNKNOWN


class ClustersConfigDump(_Snapshot):
    version_info: str = ""
    dynamic_active_clusters: list[DynamicCluster] = Field(default_factory=list)


class DynamicEndpointConfig(_Snapshot):
    version_info: str = ""
    endpoint_config: dict[str, Any] | None = None
    last_updated: str | None = None
    error_state: dict[str, Any] | None = None
    client_status: ClientResourceStatusField = ClientResourceStatus.UNKNOWN


class EndpointsConfigDump(_Snapshot):
    dynamic_endpoint_configs: list[DynamicEndpointConfig] = Field(
        default_factory=list
    )


class PerXdsConfig(_Snapshot):
    """Legacy shape: exactly one per-type dump is expected to be set."""
    # Enum names; a bare number when this client has no name for the value
    status: str | int | None = None
    client_status: str | int | None = None
    listener_config: ListenersConfigDump | None = None
    route_config: RoutesConfigDump | None = None
    scoped_route_config: dict[str, Any] | None = None
    cluster_config: ClustersConfigDump | None = None
    endpoint_config: EndpointsConfigDump | None = None


# ---------------------------------------------------------------------------
# Generic shape
# ---------------------------------------------------------------------------


class GenericXdsConfig(_Snapshot):
    """One resource, typed by its URL."""
    type_url: str = ""
    name: str = ""
    version_info: str = ""
    xds_config: dict[str, Any] | None = None
    last_updated: str | None = None
    config_status: str | int | None = None
    client_status: ClientResourceStatusField = ClientResourceStatus.UNKNOWN
    error_state: dict[str, Any] | None = None
    is_static_resource: bool = False


class ClientConfig(_Snapshot):
    node: dict[str, Any] | None = None
    xds_config: list[PerXdsConfig] = Field(default_factory=list)
    generic_xds_configs: list[GenericXdsConfig] = Field(default_factory=list)
    client_scope: str = ""


class ClientStatusSnapshot(_Snapshot):
    """Point-in-time copy of a ``ClientStatusResponse``."""
    config: list[ClientConfig] = Field(default_factory=list)


class StatusRow(BaseModel):
    """One managed xDS resource in the flattened status view."""
    name: str = ""
    client_status: str = ClientResourceStatus.UNKNOWN.value
    version: str = ""
    type: str = ""
    last_updated: str | None = None
