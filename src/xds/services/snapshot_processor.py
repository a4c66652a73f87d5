"""Ordering, filtering and status flattening for CSDS snapshots.

Two snapshot shapes are handled side by side:

* the legacy shape, where each ``PerXdsConfig`` carries one per-type dump
  (listeners, routes, clusters or endpoints) holding many resources;
* the generic shape, where each ``GenericXdsConfig`` is one resource typed
  by its URL.

Canonical order for dumps is Listener < Route < Cluster < Endpoint < other,
applied with a stable sort.  Type filters are matched case-insensitively
against the trailing segment of the type URL (``...v3.Listener`` ->
``listener``); the legacy ``lds``/``rds``/``cds``/``eds`` names are accepted
as aliases.  A filter that matches nothing yields nothing, not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from src.shared.decoders import decode_xds_config_type, type_tag
from src.shared.errors import MalformedPayloadError, UnsupportedVariantError
from src.shared.models.xds import (
    ClientConfig,
    ClientStatusSnapshot,
    GenericXdsConfig,
    PerXdsConfig,
    StatusRow,
    XdsConfigType,
)

logger = logging.getLogger(__name__)

# Trailing type URL segment (lower-cased) of each resource family
TYPE_TAGS: dict[XdsConfigType, str] = {
    XdsConfigType.LISTENER: "listener",
    XdsConfigType.ROUTE: "routeconfiguration",
    XdsConfigType.SCOPED_ROUTE: "scopedrouteconfiguration",
    XdsConfigType.CLUSTER: "cluster",
    XdsConfigType.ENDPOINT: "clusterloadassignment",
}

_TAG_TYPES: dict[str, XdsConfigType] = {tag: kind for kind, tag in TYPE_TAGS.items()}

TYPE_ALIASES: dict[str, str] = {
    "lds": "listener",
    "rds": "routeconfiguration",
    "route": "routeconfiguration",
    "srds": "scopedrouteconfiguration",
    "cds": "cluster",
    "eds": "clusterloadassignment",
    "endpoint": "clusterloadassignment",
}

_TYPE_RANK: dict[XdsConfigType, int] = {
    XdsConfigType.LISTENER: 0,
    XdsConfigType.ROUTE: 1,
    XdsConfigType.CLUSTER: 2,
    XdsConfigType.ENDPOINT: 3,
}
_OTHER_RANK = 4


def normalize_type_filter(wanted: Iterable[str] | None) -> set[str] | None:
    """Turn user-supplied type names into a set of type tags.

    Accepts tags (``listener``), aliases (``lds``) and full type URLs, in any
    case; comma-separated values are split.  ``None`` or an empty input means
    "no filter".
    """
    if wanted is None:
        return None
    tags: set[str] = set()
    for value in wanted:
        for part in value.split(","):
            name = part.strip().lower()
            if not name:
                continue
            if "." in name or "/" in name:
                name = type_tag(name)
            tags.add(TYPE_ALIASES.get(name, name))
    return tags or None


def legacy_config_type(config: PerXdsConfig) -> XdsConfigType:
    """Config type of a legacy entry; unrecognized entries count as other."""
    try:
        return decode_xds_config_type(config)
    except UnsupportedVariantError:
        return XdsConfigType.OTHER


def generic_config_type(config: GenericXdsConfig) -> XdsConfigType:
    return _TAG_TYPES.get(type_tag(config.type_url), XdsConfigType.OTHER)


def _legacy_tag(config: PerXdsConfig) -> str | None:
    return TYPE_TAGS.get(legacy_config_type(config))


def sort_and_filter(
    snapshot: ClientStatusSnapshot,
    wanted_types: Iterable[str] | None = None,
) -> ClientStatusSnapshot:
    """Return a copy of *snapshot* in canonical type order, optionally filtered.

    The input snapshot is not modified.  Without a filter every entry is
    preserved; entries of equal type keep their relative source order.
    """
    wanted = normalize_type_filter(wanted_types)
    configs = [_sort_client_config(config, wanted) for config in snapshot.config]
    return snapshot.model_copy(update={"config": configs})


def _sort_client_config(config: ClientConfig, wanted: set[str] | None) -> ClientConfig:
    legacy = sorted(
        config.xds_config,
        key=lambda entry: _TYPE_RANK.get(legacy_config_type(entry), _OTHER_RANK),
    )
    generic = sorted(
        config.generic_xds_configs,
        key=lambda entry: _TYPE_RANK.get(generic_config_type(entry), _OTHER_RANK),
    )
    if wanted is not None:
        legacy = [entry for entry in legacy if _legacy_tag(entry) in wanted]
        generic = [entry for entry in generic if type_tag(entry.type_url) in wanted]
    update: dict[str, Any] = {}
    if legacy or "xds_config" in config.model_fields_set:
        update["xds_config"] = legacy
    if generic or "generic_xds_configs" in config.model_fields_set:
        update["generic_xds_configs"] = generic
    return config.model_copy(update=update)


def per_type_dumps(
    snapshot: ClientStatusSnapshot,
    log: logging.Logger | None = None,
) -> list[Any]:
    """The raw per-type payloads of a (usually filtered) snapshot.

    Legacy entries contribute their populated per-type dump; generic entries
    contribute themselves.
    """
    log = log or logger
    dumps: list[Any] = []
    for config in snapshot.config:
        for entry in config.xds_config:
            kind = legacy_config_type(entry)
            if kind is XdsConfigType.OTHER:
                log.debug("Skipping xDS config entry of unknown type")
                continue
            dumps.append(getattr(entry, f"{kind.value}_config"))
        dumps.extend(config.generic_xds_configs)
    return dumps


# ---------------------------------------------------------------------------
# Status flattening
# ---------------------------------------------------------------------------


@dataclass
class _PendingRow:
    """A resource whose name may still need to be decoded from its payload."""

    row: StatusRow
    payload: dict[str, Any] | None = None
    name_field: str | None = None


def to_status_rows(
    snapshot: ClientStatusSnapshot,
    log: logging.Logger | None = None,
) -> list[StatusRow]:
    """Flatten a snapshot into one row per managed resource.

    Resources whose packed payload cannot be read are logged and skipped;
    the rest of the snapshot still renders.
    """
    log = log or logger
    rows: list[StatusRow] = []
    for config in snapshot.config:
        for pending in _pending_rows(config, log):
            if pending.name_field is not None:
                try:
                    name = extract_resource_name(pending.payload, pending.name_field)
                except MalformedPayloadError as exc:
                    log.warning("Skipping xDS resource: %s", exc.detail)
                    continue
                pending.row = pending.row.model_copy(update={"name": name})
            rows.append(pending.row)
    return rows


def _pending_rows(config: ClientConfig, log: logging.Logger) -> Iterator[_PendingRow]:
    for entry in config.xds_config:
        try:
            kind = decode_xds_config_type(entry)
        except UnsupportedVariantError as exc:
            log.warning("Skipping xDS config entry: %s", exc.detail)
            continue
        yield from _legacy_rows(entry, kind, log)
    for generic in config.generic_xds_configs:
        yield _generic_row(generic)


def _legacy_rows(
    entry: PerXdsConfig, kind: XdsConfigType, log: logging.Logger
) -> Iterator[_PendingRow]:
    if kind is XdsConfigType.LISTENER:
        for listener in entry.listener_config.dynamic_listeners:
            row = StatusRow(name=listener.name, client_status=listener.client_status.value)
            state = listener.active_state
            if state is not None:
                row = row.model_copy(update={
                    "version": state.version_info,
                    "type": _payload_type(state.listener),
                    "last_updated": state.last_updated,
                })
            yield _PendingRow(row=row)
    elif kind is XdsConfigType.ROUTE:
        for route in entry.route_config.dynamic_route_configs:
            yield _PendingRow(
                row=_resource_row(route.client_status.value, route.version_info,
                                  route.route_config, route.last_updated),
                payload=route.route_config,
                name_field="name",
            )
    elif kind is XdsConfigType.CLUSTER:
        for cluster in entry.cluster_config.dynamic_active_clusters:
            yield _PendingRow(
                row=_resource_row(cluster.client_status.value, cluster.version_info,
                                  cluster.cluster, cluster.last_updated),
                payload=cluster.cluster,
                name_field="name",
            )
    elif kind is XdsConfigType.ENDPOINT:
        for endpoint in entry.endpoint_config.dynamic_endpoint_configs:
            yield _PendingRow(
                row=_resource_row(endpoint.client_status.value, endpoint.version_info,
                                  endpoint.endpoint_config, endpoint.last_updated),
                payload=endpoint.endpoint_config,
                name_field="cluster_name",
            )
    else:
        log.debug("No status rows for xDS config type %s", kind.value)


def _generic_row(entry: GenericXdsConfig) -> _PendingRow:
    row = StatusRow(
        name=entry.name,
        client_status=entry.client_status.value,
        version=entry.version_info,
        type=entry.type_url,
        last_updated=entry.last_updated,
    )
    if entry.name:
        return _PendingRow(row=row)
    name_field = (
        "cluster_name"
        if generic_config_type(entry) is XdsConfigType.ENDPOINT
        else "name"
    )
    return _PendingRow(row=row, payload=entry.xds_config, name_field=name_field)


def _resource_row(
    client_status: str,
    version: str,
    payload: dict[str, Any] | None,
    last_updated: str | None,
) -> StatusRow:
    return StatusRow(
        client_status=client_status,
        version=version,
        type=_payload_type(payload),
        last_updated=last_updated,
    )


def _payload_type(payload: dict[str, Any] | None) -> str:
    if not isinstance(payload, dict):
        return ""
    value = payload.get("@type", "")
    return value if isinstance(value, str) else ""


def extract_resource_name(payload: Any, field: str) -> str:
    """Read the resource name out of a packed config payload.

    Raises:
        MalformedPayloadError: If the payload is missing, is not a decoded
            message, or has no string *field*.
    """
    if payload is None:
        raise MalformedPayloadError(f"resource has no payload to read {field!r} from")
    if not isinstance(payload, dict):
        raise MalformedPayloadError(
            f"payload is {type(payload).__name__}, not a decoded message"
        )
    name = payload.get(field)
    if not isinstance(name, str):
        type_url = payload.get("@type", "unknown type")
        raise MalformedPayloadError(f"{type_url} payload has no {field!r} field")
    return name
