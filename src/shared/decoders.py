"""Decoders for the oneof payloads found in channelz and CSDS snapshots.

Every decoder matches the known variants explicitly and raises
:class:`UnsupportedVariantError` when none of them is populated, rather than
guessing a branch.
"""

from __future__ import annotations

import base64
import binascii
import ipaddress
import json
from dataclasses import dataclass

from src.shared.errors import UnsupportedVariantError
from src.shared.models.channelz import Address, Security, SocketOption, TcpIpAddress
from src.shared.models.xds import PerXdsConfig, XdsConfigType


@dataclass(frozen=True)
class SecurityInfo:
    """Display form of a socket's security descriptor."""

    model_name: str
    detail_name: str
    detail_value: str


def decode_endpoint(address: Address | None) -> str:
    """Render a transport address as ``host:port``, ``unix:path`` or a name.

    Raises:
        UnsupportedVariantError: If no known address variant is set.
    """
    if address is None:
        raise UnsupportedVariantError("Address is missing")
    if address.tcpip_address is not None:
        return _format_tcpip(address.tcpip_address)
    if address.uds_address is not None:
        return f"unix:{address.uds_address.filename}"
    if address.other_address is not None:
        return address.other_address.name
    unknown = sorted(address.model_extra or {})
    raise UnsupportedVariantError(
        f"Address type not supported: {', '.join(unknown) or 'empty address'}"
    )


def _format_tcpip(tcpip: TcpIpAddress) -> str:
    try:
        packed = base64.b64decode(tcpip.ip_address, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedVariantError(
            f"Invalid IP address encoding {tcpip.ip_address!r}"
        ) from exc
    if len(packed) not in (4, 16):
        raise UnsupportedVariantError(
            f"IP address has unexpected length {len(packed)}"
        )
    ip = ipaddress.ip_address(packed)
    if ip.version == 6:
        return f"[{ip}]:{tcpip.port}"
    return f"{ip}:{tcpip.port}"


def decode_security(security: Security) -> SecurityInfo:
    """Render the security model of a socket.

    Raises:
        UnsupportedVariantError: If neither TLS nor Other is set, or TLS
            carries no cipher suite name.
    """
    if security.tls is not None:
        tls = security.tls
        if tls.standard_name is not None:
            return SecurityInfo("TLS", "Standard Name", tls.standard_name)
        if tls.other_name is not None:
            return SecurityInfo("TLS", "Other Name", tls.other_name)
        raise UnsupportedVariantError("Unexpected cipher suite name type")
    if security.other is not None:
        return SecurityInfo("Other", "Name", security.other.name)
    raise UnsupportedVariantError("Unexpected security model type")


def decode_socket_option(option: SocketOption) -> str:
    """Prefer the pre-rendered value; fall back to the opaque payload."""
    if option.value:
        return option.value
    if not option.additional:
        return ""
    try:
        return json.dumps(option.additional, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(option.additional)


def decode_xds_config_type(config: PerXdsConfig) -> XdsConfigType:
    """Return which per-type dump a legacy xDS config entry carries.

    Raises:
        UnsupportedVariantError: If no known per-type dump is set.
    """
    if config.listener_config is not None:
        return XdsConfigType.LISTENER
    if config.route_config is not None:
        return XdsConfigType.ROUTE
    if config.scoped_route_config is not None:
        return XdsConfigType.SCOPED_ROUTE
    if config.cluster_config is not None:
        return XdsConfigType.CLUSTER
    if config.endpoint_config is not None:
        return XdsConfigType.ENDPOINT
    raise UnsupportedVariantError("Unexpected per-xDS config type")


def type_tag(type_url: str) -> str:
    """Lower-cased trailing segment of a type URL.

    ``type.googleapis.com/envoy.config.listener.v3.Listener`` -> ``listener``
    """
    tail = type_url.rsplit("/", 1)[-1]
    return tail.rsplit(".", 1)[-1].lower()
