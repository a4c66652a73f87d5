"""Tests for the oneof variant decoders."""
from __future__ import annotations

import pytest

from src.shared.decoders import (
    SecurityInfo,
    decode_endpoint,
    decode_security,
    decode_socket_option,
    decode_xds_config_type,
    type_tag,
)
from src.shared.errors import UnsupportedVariantError
from src.shared.models.channelz import Address, Security, SocketOption
from src.shared.models.xds import PerXdsConfig, XdsConfigType
from tests.conftest import tcpip


class TestDecodeEndpoint:
    def test_ipv4(self):
        assert decode_endpoint(Address.model_validate(tcpip("10.0.0.1", 443))) == "10.0.0.1:443"

    def test_ipv6_is_bracketed(self):
        address = Address.model_validate(tcpip("2001:db8::1", 50051))
        assert decode_endpoint(address) == "[2001:db8::1]:50051"

    def test_uds(self):
        address = Address.model_validate({"uds_address": {"filename": "/tmp/grpc.sock"}})
        assert decode_endpoint(address) == "unix:/tmp/grpc.sock"

    def test_other(self):
        address = Address.model_validate({"other_address": {"name": "inproc"}})
        assert decode_endpoint(address) == "inproc"

    def test_unknown_variant_raises(self):
        address = Address.model_validate({"vsock_address": {"cid": 3}})
        with pytest.raises(UnsupportedVariantError, match="vsock_address"):
            decode_endpoint(address)

    def test_missing_address_raises(self):
        with pytest.raises(UnsupportedVariantError):
            decode_endpoint(None)

    def test_bad_ip_length_raises(self):
        address = Address.model_validate({"tcpip_address": {"ip_address": "AAEC", "port": 1}})
        with pytest.raises(UnsupportedVariantError, match="length 3"):
            decode_endpoint(address)

    def test_bad_base64_raises(self):
        address = Address.model_validate({"tcpip_address": {"ip_address": "!!", "port": 1}})
        with pytest.raises(UnsupportedVariantError):
            decode_endpoint(address)


class TestDecodeSecurity:
    def test_tls_standard_name(self):
        security = Security.model_validate({"tls": {"standard_name": "TLS_AES_128_GCM_SHA256"}})
        assert decode_security(security) == SecurityInfo("TLS", "Standard Name", "TLS_AES_128_GCM_SHA256")

    def test_tls_other_name(self):
        security = Security.model_validate({"tls": {"other_name": "custom"}})
        assert decode_security(security) == SecurityInfo("TLS", "Other Name", "custom")

    def test_other(self):
        security = Security.model_validate({"other": {"name": "alts"}})
        assert decode_security(security) == SecurityInfo("Other", "Name", "alts")

    def test_tls_without_cipher_name_raises(self):
        with pytest.raises(UnsupportedVariantError):
            decode_security(Security.model_validate({"tls": {}}))

    def test_unknown_model_raises(self):
        with pytest.raises(UnsupportedVariantError):
            decode_security(Security.model_validate({"quantum": {}}))


class TestDecodeSocketOption:
    def test_prefers_value(self):
        option = SocketOption(name="SO_REUSEADDR", value="1", additional={"x": 1})
        assert decode_socket_option(option) == "1"

    def test_falls_back_to_additional(self):
        option = SocketOption(name="SO_LINGER", additional={"duration": "0s", "active": True})
        assert decode_socket_option(option) == '{"active":true,"duration":"0s"}'

    def test_empty(self):
        assert decode_socket_option(SocketOption(name="SO_KEEPALIVE")) == ""


class TestDecodeXdsConfigType:
    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"listener_config": {}}, XdsConfigType.LISTENER),
            ({"route_config": {}}, XdsConfigType.ROUTE),
            ({"scoped_route_config": {}}, XdsConfigType.SCOPED_ROUTE),
            ({"cluster_config": {}}, XdsConfigType.CLUSTER),
            ({"endpoint_config": {}}, XdsConfigType.ENDPOINT),
        ],
    )
    def test_known_types(self, payload, expected):
        assert decode_xds_config_type(PerXdsConfig.model_validate(payload)) is expected

    def test_none_populated_raises(self):
        with pytest.raises(UnsupportedVariantError):
            decode_xds_config_type(PerXdsConfig(status="ACKED"))


@pytest.mark.parametrize(
    "type_url, tag",
    [
        ("type.googleapis.com/envoy.config.listener.v3.Listener", "listener"),
        ("type.googleapis.com/envoy.config.endpoint.v3.ClusterLoadAssignment", "clusterloadassignment"),
        ("envoy.config.cluster.v3.Cluster", "cluster"),
        ("", ""),
    ],
)
def test_type_tag(type_url, tag):
    assert type_tag(type_url) == tag
