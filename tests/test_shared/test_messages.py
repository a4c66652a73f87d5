"""Tests for protobuf conversion with unregistered packed types."""
from __future__ import annotations

import base64
import logging

from envoy.config.cluster.v3 import cluster_pb2
from envoy.config.route.v3 import route_pb2
from google.protobuf import any_pb2

from src.shared.messages import message_to_dict
from tests.conftest import CLUSTER_TYPE, ROUTE_TYPE

UNKNOWN_TYPE = "type.googleapis.com/example.unregistered.TlsContext"
OPAQUE_BYTES = b"\x0a\x03abc"


def _opaque() -> dict:
    return {"@type": UNKNOWN_TYPE, "value": base64.b64encode(OPAQUE_BYTES).decode("ascii")}


def _tls_cluster(name: str = "tls-cluster") -> cluster_pb2.Cluster:
    cluster = cluster_pb2.Cluster(name=name)
    cluster.connect_timeout.seconds = 5
    cluster.transport_socket.name = "envoy.transport_sockets.tls"
    cluster.transport_socket.typed_config.type_url = UNKNOWN_TYPE
    cluster.transport_socket.typed_config.value = OPAQUE_BYTES
    return cluster


class TestMessageToDict:
    def test_registered_types_use_the_json_mapping(self):
        packed = any_pb2.Any()
        packed.Pack(cluster_pb2.Cluster(name="plain"))
        assert message_to_dict(packed) == {"@type": CLUSTER_TYPE, "name": "plain"}

    def test_nested_unknown_payload_stays_opaque(self):
        document = message_to_dict(_tls_cluster())
        assert document["name"] == "tls-cluster"
        assert document["connect_timeout"] == "5s"
        assert document["transport_socket"] == {
            "name": "envoy.transport_sockets.tls",
            "typed_config": _opaque(),
        }

    def test_packed_resource_keeps_its_fields(self):
        packed = any_pb2.Any()
        packed.Pack(_tls_cluster())
        document = message_to_dict(packed)
        assert document["@type"] == CLUSTER_TYPE
        assert document["name"] == "tls-cluster"
        assert document["transport_socket"]["typed_config"] == _opaque()

    def test_unknown_top_level_type(self, caplog):
        packed = any_pb2.Any(type_url=UNKNOWN_TYPE, value=OPAQUE_BYTES)
        with caplog.at_level(logging.DEBUG, logger="src.shared.messages"):
            assert message_to_dict(packed) == _opaque()
        assert "Keeping packed" in caplog.text

    def test_map_of_packed_values(self):
        route = route_pb2.RouteConfiguration(name="backend-route")
        host = route.virtual_hosts.add(name="default", domains=["*"])
        host.typed_per_filter_config["envoy.filters.http.rbac"].CopyFrom(
            any_pb2.Any(type_url=UNKNOWN_TYPE, value=OPAQUE_BYTES)
        )
        packed = any_pb2.Any()
        packed.Pack(route)

        document = message_to_dict(packed)

        assert document["@type"] == ROUTE_TYPE
        assert document["name"] == "backend-route"
        virtual_host = document["virtual_hosts"][0]
        assert virtual_host["domains"] == ["*"]
        assert virtual_host["typed_per_filter_config"] == {
            "envoy.filters.http.rbac": _opaque(),
        }

    def test_injected_logger(self, caplog):
        log = logging.getLogger("test.messages")
        packed = any_pb2.Any(type_url=UNKNOWN_TYPE, value=OPAQUE_BYTES)
        with caplog.at_level(logging.DEBUG, logger="test.messages"):
            message_to_dict(packed, log)
        assert [record.name for record in caplog.records] == ["test.messages"]
