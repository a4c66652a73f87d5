"""Protobuf to JSON-mapping conversion that survives unknown packed types.

``json_format.MessageToDict`` gives up on the whole message when any nested
``google.protobuf.Any`` names a type missing from the descriptor pool (a TLS
context inside a cluster, an RBAC filter inside a listener).  On failure the
conversion here retries field by field, so only the payload that cannot be
decoded stays opaque, as ``{"@type": <type URL>, "value": <base64>}``.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from google.protobuf import descriptor_pool, json_format, message_factory
from google.protobuf.message import DecodeError, Message

logger = logging.getLogger(__name__)

_ANY = "google.protobuf.Any"


def message_to_dict(message: Message, log: logging.Logger | None = None) -> dict[str, Any]:
    """Protobuf JSON mapping with proto field names."""
    return _to_json(message, log or logger)


def _to_json(message: Message, log: logging.Logger) -> Any:
    try:
        return json_format.MessageToDict(message, preserving_proto_field_name=True)
    except (TypeError, json_format.Error) as exc:
        if message.DESCRIPTOR.full_name == _ANY:
            return _packed_to_json(message, exc, log)
        return _fields_to_json(message, log)


def _fields_to_json(message: Message, log: logging.Logger) -> dict[str, Any]:
    # Message-typed fields are converted one by one; scalars go through the
    # regular mapping on a copy with those fields cleared.
    scalars = type(message)()
    scalars.CopyFrom(message)
    nested: dict[str, Any] = {}
    for field, value in message.ListFields():
        if field.message_type is None:
            continue
        if field.message_type.GetOptions().map_entry:
            if field.message_type.fields_by_name["value"].message_type is None:
                continue
            nested[field.name] = {
                _map_key(key): _to_json(item, log) for key, item in value.items()
            }
        elif isinstance(value, Message):
            nested[field.name] = _to_json(value, log)
        else:
            nested[field.name] = [_to_json(item, log) for item in value]
        scalars.ClearField(field.name)
    document = json_format.MessageToDict(scalars, preserving_proto_field_name=True)
    document.update(nested)
    return document


def _packed_to_json(packed: Message, exc: Exception, log: logging.Logger) -> dict[str, Any]:
    type_url = packed.type_url
    try:
        descriptor = descriptor_pool.Default().FindMessageTypeByName(
            type_url.rsplit("/", 1)[-1]
        )
        inner = message_factory.GetMessageClass(descriptor)()
        inner.ParseFromString(packed.value)
    except (KeyError, DecodeError):
        log.debug("Keeping packed %s opaque: %s", type_url, exc)
        return {
            "@type": type_url,
            "value": base64.b64encode(packed.value).decode("ascii"),
        }
    document = _to_json(inner, log)
    if not isinstance(document, dict):
        # Well-known types map to a bare value
        document = {"value": document}
    return {"@type": type_url, **document}


def _map_key(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)
