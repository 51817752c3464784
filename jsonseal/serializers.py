"""
Content-type registry shared with the host document client.

A serializer is any object with ``dump(value) -> bytes`` and
``load(data) -> value``. The registry ships with ``application/json`` and
``text/plain``; EnvelopeCodec registers itself under
``application/x-json-encrypted`` through :func:`install`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"


class JsonSerializer:
    content_type = JSON_CONTENT_TYPE

    def dump(self, value: Any) -> bytes:
        return json.dumps(value).encode("utf-8")

    def load(self, data) -> Any:
        if isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        return json.loads(data)


class TextSerializer:
    content_type = TEXT_CONTENT_TYPE

    def dump(self, value: Any) -> bytes:
        return str(value).encode("utf-8")

    def load(self, data) -> str:
        if isinstance(data, str):
            return data
        return bytes(data).decode("utf-8")


class Registry:
    """Maps content types to serializers."""

    def __init__(self, *, defaults: bool = True) -> None:
        self._serializers: Dict[str, Any] = {}
        if defaults:
            self.register(JSON_CONTENT_TYPE, JsonSerializer())
            self.register(TEXT_CONTENT_TYPE, TextSerializer())

    def __contains__(self, content_type: str) -> bool:
        return self._normalize(content_type) in self._serializers

    @staticmethod
    def _normalize(content_type: str) -> str:
        if not isinstance(content_type, str) or not content_type.strip():
            raise ValueError("Content type must be a non-empty string")
        # Parameters such as "; charset=utf-8" do not select a serializer.
        return content_type.split(";", 1)[0].strip().lower()

    def register(self, content_type: str, serializer: Any) -> None:
        if not callable(getattr(serializer, "dump", None)) or not callable(getattr(serializer, "load", None)):
            raise TypeError("Serializer must provide dump() and load()")
        self._serializers[self._normalize(content_type)] = serializer

    def unregister(self, content_type: str) -> bool:
        return self._serializers.pop(self._normalize(content_type), None) is not None

    def get(self, content_type: str) -> Any:
        key = self._normalize(content_type)
        try:
            return self._serializers[key]
        except KeyError:
            raise KeyError(f"No serializer registered for content type '{key}'") from None

    def content_types(self) -> List[str]:
        return sorted(self._serializers)

    def serialize(self, content_type: str, value: Any) -> bytes:
        return self.get(content_type).dump(value)

    def deserialize(self, content_type: str, data) -> Any:
        return self.get(content_type).load(data)


default_registry = Registry()


def register(content_type: str, serializer: Any) -> None:
    default_registry.register(content_type, serializer)


def serialize(content_type: str, value: Any) -> bytes:
    return default_registry.serialize(content_type, value)


def deserialize(content_type: str, data) -> Any:
    return default_registry.deserialize(content_type, data)


def install(codec: Any, registry: Optional[Registry] = None) -> Registry:
    """Register ``codec`` under its own content type and return the registry used."""
    target = registry if registry is not None else default_registry
    target.register(codec.content_type, codec)
    return target


def bind_client(client: Any, codec: Any) -> None:
    """
    Hook ``codec`` into a host client exposing ``set_encoder``/``set_decoder``
    (the Riak Python client contract).
    """
    set_encoder = getattr(client, "set_encoder", None)
    set_decoder = getattr(client, "set_decoder", None)
    if not callable(set_encoder) or not callable(set_decoder):
        raise TypeError("Client must provide set_encoder() and set_decoder()")
    set_encoder(codec.content_type, codec.dump)
    set_decoder(codec.content_type, codec.load)


__all__ = [
    "JSON_CONTENT_TYPE",
    "JsonSerializer",
    "Registry",
    "TEXT_CONTENT_TYPE",
    "TextSerializer",
    "bind_client",
    "default_registry",
    "deserialize",
    "install",
    "register",
    "serialize",
]
