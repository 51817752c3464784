"""
Encrypted JSON codec.

Writes always produce the current (v2) envelope. Reads try an ordered list of
decode strategies and stop at the first success::

    START -> TRY_V2 -> SUCCESS
                    -> TRY_V1 -> SUCCESS
                              -> FAIL (FatalDecodeError)

v2 envelopes are self-describing when the adapter runs with a dynamic IV, so
they are always attempted first. The legacy (v1) strategy decrypts with the
old byte layout and hands the text to the registry's generic
``application/json`` deserializer.
"""

from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Union

from .cipher import CipherAdapter, Primitive, build_primitive
from .config import CipherConfig, load_config
from .errors import CipherError, DecodeError, FatalDecodeError, LegacyEnvelopeWarning
from .serializers import JSON_CONTENT_TYPE, Registry, default_registry

CONTENT_TYPE = "application/x-json-encrypted"


def canonical_json(value: Any) -> bytes:
    """Serialize ``value`` to compact, key-sorted UTF-8 JSON."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def _reject_constant(name: str) -> Any:
    raise DecodeError(f"Non-standard JSON constant {name}")


def parse_json(data: bytes) -> Any:
    """Strict counterpart of :func:`canonical_json`."""
    try:
        return json.loads(data.decode("utf-8"), parse_constant=_reject_constant)
    except UnicodeDecodeError as exc:
        raise DecodeError("Decrypted payload is not UTF-8 text") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Decrypted payload is not valid JSON: {exc}") from exc


@dataclass(frozen=True)
class DecodeResult:
    strategy: str
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, strategy: str, value: Any) -> "DecodeResult":
        return cls(strategy=strategy, ok=True, value=value)

    @classmethod
    def failure(cls, strategy: str, error: BaseException) -> "DecodeResult":
        return cls(strategy=strategy, ok=False, error=error)


class DecodeStrategy:
    """One way of reading a blob. Only cipher and parse failures become results."""

    name = "base"
    legacy = False

    def decode(self, blob: bytes) -> DecodeResult:
        try:
            return DecodeResult.success(self.name, self._read(blob))
        except (CipherError, DecodeError) as exc:
            return DecodeResult.failure(self.name, exc)

    def _read(self, blob: bytes) -> Any:
        raise NotImplementedError


class EnvelopeV2Strategy(DecodeStrategy):
    name = "v2"

    def __init__(self, adapter: CipherAdapter, parser: Callable[[bytes], Any] = parse_json):
        self.adapter = adapter
        self.parser = parser

    def _read(self, blob: bytes) -> Any:
        return self.parser(self.adapter.decrypt(blob))


class LegacyV1Strategy(DecodeStrategy):
    name = "v1"
    legacy = True

    def __init__(
        self,
        adapter: CipherAdapter,
        registry: Registry,
        content_type: str = JSON_CONTENT_TYPE,
    ):
        self.adapter = adapter
        self.registry = registry
        self.content_type = content_type

    def _read(self, blob: bytes) -> Any:
        internal = self.adapter.decrypt_legacy(blob)
        try:
            return self.registry.deserialize(self.content_type, internal)
        except ValueError as exc:
            raise DecodeError(f"Legacy payload is not valid {self.content_type}: {exc}") from exc


class EnvelopeCodec:
    """
    Serializer for ``application/x-json-encrypted`` documents.

    Args:
        cipher: cipher name, RSA key or ready CipherAdapter. Defaults to
            whatever the configuration names.
        path: key-material file, read once (defaults to ``$JSONSEAL_CONFIG``).
        config: an already-built CipherConfig; skips reading ``path``.
        registry: registry providing the legacy ``application/json``
            deserializer; the process-wide registry by default.
        environment: config section to read.
        warn_legacy: emit LegacyEnvelopeWarning when a blob is read with the
            legacy layout. Hosts that turn warnings into errors should pass
            False so legacy reads return their value.

    Example::

        codec = EnvelopeCodec("aes-256-cbc", "config/encryption.json")
        serializers.install(codec)
    """

    content_type = CONTENT_TYPE
    internal_content_type = JSON_CONTENT_TYPE

    def __init__(
        self,
        cipher: Union[Primitive, CipherAdapter, None] = None,
        path: Union[str, os.PathLike, None] = None,
        *,
        config: Optional[CipherConfig] = None,
        registry: Optional[Registry] = None,
        environment: Optional[str] = None,
        warn_legacy: bool = True,
    ):
        self.warn_legacy = warn_legacy
        if isinstance(cipher, CipherAdapter):
            self.adapter = cipher
            self.config = cipher.config
        else:
            if config is None:
                config = load_config(path, environment=environment)
            self.config = config
            primitive = cipher if cipher is not None else build_primitive(config)
            self.adapter = CipherAdapter(primitive, config)
        self.registry = registry if registry is not None else default_registry
        self.strategies: Tuple[DecodeStrategy, ...] = (
            EnvelopeV2Strategy(self.adapter),
            LegacyV1Strategy(self.adapter, self.registry, self.internal_content_type),
        )

    def __repr__(self) -> str:
        return f"EnvelopeCodec({self.adapter!r})"

    def dump(self, value: Any) -> bytes:
        """Serialize and encrypt ``value`` into a v2 envelope."""
        return self.adapter.encrypt(canonical_json(value))

    def load(self, blob: bytes) -> Any:
        """
        Decrypt and deserialize ``blob``, falling back to the legacy layout once.

        Raises:
            FatalDecodeError: no strategy could read the blob.
            LegacyEnvelopeWarning: a legacy read, when warnings are errors
                and ``warn_legacy`` is set.
        """
        failures = []
        for strategy in self.strategies:
            result = strategy.decode(blob)
            if result.ok:
                if strategy.legacy and self.warn_legacy:
                    warnings.warn(
                        f"Read a legacy ({strategy.name}) envelope; rewrite it with upgrade() "
                        "to move it to the current format.",
                        LegacyEnvelopeWarning,
                        stacklevel=2,
                    )
                return result.value
            failures.append((strategy.name, result.error))
        summary = "; ".join(f"{name}: {error}" for name, error in failures)
        raise FatalDecodeError(f"Unable to decode encrypted document ({summary})", failures) from failures[-1][1]

    def upgrade(self, blob: bytes) -> bytes:
        """Re-encrypt any readable envelope as a current (v2) envelope."""
        return self.dump(self.load(blob))


__all__ = [
    "CONTENT_TYPE",
    "DecodeResult",
    "DecodeStrategy",
    "EnvelopeCodec",
    "EnvelopeV2Strategy",
    "LegacyV1Strategy",
    "canonical_json",
    "parse_json",
]
