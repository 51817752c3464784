"""Error kinds raised by the codec and its cipher adapter."""

from __future__ import annotations

from typing import List, Tuple


class JsonSealError(Exception):
    """Base class for every error raised by jsonseal."""


class ConfigError(JsonSealError, ValueError):
    """Raised when cipher configuration or key material is unusable."""


class CipherError(JsonSealError):
    """Raised when the cipher primitive rejects a key, IV, padding or ciphertext."""


class DecodeError(JsonSealError, ValueError):
    """Raised when decrypted bytes are not valid JSON text."""


class FatalDecodeError(JsonSealError):
    """
    Raised when no decode strategy could read a blob.

    ``errors`` keeps the failure of each strategy in the order they ran.
    """

    def __init__(self, message: str, errors: List[Tuple[str, BaseException]] | None = None):
        super().__init__(message)
        self.errors: List[Tuple[str, BaseException]] = list(errors or [])


class LegacyEnvelopeWarning(UserWarning):
    """Emitted when a blob was read with the legacy (v1) layout."""


__all__ = [
    "CipherError",
    "ConfigError",
    "DecodeError",
    "FatalDecodeError",
    "JsonSealError",
    "LegacyEnvelopeWarning",
]
