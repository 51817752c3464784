"""
JSONSEAL - encrypted JSON serializer for document stores

Registers as the ``application/x-json-encrypted`` content type of a host
document client. Documents are serialized to JSON, encrypted with a configured
cipher and wrapped in a versioned envelope; reads also accept the legacy
envelope layout.
"""

from .cipher import VERSION_TAG, CipherAdapter, CipherMode, CipherSpec, resolve_cipher
from .config import CipherConfig, load_config
from .envelope import CONTENT_TYPE, DecodeResult, EnvelopeCodec
from .errors import (
    CipherError,
    ConfigError,
    DecodeError,
    FatalDecodeError,
    JsonSealError,
    LegacyEnvelopeWarning,
)
from .serializers import Registry, bind_client, default_registry, install
from .version import __version__


def create_codec(path=None, cipher=None, *, environment=None, register: bool = True, warn_legacy: bool = True):
    """
    Build a codec from a key-material file and register it process-wide.

    Args:
        path: Config file (defaults to ``$JSONSEAL_CONFIG``)
        cipher: Cipher name or RSA key; defaults to the one the config names
        environment: Config section to read
        register: Install the codec in the default serializer registry
        warn_legacy: Warn when a blob is read with the legacy layout

    Returns:
        The EnvelopeCodec

    Note:
        - Call once per process; the codec is safe to share between threads
    """
    codec = EnvelopeCodec(cipher, path, environment=environment, warn_legacy=warn_legacy)
    if register:
        install(codec)
    return codec


def dump(value, codec: EnvelopeCodec):
    """Encrypt ``value`` with ``codec``. Same as ``codec.dump(value)``."""
    return codec.dump(value)


def load(blob: bytes, codec: EnvelopeCodec):
    """Decrypt ``blob`` with ``codec``, accepting current and legacy envelopes."""
    return codec.load(blob)


__all__ = [
    "CONTENT_TYPE",
    "CipherAdapter",
    "CipherConfig",
    "CipherError",
    "CipherMode",
    "CipherSpec",
    "ConfigError",
    "DecodeError",
    "DecodeResult",
    "EnvelopeCodec",
    "FatalDecodeError",
    "JsonSealError",
    "LegacyEnvelopeWarning",
    "Registry",
    "VERSION_TAG",
    "__version__",
    "bind_client",
    "create_codec",
    "default_registry",
    "dump",
    "install",
    "load",
    "load_config",
    "resolve_cipher",
]
