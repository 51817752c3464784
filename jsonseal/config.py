"""
Key material loading.

The configuration file is JSON, either flat or split into environment
sections::

    {
        "production": {
            "cipher": "aes-256-cbc",
            "key": "base64:...",
            "legacy_iv": "hex:00112233445566778899aabbccddeeff"
        }
    }

Binary values are base64 unless prefixed with ``hex:``. ``private_key`` is a
path to a PEM/DER RSA key, resolved against the config file's directory.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .errors import ConfigError

CONFIG_ENV = "JSONSEAL_CONFIG"
ENVIRONMENT_ENV = "JSONSEAL_ENV"
KEY_ENV = "JSONSEAL_KEY"
DEFAULT_ENVIRONMENT = "development"

_BINARY_FIELDS = ("key", "iv", "legacy_iv")
_KNOWN_FIELDS = (
    "cipher",
    "key",
    "iv",
    "key_length",
    "padding",
    "legacy_iv",
    "private_key",
    "private_key_password",
)


@dataclass(frozen=True)
class CipherConfig:
    cipher: Optional[str] = None
    key: Optional[bytes] = None
    iv: Optional[bytes] = None
    key_length: Optional[int] = None
    padding: Optional[Union[int, str]] = None
    legacy_iv: Optional[bytes] = None
    private_key: Optional[bytes] = None
    private_key_password: Optional[bytes] = None
    source: Optional[str] = None

    def __repr__(self) -> str:
        # Never leak key material through reprs or tracebacks.
        shown = []
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if item.name in ("key", "private_key", "private_key_password"):
                value = "<redacted>"
            shown.append(f"{item.name}={value!r}")
        return f"CipherConfig({', '.join(shown)})"

    def with_overrides(self, **changes: Any) -> "CipherConfig":
        return replace(self, **changes)


def decode_binary(value: str, field: str = "value") -> bytes:
    if not isinstance(value, str):
        raise ConfigError(f"{field} must be a string, got {type(value).__name__}")
    text = value.strip()
    try:
        if text.startswith("hex:"):
            return binascii.unhexlify(text[4:])
        if text.startswith("base64:"):
            text = text[7:]
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError(f"{field} is not valid base64/hex data") from exc


def _select_section(document: Mapping[str, Any], environment: str) -> Mapping[str, Any]:
    if any(name in document for name in _KNOWN_FIELDS):
        return document
    section = document.get(environment)
    if section is None:
        raise ConfigError(f"No '{environment}' section in configuration")
    if not isinstance(section, Mapping):
        raise ConfigError(f"Configuration section '{environment}' must be an object")
    return section


def _coerce_padding(value: Any) -> Optional[Union[int, str]]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    raise ConfigError("padding must be an integer or a string")


def config_from_mapping(
    data: Mapping[str, Any],
    *,
    base_dir: Optional[Path] = None,
    source: Optional[str] = None,
) -> CipherConfig:
    """Build a CipherConfig from an already-parsed configuration section."""
    unknown = sorted(set(data) - set(_KNOWN_FIELDS))
    if unknown:
        raise ConfigError(f"Unknown configuration field(s): {', '.join(unknown)}")

    values: dict = {}
    cipher = data.get("cipher")
    if cipher is not None:
        if not isinstance(cipher, str) or not cipher.strip():
            raise ConfigError("cipher must be a non-empty string")
        values["cipher"] = cipher.strip()

    for name in _BINARY_FIELDS:
        if data.get(name) is not None:
            values[name] = decode_binary(data[name], name)

    key_length = data.get("key_length")
    if key_length is not None:
        if isinstance(key_length, bool) or not isinstance(key_length, int) or key_length <= 0:
            raise ConfigError("key_length must be a positive integer")
        values["key_length"] = key_length

    values["padding"] = _coerce_padding(data.get("padding"))

    private_key = data.get("private_key")
    if private_key is not None:
        if not isinstance(private_key, str):
            raise ConfigError("private_key must be a path string")
        key_path = Path(private_key).expanduser()
        if not key_path.is_absolute() and base_dir is not None:
            key_path = base_dir / key_path
        if not key_path.exists():
            raise FileNotFoundError(f"Private key not found at {key_path}")
        values["private_key"] = key_path.read_bytes()

    password = data.get("private_key_password")
    if password is not None:
        if not isinstance(password, str):
            raise ConfigError("private_key_password must be a string")
        values["private_key_password"] = password.encode("utf-8")

    return CipherConfig(source=source, **values)


def resolve_config_path(path: Union[str, os.PathLike, None] = None) -> Path:
    spec = path if path is not None else os.getenv(CONFIG_ENV)
    if not spec:
        raise ConfigError(
            f"No configuration path given. Pass one explicitly or set {CONFIG_ENV}."
        )
    return Path(spec).expanduser()


def load_config(
    path: Union[str, os.PathLike, None] = None,
    *,
    environment: Optional[str] = None,
) -> CipherConfig:
    """
    Load a CipherConfig from a JSON key-material file.

    Args:
        path: Config file; defaults to ``$JSONSEAL_CONFIG``.
        environment: Section to read when the file is split by environment;
            defaults to ``$JSONSEAL_ENV`` and then ``development``.

    ``$JSONSEAL_KEY`` replaces the file's key when set.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Encryption config not found at {config_path}")
    try:
        document = json.loads(config_path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to parse encryption config at {config_path}: {exc}") from exc
    if not isinstance(document, Mapping):
        raise ConfigError("Encryption config must be a JSON object")

    env_name = environment or os.getenv(ENVIRONMENT_ENV) or DEFAULT_ENVIRONMENT
    section = _select_section(document, env_name)
    config = config_from_mapping(
        section,
        base_dir=config_path.resolve().parent,
        source=str(config_path),
    )

    env_key = os.getenv(KEY_ENV)
    if env_key:
        config = config.with_overrides(key=decode_binary(env_key, KEY_ENV))
    return config


__all__ = [
    "CONFIG_ENV",
    "CipherConfig",
    "DEFAULT_ENVIRONMENT",
    "ENVIRONMENT_ENV",
    "KEY_ENV",
    "config_from_mapping",
    "decode_binary",
    "load_config",
    "resolve_config_path",
]
