"""
Cipher adapter: one encrypt/decrypt contract over symmetric and RSA primitives.

The adapter picks a CipherMode once, at construction, from the primitive it
was given and the CipherConfig:

- SYMMETRIC_DYNAMIC_IV: a fresh IV per call, written into the envelope as
  ``VERSION_TAG || IV || ciphertext``.
- SYMMETRIC_STATIC_IV: the configured IV (or none, for ECB); raw ciphertext.
- ASYMMETRIC: RSA public-key encryption / private-key decryption; raw
  ciphertext.

Each call builds its own ``Cipher`` context from immutable settings, so an
adapter can be shared between threads.
"""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers import algorithms as decrepit_algorithms
from cryptography.hazmat.decrepit.ciphers import modes as decrepit_modes
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import CipherConfig
from .errors import CipherError, ConfigError

VERSION_TAG = b"0.0.1"
BLOCK_BITS = 128

_FAMILIES = {
    "aes": algorithms.AES,
    "camellia": decrepit_algorithms.Camellia,
}
_MODES = {
    "cbc": modes.CBC,
    "ecb": modes.ECB,
    "cfb": decrepit_modes.CFB,
    "cfb8": decrepit_modes.CFB8,
    "ofb": decrepit_modes.OFB,
    "ctr": modes.CTR,
}
_FAMILY_MODES = {
    "aes": frozenset(_MODES),
    "camellia": frozenset({"cbc", "ecb", "cfb", "ofb"}),
}
_PADDED_MODES = frozenset({"cbc", "ecb"})
_NAME_RE = re.compile(r"^(aes|camellia)-?(128|192|256)?(?:-(cbc|ecb|cfb8|cfb|ofb|ctr))?$")
_PADDING_OFF = frozenset({"0", "none", "off", "false", "no"})
_PADDING_ON = frozenset({"1", "pkcs7", "pkcs5", "on", "true", "yes"})

Primitive = Union[str, "CipherSpec", rsa.RSAPrivateKey, rsa.RSAPublicKey]


class CipherMode(enum.Enum):
    SYMMETRIC_DYNAMIC_IV = "symmetric-dynamic-iv"
    SYMMETRIC_STATIC_IV = "symmetric-static-iv"
    ASYMMETRIC = "asymmetric"


@dataclass(frozen=True)
class CipherSpec:
    """A resolved symmetric cipher name."""

    name: str
    family: str
    mode: Optional[str]
    key_size: Optional[int]
    iv_len: int

    @property
    def padded(self) -> bool:
        return self.mode in _PADDED_MODES


def resolve_cipher(name: str) -> CipherSpec:
    """
    Resolve an OpenSSL-style cipher name such as ``aes-256-cbc``.

    Names without a size (``aes-cbc``) take it from ``key_length`` or the key.
    A bare family (``aes256``, ``aes``) means CBC.
    """
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("Cipher name must be a non-empty string")
    normalized = name.strip().lower()
    if normalized == "chacha20":
        return CipherSpec(name=normalized, family="chacha20", mode=None, key_size=32, iv_len=16)
    match = _NAME_RE.match(normalized)
    if match is None:
        raise ConfigError(f"Unsupported cipher '{name}'")
    family, bits, mode = match.groups()
    mode = mode or "cbc"
    if mode not in _FAMILY_MODES[family]:
        raise ConfigError(f"Cipher mode '{mode}' is not available for {family}")
    return CipherSpec(
        name=normalized,
        family=family,
        mode=mode,
        key_size=int(bits) // 8 if bits else None,
        iv_len=0 if mode == "ecb" else BLOCK_BITS // 8,
    )


def _padding_enabled(value: Union[int, str, None]) -> bool:
    if value is None:
        return True
    token = str(value).strip().lower()
    if token in _PADDING_OFF:
        return False
    if token in _PADDING_ON:
        return True
    raise ConfigError(f"Unsupported symmetric padding '{value}'")


def _rsa_padding(value: Union[int, str, None]) -> asym_padding.AsymmetricPadding:
    token = "pkcs1" if value is None else str(value).strip().lower()
    if token in ("1", "pkcs1", "pkcs1v15", "pkcs1-v1_5"):
        return asym_padding.PKCS1v15()
    if token in ("4", "oaep", "pkcs1-oaep"):
        # OpenSSL's RSA_PKCS1_OAEP_PADDING uses SHA-1 for both digest and MGF1.
        return asym_padding.OAEP(
            mgf=asym_padding.MGF1(algorithm=hashes.SHA1()),
            algorithm=hashes.SHA1(),
            label=None,
        )
    raise ConfigError(f"Unsupported RSA padding '{value}'")


def load_private_key(data: bytes, password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
    if not data:
        raise ConfigError("Empty private key data")
    loaders = (
        lambda raw: serialization.load_pem_private_key(raw, password=password),
        lambda raw: serialization.load_der_private_key(raw, password=password),
    )
    for loader in loaders:
        try:
            key = loader(data)
        except (ValueError, TypeError, UnsupportedAlgorithm):
            continue
        if isinstance(key, rsa.RSAPrivateKey):
            return key
        raise ConfigError(f"Unsupported private key type {type(key).__name__}; RSA is required")
    raise ConfigError("Private key could not be loaded (bad format or password)")


def build_primitive(config: CipherConfig) -> Primitive:
    """Pick the primitive a config describes: an RSA key, else the cipher name."""
    if config.private_key is not None:
        return load_private_key(config.private_key, config.private_key_password)
    if config.cipher:
        return config.cipher
    raise ConfigError("Configuration names neither a cipher nor a private key")


def _ensure_bytes(data, label: str) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"{label} expects bytes, got {type(data).__name__}")
    return bytes(data)


class CipherAdapter:
    """
    Uniform encrypt/decrypt over a configured cipher primitive.

    Args:
        primitive: cipher name (``"aes-256-cbc"``), a resolved CipherSpec, or
            an RSA private/public key object.
        config: key, IV, key length and padding settings.

    Failures of the primitive surface as CipherError; unusable settings are
    reported as ConfigError when the adapter is built.
    """

    def __init__(self, primitive: Primitive, config: Optional[CipherConfig] = None):
        self.config = config or CipherConfig()
        self.spec: Optional[CipherSpec] = None
        self._private_key: Optional[rsa.RSAPrivateKey] = None
        self._public_key: Optional[rsa.RSAPublicKey] = None
        if isinstance(primitive, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
            self._init_asymmetric(primitive)
        elif isinstance(primitive, CipherSpec):
            self._init_symmetric(primitive)
        elif isinstance(primitive, str):
            self._init_symmetric(resolve_cipher(primitive))
        else:
            raise TypeError(f"Unsupported cipher primitive {type(primitive).__name__}")

    def __repr__(self) -> str:
        name = self.spec.name if self.spec is not None else "rsa"
        return f"CipherAdapter({name!r}, mode={self.mode.value})"

    @classmethod
    def from_config(cls, config: CipherConfig) -> "CipherAdapter":
        return cls(build_primitive(config), config)

    # ---------- Construction -----------------------------------------------

    def _init_asymmetric(self, key: Union[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> None:
        self.mode = CipherMode.ASYMMETRIC
        self.iv_len = 0
        if isinstance(key, rsa.RSAPrivateKey):
            self._private_key = key
            self._public_key = key.public_key()
        else:
            self._public_key = key
        self._rsa_padding = _rsa_padding(self.config.padding)

    def _init_symmetric(self, spec: CipherSpec) -> None:
        config = self.config
        key = config.key
        if key is None:
            raise ConfigError(f"Cipher {spec.name} requires a key")
        key_size = spec.key_size
        if config.key_length is not None:
            if key_size is not None and config.key_length != key_size:
                raise ConfigError(
                    f"key_length {config.key_length} does not match {spec.name} ({key_size} bytes)"
                )
            key_size = config.key_length
        if key_size is not None and len(key) != key_size:
            raise ConfigError(f"Cipher {spec.name} requires a {key_size}-byte key, got {len(key)}")
        try:
            if spec.family == "chacha20":
                algorithms.ChaCha20(key, bytes(spec.iv_len))
            else:
                _FAMILIES[spec.family](key)
        except ValueError as exc:
            raise ConfigError(f"Invalid key for {spec.name}: {exc}") from exc

        for label, value in (("iv", config.iv), ("legacy_iv", config.legacy_iv)):
            if value is None:
                continue
            if spec.iv_len == 0:
                raise ConfigError(f"Cipher {spec.name} does not use an IV ({label} given)")
            if len(value) != spec.iv_len:
                raise ConfigError(f"{label} must be {spec.iv_len} bytes for {spec.name}, got {len(value)}")

        self.spec = spec
        self.iv_len = spec.iv_len
        self._key = key
        self._padded = _padding_enabled(config.padding) and spec.padded
        if spec.iv_len and config.iv is None:
            self.mode = CipherMode.SYMMETRIC_DYNAMIC_IV
        else:
            self.mode = CipherMode.SYMMETRIC_STATIC_IV

    # ---------- Public API -------------------------------------------------

    @property
    def can_decrypt(self) -> bool:
        return self.mode is not CipherMode.ASYMMETRIC or self._private_key is not None

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` into a current (v2) envelope."""
        plaintext = _ensure_bytes(plaintext, "encrypt")
        if self.mode is CipherMode.ASYMMETRIC:
            try:
                return self._public_key.encrypt(plaintext, self._rsa_padding)
            except ValueError as exc:
                raise CipherError(f"RSA encryption failed: {exc}") from exc
        if self.mode is CipherMode.SYMMETRIC_DYNAMIC_IV:
            iv = os.urandom(self.iv_len)
            return VERSION_TAG + iv + self._encrypt_symmetric(plaintext, iv)
        return self._encrypt_symmetric(plaintext, self.config.iv)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt a current (v2) envelope."""
        data = _ensure_bytes(data, "decrypt")
        if self.mode is CipherMode.ASYMMETRIC:
            return self._decrypt_asymmetric(data)
        if self.mode is CipherMode.SYMMETRIC_DYNAMIC_IV:
            tag_len = len(VERSION_TAG)
            header_len = tag_len + self.iv_len
            if len(data) < header_len:
                raise CipherError(
                    f"Envelope truncated: {len(data)} bytes, header needs {header_len}"
                )
            if data[:tag_len] != VERSION_TAG:
                raise CipherError("Envelope is missing the version tag")
            return self._decrypt_symmetric(data[header_len:], data[tag_len:header_len])
        return self._decrypt_symmetric(data, self.config.iv)

    def decrypt_legacy(self, data: bytes) -> bytes:
        """
        Decrypt a legacy (v1) payload, which never carries a version tag.

        Dynamic-IV adapters read ``IV || ciphertext`` unless ``legacy_iv`` is
        configured, in which case the payload is raw ciphertext under that IV.
        Static-IV and RSA payloads share the current layout.
        """
        data = _ensure_bytes(data, "decrypt_legacy")
        if self.mode is CipherMode.ASYMMETRIC:
            return self._decrypt_asymmetric(data)
        if self.mode is CipherMode.SYMMETRIC_DYNAMIC_IV:
            if self.config.legacy_iv is not None:
                return self._decrypt_symmetric(data, self.config.legacy_iv)
            if len(data) < self.iv_len:
                raise CipherError(f"Legacy payload truncated: {len(data)} bytes, IV needs {self.iv_len}")
            return self._decrypt_symmetric(data[self.iv_len:], data[:self.iv_len])
        return self._decrypt_symmetric(data, self.config.iv)

    # ---------- Internal helpers -------------------------------------------

    def _cipher(self, iv: Optional[bytes]) -> Cipher:
        spec = self.spec
        if spec.family == "chacha20":
            return Cipher(algorithms.ChaCha20(self._key, iv), mode=None)
        algorithm = _FAMILIES[spec.family](self._key)
        if spec.mode == "ecb":
            return Cipher(algorithm, modes.ECB())
        return Cipher(algorithm, _MODES[spec.mode](iv))

    def _encrypt_symmetric(self, plaintext: bytes, iv: Optional[bytes]) -> bytes:
        try:
            data = plaintext
            if self._padded:
                padder = sym_padding.PKCS7(BLOCK_BITS).padder()
                data = padder.update(data) + padder.finalize()
            encryptor = self._cipher(iv).encryptor()
            return encryptor.update(data) + encryptor.finalize()
        except ValueError as exc:
            raise CipherError(f"{self.spec.name} encryption failed: {exc}") from exc

    def _decrypt_symmetric(self, ciphertext: bytes, iv: Optional[bytes]) -> bytes:
        try:
            decryptor = self._cipher(iv).decryptor()
            data = decryptor.update(ciphertext) + decryptor.finalize()
            if self._padded:
                unpadder = sym_padding.PKCS7(BLOCK_BITS).unpadder()
                data = unpadder.update(data) + unpadder.finalize()
            return data
        except ValueError as exc:
            raise CipherError(f"{self.spec.name} decryption failed: {exc}") from exc

    def _decrypt_asymmetric(self, ciphertext: bytes) -> bytes:
        if self._private_key is None:
            raise CipherError("RSA decryption requires a private key")
        try:
            return self._private_key.decrypt(ciphertext, self._rsa_padding)
        except ValueError as exc:
            raise CipherError(f"RSA decryption failed: {exc}") from exc


__all__ = [
    "BLOCK_BITS",
    "CipherAdapter",
    "CipherMode",
    "CipherSpec",
    "VERSION_TAG",
    "build_primitive",
    "load_private_key",
    "resolve_cipher",
]
