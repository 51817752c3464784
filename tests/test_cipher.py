import os
import subprocess
import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from jsonseal.cipher import (
    VERSION_TAG,
    CipherAdapter,
    CipherMode,
    build_primitive,
    load_private_key,
    resolve_cipher,
)
from jsonseal.config import CipherConfig
from jsonseal.errors import CipherError, ConfigError

KEY = bytes(range(32))
IV = bytes(range(16, 32))
LEGACY_IV = bytes(range(100, 116))


def _cbc_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    padder = sym_padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


class ResolveCipherTests(unittest.TestCase):
    def test_openssl_style_names(self):
        spec = resolve_cipher("AES-256-CBC")
        self.assertEqual(spec.family, "aes")
        self.assertEqual(spec.mode, "cbc")
        self.assertEqual(spec.key_size, 32)
        self.assertEqual(spec.iv_len, 16)
        self.assertTrue(spec.padded)

    def test_aliases_default_to_cbc(self):
        self.assertEqual(resolve_cipher("aes256").mode, "cbc")
        spec = resolve_cipher("aes-cbc")
        self.assertIsNone(spec.key_size)
        self.assertEqual(spec.mode, "cbc")

    def test_stream_modes_are_unpadded(self):
        for name in ("aes-128-ctr", "aes-192-ofb", "aes-256-cfb8", "camellia-128-cfb"):
            with self.subTest(name=name):
                spec = resolve_cipher(name)
                self.assertFalse(spec.padded)
                self.assertEqual(spec.iv_len, 16)

    def test_ecb_has_no_iv(self):
        self.assertEqual(resolve_cipher("aes-128-ecb").iv_len, 0)

    def test_chacha20(self):
        spec = resolve_cipher("chacha20")
        self.assertEqual((spec.key_size, spec.iv_len), (32, 16))

    def test_unknown_names_rejected(self):
        for name in ("des-ede3-cbc", "aes-512-cbc", "camellia-256-ctr", ""):
            with self.subTest(name=name):
                with self.assertRaises(ConfigError):
                    resolve_cipher(name)


class SymmetricAdapterTests(unittest.TestCase):
    def test_mode_selected_from_config(self):
        dynamic = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        static = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, iv=IV))
        ecb = CipherAdapter("aes-256-ecb", CipherConfig(key=KEY))
        self.assertIs(dynamic.mode, CipherMode.SYMMETRIC_DYNAMIC_IV)
        self.assertIs(static.mode, CipherMode.SYMMETRIC_STATIC_IV)
        self.assertIs(ecb.mode, CipherMode.SYMMETRIC_STATIC_IV)
        self.assertEqual(ecb.iv_len, 0)

    def test_dynamic_iv_envelope_layout(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        blob = adapter.encrypt(b"0123456789")
        self.assertTrue(blob.startswith(VERSION_TAG))
        self.assertEqual(len(blob), len(VERSION_TAG) + 16 + 16)
        iv = blob[5:21]
        self.assertEqual(blob[21:], _cbc_encrypt(b"0123456789", KEY, iv))
        self.assertEqual(adapter.decrypt(blob), b"0123456789")

    def test_dynamic_iv_changes_every_call(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        first = adapter.encrypt(b"same")
        second = adapter.encrypt(b"same")
        self.assertNotEqual(first[5:21], second[5:21])
        self.assertEqual(adapter.decrypt(first), adapter.decrypt(second))

    def test_static_iv_is_deterministic_and_headerless(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, iv=IV))
        blob = adapter.encrypt(b"payload")
        self.assertEqual(blob, adapter.encrypt(b"payload"))
        self.assertEqual(blob, _cbc_encrypt(b"payload", KEY, IV))
        self.assertEqual(adapter.decrypt(blob), b"payload")

    def test_other_ciphers_roundtrip(self):
        cases = (
            ("aes-128-ctr", KEY[:16]),
            ("aes-192-ofb", KEY[:24]),
            ("aes-256-cfb", KEY),
            ("camellia-256-cbc", KEY),
            ("aes-128-ecb", KEY[:16]),
            ("chacha20", KEY),
        )
        for name, key in cases:
            with self.subTest(name=name):
                adapter = CipherAdapter(name, CipherConfig(key=key))
                blob = adapter.encrypt(b"{\"ok\":true}")
                self.assertEqual(adapter.decrypt(blob), b"{\"ok\":true}")

    def test_stream_mode_has_no_padding(self):
        adapter = CipherAdapter("aes-128-ctr", CipherConfig(key=KEY[:16]))
        self.assertEqual(len(adapter.encrypt(b"abc")), len(VERSION_TAG) + 16 + 3)

    def test_padding_disabled(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, iv=IV, padding=0))
        block = b"exactly16bytes!!"
        blob = adapter.encrypt(block)
        self.assertEqual(len(blob), 16)
        self.assertEqual(adapter.decrypt(blob), block)
        with self.assertRaises(CipherError):
            adapter.encrypt(b"short")

    def test_key_length_sizes_generic_names(self):
        adapter = CipherAdapter("aes-cbc", CipherConfig(key=KEY[:16], key_length=16))
        self.assertEqual(adapter.decrypt(adapter.encrypt(b"x")), b"x")
        without_length = CipherAdapter("aes-cbc", CipherConfig(key=KEY[:24]))
        self.assertEqual(without_length.decrypt(without_length.encrypt(b"y")), b"y")

    def test_configuration_errors(self):
        cases = (
            ("aes-256-cbc", CipherConfig()),
            ("aes-256-cbc", CipherConfig(key=KEY[:16])),
            ("aes-256-cbc", CipherConfig(key=KEY, key_length=16)),
            ("aes-cbc", CipherConfig(key=KEY[:10])),
            ("aes-256-cbc", CipherConfig(key=KEY, iv=IV[:8])),
            ("aes-256-cbc", CipherConfig(key=KEY, legacy_iv=b"\x00")),
            ("aes-256-ecb", CipherConfig(key=KEY, iv=IV)),
            ("aes-256-cbc", CipherConfig(key=KEY, padding="zeros")),
        )
        for name, config in cases:
            with self.subTest(name=name, config=config):
                with self.assertRaises(ConfigError):
                    CipherAdapter(name, config)

    def test_unsupported_primitive_type(self):
        with self.assertRaises(TypeError):
            CipherAdapter(42, CipherConfig(key=KEY))

    def test_missing_version_tag(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        blob = adapter.encrypt(b"data")
        with self.assertRaises(CipherError):
            adapter.decrypt(b"9.9.9" + blob[5:])

    def test_truncated_envelopes(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        blob = adapter.encrypt(b"data")
        with self.assertRaises(CipherError):
            adapter.decrypt(blob[:10])
        with self.assertRaises(CipherError):
            adapter.decrypt(blob[:-1])
        with self.assertRaises(CipherError):
            adapter.decrypt(VERSION_TAG + blob[5:21])

    def test_rejects_text(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        with self.assertRaises(TypeError):
            adapter.encrypt("text")
        with self.assertRaises(TypeError):
            adapter.decrypt("text")

    def test_accepts_bytes_like(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, iv=IV))
        blob = adapter.encrypt(bytearray(b"abc"))
        self.assertEqual(adapter.decrypt(memoryview(blob)), b"abc")


class LegacyLayoutTests(unittest.TestCase):
    def test_iv_prefixed_payload(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        payload = IV + _cbc_encrypt(b"legacy", KEY, IV)
        self.assertEqual(adapter.decrypt_legacy(payload), b"legacy")
        with self.assertRaises(CipherError):
            adapter.decrypt(payload)

    def test_payload_under_legacy_iv(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, legacy_iv=LEGACY_IV))
        self.assertIs(adapter.mode, CipherMode.SYMMETRIC_DYNAMIC_IV)
        payload = _cbc_encrypt(b"legacy", KEY, LEGACY_IV)
        self.assertEqual(adapter.decrypt_legacy(payload), b"legacy")

    def test_static_layout_is_shared(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY, iv=IV))
        payload = _cbc_encrypt(b"legacy", KEY, IV)
        self.assertEqual(adapter.decrypt_legacy(payload), adapter.decrypt(payload))

    def test_truncated_legacy_payload(self):
        adapter = CipherAdapter("aes-256-cbc", CipherConfig(key=KEY))
        with self.assertRaises(CipherError):
            adapter.decrypt_legacy(b"short")


class AsymmetricAdapterTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def test_mode_and_layout(self):
        adapter = CipherAdapter(self.private_key)
        self.assertIs(adapter.mode, CipherMode.ASYMMETRIC)
        self.assertEqual(adapter.iv_len, 0)
        blob = adapter.encrypt(b"secret")
        self.assertEqual(len(blob), 256)
        self.assertFalse(blob.startswith(VERSION_TAG))
        self.assertEqual(adapter.decrypt(blob), b"secret")
        self.assertEqual(adapter.decrypt_legacy(blob), b"secret")

    def test_oaep_padding(self):
        adapter = CipherAdapter(self.private_key, CipherConfig(padding="oaep"))
        self.assertEqual(adapter.decrypt(adapter.encrypt(b"secret")), b"secret")
        numeric = CipherAdapter(self.private_key, CipherConfig(padding=4))
        self.assertEqual(numeric.decrypt(adapter.encrypt(b"secret")), b"secret")

    def test_public_key_only_encrypts(self):
        writer = CipherAdapter(self.private_key.public_key())
        reader = CipherAdapter(self.private_key)
        self.assertFalse(writer.can_decrypt)
        blob = writer.encrypt(b"one-way")
        self.assertEqual(reader.decrypt(blob), b"one-way")
        with self.assertRaises(CipherError):
            writer.decrypt(blob)

    def test_payload_too_large(self):
        adapter = CipherAdapter(self.private_key)
        with self.assertRaises(CipherError):
            adapter.encrypt(b"x" * 300)

    def test_wrong_size_ciphertext(self):
        adapter = CipherAdapter(self.private_key)
        with self.assertRaises(CipherError):
            adapter.decrypt(b"garbage")

    def test_bad_rsa_padding(self):
        with self.assertRaises(ConfigError):
            CipherAdapter(self.private_key, CipherConfig(padding="pkcs7"))


class PrivateKeyLoadingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def test_pem_with_password(self):
        pem = self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.BestAvailableEncryption(b"hunter2"),
        )
        key = load_private_key(pem, b"hunter2")
        self.assertEqual(key.public_key().public_numbers(), self.private_key.public_key().public_numbers())
        with self.assertRaises(ConfigError):
            load_private_key(pem, b"wrong")

    def test_der(self):
        der = self.private_key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        self.assertIsInstance(load_private_key(der), rsa.RSAPrivateKey)

    def test_non_rsa_key_rejected(self):
        ec_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        with self.assertRaises(ConfigError):
            load_private_key(ec_pem)
        with self.assertRaises(ConfigError):
            load_private_key(b"")
        with self.assertRaises(ConfigError):
            load_private_key(b"not a key")

    def test_build_primitive(self):
        pem = self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        self.assertIsInstance(build_primitive(CipherConfig(private_key=pem, cipher="aes-256-cbc")), rsa.RSAPrivateKey)
        self.assertEqual(build_primitive(CipherConfig(cipher="aes-256-cbc")), "aes-256-cbc")
        with self.assertRaises(ConfigError):
            build_primitive(CipherConfig(key=os.urandom(32)))


class ImportWarningTests(unittest.TestCase):
    def test_import_is_clean_under_warnings_as_errors(self):
        env = os.environ.copy()
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
        script = (
            "import jsonseal.cipher as c\n"
            "for name in ('camellia-128-cfb', 'aes-128-cfb8', 'aes-256-ofb'):\n"
            "    c.CipherAdapter(name, c.CipherConfig(key=bytes(c.resolve_cipher(name).key_size)))\n"
        )
        result = subprocess.run(
            [sys.executable, "-W", "error", "-c", script],
            cwd=REPO_ROOT,
            capture_output=True,
            text=True,
            env=env,
        )
        self.assertEqual(result.returncode, 0, result.stderr)


if __name__ == "__main__":
    unittest.main()
