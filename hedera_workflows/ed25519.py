# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
ED25519 keys and signatures.

ED25519 is the default key type for Hedera accounts; freshly generated
workflow accounts, supply keys and the operator key are usually ED25519.
Keys print as hex encoded DER, which is the format the Hedera portal and
the SDKs exchange, and parse from DER hex or raw 32 byte hex.

Examples:
    Generating a key and signing::

        private_key = PrivateKey.random()
        signature = private_key.sign(b"body")
        assert private_key.public_key().verify(b"body", signature)

    Loading the operator key from the environment::

        private_key = PrivateKey.from_str(os.environ["MY_PRIVATE_KEY"])
"""

from __future__ import annotations

import unittest

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from . import asymmetric_crypto
from .bcs import Serializer

KEY_TAG: int = 0


class PrivateKey(asymmetric_crypto.PrivateKey):
    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self):
        return self.der()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Parse DER hex, raw hex (with or without ``0x``) or raw bytes.

        :raises ValueError: If the key material is not 32 bytes.
        """
        parsed_value = PrivateKey.parse_hex_input(
            value, asymmetric_crypto.PrivateKeyVariant.Ed25519
        )
        if len(parsed_value) != PrivateKey.LENGTH:
            raise ValueError("Length mismatch")
        return PrivateKey(SigningKey(parsed_value))

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey.from_hex(value)

    def hex(self) -> str:
        return f"0x{self.key.encode().hex()}"

    def der(self) -> str:
        return PrivateKey.format_private_key(
            self.key.encode(), asymmetric_crypto.PrivateKeyVariant.Ed25519
        )

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def sign(self, data: bytes) -> Signature:
        return Signature(self.key.sign(data).signature)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 32
    DER_PREFIX: str = "302a300506032b6570032100"

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.to_crypto_bytes())

    def __str__(self) -> str:
        return self.der()

    @staticmethod
    def from_str(value: str) -> PublicKey:
        value = value.strip().lower()
        if value.startswith("0x"):
            value = value[2:]
        if value.startswith(PublicKey.DER_PREFIX):
            value = value[len(PublicKey.DER_PREFIX) :]
        key = bytes.fromhex(value)
        if len(key) != PublicKey.LENGTH:
            raise ValueError("Length mismatch")
        return PublicKey(VerifyKey(key))

    def der(self) -> str:
        return f"{PublicKey.DER_PREFIX}{self.key.encode().hex()}"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        try:
            self.key.verify(data, signature.data())
        except BadSignatureError:
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.encode()

    def serialize(self, serializer: Serializer):
        serializer.u8(KEY_TAG)
        serializer.to_bytes(self.key.encode())


class Signature(asymmetric_crypto.Signature):
    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return f"0x{self.signature.hex()}"

    def data(self) -> bytes:
        return self.signature

    def serialize(self, serializer: Serializer):
        serializer.u8(KEY_TAG)
        serializer.to_bytes(self.signature)


class Test(unittest.TestCase):
    def test_sign_and_verify(self):
        in_value = b"test_message"

        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(in_value)
        self.assertTrue(public_key.verify(in_value, signature))
        self.assertFalse(public_key.verify(b"other_message", signature))

    def test_der_round_trip(self):
        private_key = PrivateKey.random()
        self.assertTrue(str(private_key).startswith("302e020100300506032b6570"))
        self.assertEqual(PrivateKey.from_str(str(private_key)), private_key)

        public_key = private_key.public_key()
        self.assertEqual(PublicKey.from_str(str(public_key)), public_key)

    def test_raw_hex(self):
        raw = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
        from_raw = PrivateKey.from_str(raw)
        from_prefixed = PrivateKey.from_str(f"0x{raw}")
        self.assertEqual(from_raw, from_prefixed)
        # RFC 8032 test vector 1
        self.assertEqual(
            from_raw.public_key().to_crypto_bytes().hex(),
            "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a",
        )

    def test_rejects_ecdsa_der(self):
        with self.assertRaises(ValueError):
            PrivateKey.from_str("3030020100300706052b8104000a04220420" + "11" * 32)

    def test_length_mismatch(self):
        with self.assertRaises(Exception):
            PrivateKey.from_str("abcd")


if __name__ == "__main__":
    unittest.main()
