# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
ECDSA secp256k1 keys and signatures.

Hedera accounts created for EVM tooling are usually guarded by secp256k1
keys, and the portal hands out the operator key of such an account as DER
hex starting with ``3030020100300706052b8104000a``. Public keys are kept in
their 33 byte compressed form, which is what the ledger stores.

Signing is deterministic (RFC 6979) and normalised to low ``s`` so that a
body has exactly one valid signature per key.
"""

from __future__ import annotations

import hashlib
import unittest

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey, util

from . import asymmetric_crypto
from .bcs import Serializer

KEY_TAG: int = 1


class PrivateKey(asymmetric_crypto.PrivateKey):
    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.der()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        parsed_value = PrivateKey.parse_hex_input(
            value, asymmetric_crypto.PrivateKeyVariant.Secp256k1
        )
        if len(parsed_value) != PrivateKey.LENGTH:
            raise ValueError("Length mismatch")
        return PrivateKey(
            SigningKey.from_string(parsed_value, SECP256k1, hashlib.sha3_256)
        )

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey.from_hex(value)

    def hex(self) -> str:
        return f"0x{self.key.to_string().hex()}"

    def der(self) -> str:
        return PrivateKey.format_private_key(
            self.key.to_string(), asymmetric_crypto.PrivateKeyVariant.Secp256k1
        )

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(
            SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha3_256)
        )

    def sign(self, data: bytes) -> Signature:
        sig = self.key.sign_deterministic(data, hashfunc=hashlib.sha3_256)
        n = SECP256k1.generator.order()
        r, s = util.sigdecode_string(sig, n)
        # The signature is valid for both s and -s, normalization ensures that only s < n // 2 is valid
        if s > (n // 2):
            mod_s = (s * -1) % n
            sig = util.sigencode_string(r, mod_s, n)
        return Signature(sig)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.to_string())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 33
    DER_PREFIX: str = "302d300706052a8648ce3d020106052b8104000a032200"

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.to_crypto_bytes() == other.to_crypto_bytes()

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
        return PublicKey(VerifyingKey.from_string(key, SECP256k1, hashlib.sha3_256))

    def der(self) -> str:
        return f"{PublicKey.DER_PREFIX}{self.to_crypto_bytes().hex()}"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        try:
            self.key.verify(signature.data(), data)
        except BadSignatureError:
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.to_string("compressed")

    def serialize(self, serializer: Serializer):
        serializer.u8(KEY_TAG)
        serializer.to_bytes(self.to_crypto_bytes())


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
        self.assertFalse(public_key.verify(b"tampered", signature))

    def test_deterministic(self):
        private_key = PrivateKey.random()
        self.assertEqual(private_key.sign(b"body"), private_key.sign(b"body"))

    def test_der_round_trip(self):
        private_key = PrivateKey.random()
        encoded = str(private_key)
        self.assertTrue(encoded.startswith("3030020100300706052b8104000a04220420"))
        self.assertEqual(PrivateKey.from_str(encoded), private_key)

        public_key = private_key.public_key()
        self.assertEqual(len(public_key.to_crypto_bytes()), 33)
        self.assertEqual(PublicKey.from_str(str(public_key)), public_key)


if __name__ == "__main__":
    unittest.main()
