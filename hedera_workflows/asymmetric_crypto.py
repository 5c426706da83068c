# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Key protocols shared by the ED25519 and ECDSA (secp256k1) implementations.

Hedera accounts can be guarded by either key type. Both are exported by the
portal and by the SDKs as hex encoded DER: a fixed ASN.1 prefix that names
the algorithm, followed by the raw 32 byte key. This module holds the
structural protocols every key type satisfies and the helpers that move
between DER hex strings and raw key bytes.

Examples:
    Reading any key from a string::

        raw = PrivateKey.parse_hex_input(
            "302e020100300506032b657004220420" + "ab" * 32,
            PrivateKeyVariant.Ed25519,
        )

    Writing a key back out::

        PrivateKey.format_private_key(raw, PrivateKeyVariant.Ed25519)
"""

from __future__ import annotations

from enum import Enum

from typing_extensions import Protocol

from .bcs import Serializable


class PrivateKeyVariant(Enum):
    Ed25519 = "ed25519"
    Secp256k1 = "secp256k1"


class PrivateKey(Serializable, Protocol):
    """Structural interface of every private key type."""

    def hex(self) -> str:
        ...

    def public_key(self) -> PublicKey:
        ...

    def sign(self, data: bytes) -> Signature:
        ...

    DER_PREFIXES: dict[PrivateKeyVariant, str] = {
        PrivateKeyVariant.Ed25519: "302e020100300506032b657004220420",
        PrivateKeyVariant.Secp256k1: "3030020100300706052b8104000a04220420",
    }

    @staticmethod
    def format_private_key(
        private_key: bytes | str, key_type: PrivateKeyVariant
    ) -> str:
        """Format raw key material as a DER hex string for ``key_type``."""
        if key_type not in PrivateKey.DER_PREFIXES:
            raise ValueError(f"Unknown private key type: {key_type}")
        if isinstance(private_key, str):
            key_bytes = PrivateKey.parse_hex_input(private_key, key_type)
        elif isinstance(private_key, bytes):
            key_bytes = private_key
        else:
            raise TypeError("Input value must be a string or bytes.")
        return f"{PrivateKey.DER_PREFIXES[key_type]}{key_bytes.hex()}"

    @staticmethod
    def parse_hex_input(value: str | bytes, key_type: PrivateKeyVariant) -> bytes:
        """Turn a DER hex string, raw hex string or raw bytes into key bytes.

        :param value: ``"302e0201..."`` style DER hex, ``"0x..."`` or bare hex,
            or the raw bytes themselves.
        :param key_type: The algorithm the caller expects.
        :raises ValueError: If the string carries the other algorithm's prefix.
        """
        if isinstance(value, bytes):
            return value
        if not isinstance(value, str):
            raise TypeError("Input value must be a string or bytes.")

        value = value.strip().lower()
        if value.startswith("0x"):
            value = value[2:]
        for variant, prefix in PrivateKey.DER_PREFIXES.items():
            if value.startswith(prefix):
                if variant != key_type:
                    raise ValueError(
                        f"Key is DER encoded as {variant.value}, expected {key_type.value}"
                    )
                value = value[len(prefix) :]
                break
        return bytes.fromhex(value)

    @staticmethod
    def detect_variant(value: str) -> PrivateKeyVariant:
        """Return the key type named by a DER prefix; bare hex means ED25519."""
        value = value.strip().lower()
        if value.startswith("0x"):
            value = value[2:]
        for variant, prefix in PrivateKey.DER_PREFIXES.items():
            if value.startswith(prefix):
                return variant
        return PrivateKeyVariant.Ed25519


class PublicKey(Serializable, Protocol):
    def to_crypto_bytes(self) -> bytes:
        """The raw key bytes, as the ledger stores them."""
        ...

    def verify(self, data: bytes, signature: Signature) -> bool:
        ...


class Signature(Serializable, Protocol):
    ...
