# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Key type dispatch: pick ED25519 or secp256k1 from a key string.
"""

from __future__ import annotations

import unittest

from . import asymmetric_crypto, ed25519, secp256k1_ecdsa
from .asymmetric_crypto import PrivateKeyVariant


def private_key_from_str(value: str) -> asymmetric_crypto.PrivateKey:
    """Parse an operator key exported by the portal or an SDK.

    DER hex names its algorithm. Bare hex carries no algorithm and is read
    as ED25519, the same default the SDKs apply.
    """
    variant = asymmetric_crypto.PrivateKey.detect_variant(value)
    if variant == PrivateKeyVariant.Secp256k1:
        return secp256k1_ecdsa.PrivateKey.from_str(value)
    return ed25519.PrivateKey.from_str(value)


def generate_private_key(
    variant: PrivateKeyVariant = PrivateKeyVariant.Ed25519,
) -> asymmetric_crypto.PrivateKey:
    if variant == PrivateKeyVariant.Secp256k1:
        return secp256k1_ecdsa.PrivateKey.random()
    return ed25519.PrivateKey.random()


class Test(unittest.TestCase):
    def test_dispatch(self):
        ed_key = ed25519.PrivateKey.random()
        ec_key = secp256k1_ecdsa.PrivateKey.random()

        self.assertEqual(private_key_from_str(str(ed_key)), ed_key)
        self.assertEqual(private_key_from_str(str(ec_key)), ec_key)
        self.assertIsInstance(
            private_key_from_str(ed_key.hex()), ed25519.PrivateKey
        )

    def test_generate(self):
        key = generate_private_key(PrivateKeyVariant.Secp256k1)
        self.assertIsInstance(key, secp256k1_ecdsa.PrivateKey)
        self.assertIsInstance(generate_private_key(), ed25519.PrivateKey)


if __name__ == "__main__":
    unittest.main()
