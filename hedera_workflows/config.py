# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Workflow configuration: operator credentials and the network to talk to.

Values come from the process environment, optionally seeded from a ``.env``
file:

    MY_ACCOUNT_ID: Operator account id, e.g. ``0.0.1234`` (required)
    MY_PRIVATE_KEY: Operator private key, DER or raw hex (required)
    HEDERA_NETWORK: ``testnet`` (default), ``previewnet``, ``mainnet`` or
        ``local`` for the in-memory ledger
    HEDERA_MIRROR_URL: Mirror node REST endpoint, overriding the network's
        public one

The configuration is read once and passed explicitly to whatever needs it.
"""

from __future__ import annotations

import os
import typing
import unittest
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from . import asymmetric_crypto, ed25519
from .entity_id import AccountId
from .errors import ConfigurationError
from .hbar import Hbar
from .keys import private_key_from_str
from .mirror_client import ClientConfig

MIRROR_URLS: typing.Dict[str, typing.Optional[str]] = {
    "testnet": "https://testnet.mirrornode.hedera.com/api/v1",
    "previewnet": "https://previewnet.mirrornode.hedera.com/api/v1",
    "mainnet": "https://mainnet-public.mirrornode.hedera.com/api/v1",
    "local": None,
}

DEFAULT_MAX_TRANSACTION_FEE = Hbar.from_hbar(100)
DEFAULT_MAX_QUERY_PAYMENT = Hbar.from_hbar(50)


@dataclass(frozen=True)
class OperatorConfig:
    """The account that pays for, and authorizes, every step."""

    account_id: AccountId
    private_key: asymmetric_crypto.PrivateKey

    def __repr__(self) -> str:
        # Never print the key.
        return f"OperatorConfig(account_id={self.account_id})"


@dataclass(frozen=True)
class WorkflowConfig:
    operator: OperatorConfig
    network: str = "testnet"
    mirror_url: typing.Optional[str] = MIRROR_URLS["testnet"]
    max_transaction_fee: Hbar = DEFAULT_MAX_TRANSACTION_FEE
    max_query_payment: Hbar = DEFAULT_MAX_QUERY_PAYMENT
    client_config: ClientConfig = field(default_factory=ClientConfig)

    @staticmethod
    def from_env(
        environ: typing.Optional[typing.Mapping[str, str]] = None,
        network: typing.Optional[str] = None,
        dotenv_path: typing.Optional[str] = None,
    ) -> WorkflowConfig:
        """
        Build the configuration from ``environ``, or from ``os.environ`` after
        loading ``.env`` when ``environ`` is not given. ``network`` overrides
        ``HEDERA_NETWORK``.

        :raises ConfigurationError: If the operator credentials are missing or
            malformed, or the network is unknown.
        """
        if environ is None:
            load_dotenv(dotenv_path or find_dotenv(usecwd=True))
            environ = os.environ

        account_id = environ.get("MY_ACCOUNT_ID")
        private_key = environ.get("MY_PRIVATE_KEY")
        if not account_id or not private_key:
            raise ConfigurationError(
                "Environment variables MY_ACCOUNT_ID and MY_PRIVATE_KEY must be present"
            )
        try:
            operator = OperatorConfig(
                AccountId.from_str(account_id), private_key_from_str(private_key)
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid operator credentials: {e}") from e

        network = (network or environ.get("HEDERA_NETWORK") or "testnet").lower()
        if network not in MIRROR_URLS:
            raise ConfigurationError(
                f"Unknown network {network!r}, expected one of {', '.join(MIRROR_URLS)}"
            )
        mirror_url = environ.get("HEDERA_MIRROR_URL") or MIRROR_URLS[network]
        return WorkflowConfig(operator, network, mirror_url)


class Test(unittest.TestCase):
    def setUp(self):
        self.key = ed25519.PrivateKey.random()
        self.environ = {"MY_ACCOUNT_ID": "0.0.1234", "MY_PRIVATE_KEY": self.key.der()}

    def test_from_env(self):
        config = WorkflowConfig.from_env(self.environ)
        self.assertEqual(config.operator.account_id, AccountId.from_num(1234))
        self.assertEqual(config.operator.private_key, self.key)
        self.assertEqual(config.network, "testnet")
        self.assertEqual(config.mirror_url, MIRROR_URLS["testnet"])
        self.assertEqual(config.max_transaction_fee, Hbar.from_hbar(100))
        self.assertEqual(config.max_query_payment, Hbar.from_hbar(50))
        self.assertNotIn(self.key.hex(), repr(config))

    def test_missing_credentials(self):
        for missing in ("MY_ACCOUNT_ID", "MY_PRIVATE_KEY"):
            environ = dict(self.environ)
            del environ[missing]
            with self.assertRaises(ConfigurationError):
                WorkflowConfig.from_env(environ)

    def test_malformed_credentials(self):
        with self.assertRaises(ConfigurationError):
            WorkflowConfig.from_env({**self.environ, "MY_ACCOUNT_ID": "alice"})
        with self.assertRaises(ConfigurationError):
            WorkflowConfig.from_env({**self.environ, "MY_PRIVATE_KEY": "zz"})

    def test_network_selection(self):
        config = WorkflowConfig.from_env(self.environ, network="LOCAL")
        self.assertEqual(config.network, "local")
        self.assertIsNone(config.mirror_url)

        environ = {
            **self.environ,
            "HEDERA_NETWORK": "mainnet",
            "HEDERA_MIRROR_URL": "http://localhost:5551/api/v1",
        }
        config = WorkflowConfig.from_env(environ)
        self.assertEqual(config.network, "mainnet")
        self.assertEqual(config.mirror_url, "http://localhost:5551/api/v1")

        with self.assertRaises(ConfigurationError):
            WorkflowConfig.from_env({**self.environ, "HEDERA_NETWORK": "devnet"})

    def test_dotenv_in_working_directory(self):
        import tempfile
        import unittest.mock

        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, ".env"), "w") as f:
                f.write("MY_ACCOUNT_ID=0.0.1234\n")
                f.write(f"MY_PRIVATE_KEY={self.key.der()}\n")
            cwd = os.getcwd()
            os.chdir(tmp)
            self.addCleanup(os.chdir, cwd)
            with unittest.mock.patch.dict("os.environ", {}, clear=True):
                config = WorkflowConfig.from_env()
        self.assertEqual(config.operator.account_id, AccountId.from_num(1234))
        self.assertEqual(config.operator.private_key, self.key)


if __name__ == "__main__":
    unittest.main()
