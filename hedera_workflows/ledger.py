# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The capability set a workflow needs from a ledger.

``execute`` covers every state change (account, token, transfer, file and
contract services); ``account_balance`` and ``call_contract`` are the
read-only queries. Implementations: ``InMemoryLedger`` for tests and local
runs, ``HieroLedger`` for the public networks.
"""

from __future__ import annotations

from typing_extensions import Protocol

from . import asymmetric_crypto
from .abi import ContractFunctionResult
from .entity_id import AccountId
from .receipt import AccountBalance, TransactionReceipt
from .transactions import ContractCallQuery, Transaction


class LedgerClient(Protocol):
    def register_key(self, private_key: asymmetric_crypto.PrivateKey):
        """Make ``private_key`` available to a backend that signs on its own.

        Backends that check ``Transaction.signatures`` directly ignore it.
        """
        ...

    async def execute(self, transaction: Transaction) -> TransactionReceipt:
        """Submit a signed transaction and wait for its receipt.

        A receipt is returned for every transaction that reached consensus,
        whatever its status. Rejections before consensus raise
        ``PrecheckError``; transport failures raise ``ApiError``.
        """
        ...

    async def account_balance(self, account_id: AccountId) -> AccountBalance:
        ...

    async def call_contract(self, query: ContractCallQuery) -> ContractFunctionResult:
        """Run a read-only contract call, paid for by ``query.sender_account_id``."""
        ...

    async def close(self):
        ...
