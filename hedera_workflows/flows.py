# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The three demonstration workflows as ordered step lists.

* ``nft_flow``: create an account, create a finite NFT collection with the
  operator as treasury, mint a batch, associate the new account, transfer
  serial 1 to it, and read balances before and after the transfer.
* ``fungible_flow``: create an account, create a fungible token, associate,
  transfer units to the new account, and read balances before and after.
* ``contract_flow``: upload bytecode as a file, create the contract, call
  ``get_message``, execute ``set_message`` and call ``get_message`` again.

Each ``*_flow`` function only builds the steps; ``run_*_flow`` runs them on
a ``WorkflowRunner`` and packs the step results into a result dataclass.
Every step that mutates the ledger goes through ``LedgerSession``, which
checks the receipt, so a failed step stops the flow before anything
references the entity it was meant to create.

Examples:
    Run the fungible flow against testnet::

        config = WorkflowConfig.from_env()
        ledger = HieroLedger.for_network(config)
        session = LedgerSession(ledger, config.operator)
        result = await run_fungible_flow(session)
        print(result.balances_after)
"""

from __future__ import annotations

import json
import re
import typing
import unittest
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from . import asymmetric_crypto, ed25519
from .abi import ContractFunctionParameters, ContractFunctionResult
from .config import OperatorConfig
from .entity_id import AccountId, ContractId, FileId, NftId, TokenId
from .errors import ReceiptStatusError, WorkflowAborted
from .hbar import Hbar
from .ledger import LedgerClient
from .receipt import AccountBalance, Status, TransactionReceipt
from .session import LedgerSession
from .transactions import (
    AccountCreate,
    ContractCallQuery,
    SupplyType,
    TokenCreate,
    TokenType,
    Transaction,
)
from .workflow import Step, WorkflowRunner

NEW_ACCOUNT_BALANCE = Hbar(100)

NFT_NAME = "Hedera Token Test"
NFT_SYMBOL = "HTT"
NFT_MAX_SUPPLY = 250
NFT_MINT_MAX_FEE = Hbar.from_hbar(20)
NFT_METADATA: Tuple[bytes, ...] = tuple(
    f"ipfs://{cid}/metadata.json".encode()
    for cid in (
        "bafyreiao6ajgsfji6qsgbqwdtjdu5gmul7tv2v3pd6kjgcw5o65b2ogst4",
        "bafyreic463uarchq4mlufp7pvfkfut7zeqsqmn3b2x3jjxwcjqx6b5pk7q",
        "bafyreihhja55q6h2rijscl3gra7a3ntiroyglz45z5wlyxdzs6kjh2dinu",
        "bafyreidb23oehkttjbff3gdi4vz7mjijcxjyxadwg32pngod4huozcwphu",
        "bafyreie7ftl6erd5etz5gscfwfiwjmht3b52cevdrf7hjwxx5ddns7zneu",
    )
)

FUNGIBLE_NAME = "USD Bar"
FUNGIBLE_SYMBOL = "USDB"
FUNGIBLE_DECIMALS = 2
FUNGIBLE_INITIAL_SUPPLY = 10000
FUNGIBLE_TRANSFER_AMOUNT = 10

CONTRACT_MESSAGE = "Hello from Hedera!"
CONTRACT_NEW_MESSAGE = "Hello from Hedera again!"
CONTRACT_CREATE_GAS = 300_000
CONTRACT_QUERY_PAYMENT = Hbar.from_hbar(2)


@dataclass(frozen=True)
class NewAccount:
    """An account created during a flow; its key lives only in memory."""

    account_id: AccountId
    private_key: asymmetric_crypto.PrivateKey

    def __repr__(self) -> str:
        return f"NewAccount(account_id={self.account_id})"


@dataclass(frozen=True)
class NftFlowResult:
    account: NewAccount
    token_id: TokenId
    serial_numbers: Tuple[int, ...]
    transferred: NftId
    balances_before: Tuple[AccountBalance, AccountBalance]
    balances_after: Tuple[AccountBalance, AccountBalance]


@dataclass(frozen=True)
class FungibleFlowResult:
    account: NewAccount
    token_id: TokenId
    balances_before: Tuple[AccountBalance, AccountBalance]
    balances_after: Tuple[AccountBalance, AccountBalance]


@dataclass(frozen=True)
class ContractFlowResult:
    contract_id: ContractId
    message: str
    updated_message: str


def load_bytecode(path: str) -> str:
    """
    Read the hex bytecode out of a compiled contract artifact. Accepted shapes:

    - Remix: ``{"data": {"bytecode": {"object": ...}}}``
    - ``solc --combined-json bin``: ``{"contracts": {"<file>:<name>": {"bin": ...}}}``
      holding exactly one contract
    - a top-level ``{"bytecode": ...}``

    :raises ValueError: If the artifact carries no bytecode, or more than one
        contract.
    """
    with open(path) as f:
        artifact = json.load(f)
    bytecode = artifact.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if bytecode is None:
        bytecode = ((artifact.get("data") or {}).get("bytecode") or {}).get("object")
    if bytecode is None and isinstance(artifact.get("contracts"), dict):
        compiled = [c.get("bin") for c in artifact["contracts"].values() if c.get("bin")]
        if len(compiled) > 1:
            raise ValueError(f"{path} holds {len(compiled)} contracts, expected one")
        bytecode = compiled[0] if compiled else None
    if not isinstance(bytecode, str) or not bytecode:
        raise ValueError(f"No bytecode found in {path}")
    return bytecode


def _create_account(session: LedgerSession, initial_balance: Hbar):
    async def action(results: Mapping[str, Any]) -> NewAccount:
        private_key = session.generate_key()
        account_id = await session.create_account(private_key.public_key(), initial_balance)
        return NewAccount(account_id, private_key)

    return action


def _generate_supply_key(session: LedgerSession):
    async def action(results: Mapping[str, Any]) -> asymmetric_crypto.PrivateKey:
        return session.generate_key()

    return action


def _associate(session: LedgerSession):
    async def action(results: Mapping[str, Any]):
        account: NewAccount = results["create account"]
        await session.associate(account.account_id, results["create token"], account.private_key)

    return action


def _balances(session: LedgerSession):
    async def action(results: Mapping[str, Any]) -> Tuple[AccountBalance, AccountBalance]:
        account: NewAccount = results["create account"]
        treasury, recipient = await session.query_balances(
            session.operator_id, account.account_id
        )
        return treasury, recipient

    return action


def nft_flow(
    session: LedgerSession,
    metadata: Sequence[bytes] = NFT_METADATA,
    max_supply: int = NFT_MAX_SUPPLY,
    initial_balance: Hbar = NEW_ACCOUNT_BALANCE,
) -> List[Step]:
    async def create_token(results: Mapping[str, Any]) -> TokenId:
        supply_key: asymmetric_crypto.PrivateKey = results["generate supply key"]
        return await session.create_token(
            TokenCreate(
                NFT_NAME,
                NFT_SYMBOL,
                session.operator_id,
                token_type=TokenType.NON_FUNGIBLE_UNIQUE,
                supply_type=SupplyType.FINITE,
                max_supply=max_supply,
                supply_key=supply_key.public_key(),
            )
        )

    async def mint(results: Mapping[str, Any]) -> Tuple[int, ...]:
        return await session.mint(
            results["create token"],
            metadata,
            results["generate supply key"],
            max_transaction_fee=NFT_MINT_MAX_FEE,
        )

    async def transfer(results: Mapping[str, Any]) -> NftId:
        account: NewAccount = results["create account"]
        nft_id = NftId(results["create token"], results["mint"][0])
        await session.transfer_nft(nft_id, session.operator_id, account.account_id)
        return nft_id

    return [
        Step("create account", _create_account(session, initial_balance)),
        Step("generate supply key", _generate_supply_key(session)),
        Step("create token", create_token),
        Step("mint", mint),
        Step("associate", _associate(session)),
        Step("balances before", _balances(session)),
        Step("transfer", transfer),
        Step("balances after", _balances(session)),
    ]


def fungible_flow(
    session: LedgerSession,
    amount: int = FUNGIBLE_TRANSFER_AMOUNT,
    initial_supply: int = FUNGIBLE_INITIAL_SUPPLY,
    initial_balance: Hbar = NEW_ACCOUNT_BALANCE,
) -> List[Step]:
    async def create_token(results: Mapping[str, Any]) -> TokenId:
        supply_key: asymmetric_crypto.PrivateKey = results["generate supply key"]
        return await session.create_token(
            TokenCreate(
                FUNGIBLE_NAME,
                FUNGIBLE_SYMBOL,
                session.operator_id,
                decimals=FUNGIBLE_DECIMALS,
                initial_supply=initial_supply,
                supply_key=supply_key.public_key(),
            )
        )

    async def transfer(results: Mapping[str, Any]):
        account: NewAccount = results["create account"]
        await session.transfer_token(
            results["create token"], session.operator_id, account.account_id, amount
        )

    return [
        Step("create account", _create_account(session, initial_balance)),
        Step("generate supply key", _generate_supply_key(session)),
        Step("create token", create_token),
        Step("associate", _associate(session)),
        Step("balances before", _balances(session)),
        Step("transfer", transfer),
        Step("balances after", _balances(session)),
    ]


def contract_flow(
    session: LedgerSession,
    bytecode: str,
    message: str = CONTRACT_MESSAGE,
    new_message: str = CONTRACT_NEW_MESSAGE,
) -> List[Step]:
    async def upload(results: Mapping[str, Any]) -> FileId:
        return await session.upload_bytecode(bytecode)

    async def create(results: Mapping[str, Any]) -> ContractId:
        return await session.create_contract(
            results["upload bytecode"],
            ContractFunctionParameters().add_string(message),
            CONTRACT_CREATE_GAS,
        )

    def get_message(gas: int):
        async def action(results: Mapping[str, Any]) -> str:
            result = await session.call_contract(
                results["create contract"],
                "get_message",
                gas=gas,
                query_payment=CONTRACT_QUERY_PAYMENT,
            )
            return result.get_string(0)

        return action

    async def set_message(results: Mapping[str, Any]):
        await session.execute_contract(
            results["create contract"],
            "set_message",
            ContractFunctionParameters().add_string(new_message),
        )

    return [
        Step("upload bytecode", upload),
        Step("create contract", create),
        Step("get message", get_message(CONTRACT_CREATE_GAS)),
        Step("set message", set_message),
        Step("get message again", get_message(100_000)),
    ]


async def run_nft_flow(session: LedgerSession, **kwargs) -> NftFlowResult:
    result = await WorkflowRunner("nft").run(nft_flow(session, **kwargs))
    return NftFlowResult(
        result["create account"],
        result["create token"],
        result["mint"],
        result["transfer"],
        result["balances before"],
        result["balances after"],
    )


async def run_fungible_flow(session: LedgerSession, **kwargs) -> FungibleFlowResult:
    result = await WorkflowRunner("fungible").run(fungible_flow(session, **kwargs))
    return FungibleFlowResult(
        result["create account"],
        result["create token"],
        result["balances before"],
        result["balances after"],
    )


async def run_contract_flow(
    session: LedgerSession, bytecode: str, **kwargs
) -> ContractFlowResult:
    result = await WorkflowRunner("contract").run(contract_flow(session, bytecode, **kwargs))
    return ContractFlowResult(
        result["create contract"], result["get message"], result["get message again"]
    )


class RecordingLedger:
    """Forwards to another ledger, recording each request and its receipt."""

    calls: List[Tuple[Any, Optional[TransactionReceipt]]]

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger
        self.calls = []

    def register_key(self, private_key: asymmetric_crypto.PrivateKey):
        self.ledger.register_key(private_key)

    async def execute(self, transaction: Transaction) -> TransactionReceipt:
        receipt = await self.ledger.execute(transaction)
        self.calls.append((transaction.body, receipt))
        return receipt

    async def account_balance(self, account_id: AccountId) -> AccountBalance:
        self.calls.append((account_id, None))
        return await self.ledger.account_balance(account_id)

    async def call_contract(self, query: ContractCallQuery) -> ContractFunctionResult:
        self.calls.append((query, None))
        return await self.ledger.call_contract(query)

    async def close(self):
        await self.ledger.close()


def _referenced_entities(request: Any) -> List[Any]:
    """Accounts and tokens named in a request, other than pre-existing ones."""
    from .memory_ledger import FIRST_ENTITY_NUM

    kinds = {"AccountId": AccountId, "TokenId": TokenId}
    return [
        kinds[kind].from_num(int(num))
        for kind, num in re.findall(
            r"(AccountId|TokenId)\(shard=0, realm=0, num=(\d+)\)", repr(request)
        )
        if int(num) >= FIRST_ENTITY_NUM
    ]


class Test(unittest.IsolatedAsyncioTestCase):
    BYTECODE = "608060405234801561001057600080fd5b50"

    def setUp(self):
        from .memory_ledger import InMemoryLedger
        from .runtimes import MessageContract

        self.ledger = InMemoryLedger()
        self.ledger.register_runtime(bytes.fromhex(self.BYTECODE), MessageContract)
        operator_key = ed25519.PrivateKey.random()
        self.operator = OperatorConfig(AccountId.from_num(2), operator_key)
        self.ledger.add_account(
            self.operator.account_id, operator_key.public_key(), Hbar.from_hbar(1000)
        )
        self.session = LedgerSession(self.ledger, self.operator)

    async def test_nft_flow(self):
        result = await run_nft_flow(self.session)

        self.assertEqual(len(result.serial_numbers), 5)
        self.assertTrue(all(1 <= serial <= NFT_MAX_SUPPLY for serial in result.serial_numbers))
        self.assertEqual(result.transferred, NftId(result.token_id, 1))

        treasury, recipient = result.balances_before
        self.assertEqual(treasury.balance_of(result.token_id), 5)
        self.assertEqual(recipient.balance_of(result.token_id), 0)
        self.assertTrue(recipient.is_associated(result.token_id))

        treasury, recipient = result.balances_after
        self.assertEqual(treasury.balance_of(result.token_id), 4)
        self.assertEqual(recipient.balance_of(result.token_id), 1)
        self.assertEqual(self.ledger.nft_owner(result.transferred), result.account.account_id)

    async def test_fungible_flow_conserves_supply(self):
        result = await run_fungible_flow(self.session)
        token_id = result.token_id

        before = [balance.balance_of(token_id) for balance in result.balances_before]
        after = [balance.balance_of(token_id) for balance in result.balances_after]
        self.assertEqual(before, [10000, 0])
        self.assertEqual(after, [9990, 10])
        self.assertEqual(sum(after), self.ledger.total_supply(token_id))
        self.assertEqual(result.balances_after[1].hbars, NEW_ACCOUNT_BALANCE)

    async def test_contract_flow(self):
        result = await run_contract_flow(self.session, "0x" + self.BYTECODE)
        self.assertEqual(result.message, CONTRACT_MESSAGE)
        self.assertEqual(result.updated_message, CONTRACT_NEW_MESSAGE)

    async def test_transfer_beyond_balance_halts(self):
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(WorkflowAborted) as cm:
                await run_fungible_flow(self.session, amount=FUNGIBLE_INITIAL_SUPPLY + 1)

        self.assertEqual(cm.exception.step, "transfer")
        self.assertEqual(cm.exception.completed[-1], "balances before")
        cause = cm.exception.__cause__
        self.assertIsInstance(cause, ReceiptStatusError)
        self.assertEqual(
            typing.cast(ReceiptStatusError, cause).status, Status.INSUFFICIENT_TOKEN_BALANCE
        )

    async def test_mint_beyond_max_supply_halts(self):
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(WorkflowAborted) as cm:
                await run_nft_flow(self.session, max_supply=3)
        self.assertEqual(cm.exception.step, "mint")
        self.assertEqual(
            typing.cast(ReceiptStatusError, cm.exception.__cause__).status,
            Status.TOKEN_MAX_SUPPLY_REACHED,
        )
        self.assertNotIn("associate", cm.exception.completed)

    async def test_entities_referenced_only_after_creation(self):
        recorder = RecordingLedger(self.ledger)
        session = LedgerSession(recorder, self.operator)
        await run_nft_flow(session)
        await run_fungible_flow(session)

        created: typing.Set[Any] = set()
        for request, receipt in recorder.calls:
            for entity_id in _referenced_entities(request):
                self.assertIn(entity_id, created, f"{entity_id} used before creation: {request}")
            if receipt is not None:
                created.update(
                    entity_id
                    for entity_id in (receipt.account_id, receipt.token_id)
                    if entity_id is not None
                )
        self.assertEqual(len([c for c in created if isinstance(c, TokenId)]), 2)

    async def test_associate_signed_by_account_key(self):
        result = await run_fungible_flow(self.session)
        associate = [
            txn for txn in self.ledger.history if txn.body.KIND == "token_associate"
        ]
        self.assertEqual(len(associate), 1)
        self.assertTrue(associate[0].is_signed_by(result.account.private_key.public_key()))
        account_create = next(
            txn for txn in self.ledger.history if isinstance(txn.body, AccountCreate)
        )
        self.assertEqual(
            account_create.body.key, result.account.private_key.public_key()
        )

    def test_load_bytecode(self):
        import os
        import tempfile

        for artifact in (
            {"data": {"bytecode": {"object": self.BYTECODE}}},
            {"bytecode": self.BYTECODE},
            {"bytecode": {"object": self.BYTECODE}},
            {
                "contracts": {
                    "contracts/HelloHedera.sol:HelloHedera": {"bin": self.BYTECODE}
                },
                "version": "0.8.24",
            },
        ):
            with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as f:
                json.dump(artifact, f)
            self.addCleanup(os.remove, f.name)
            self.assertEqual(load_bytecode(f.name), self.BYTECODE)

        two_contracts = {"contracts": {"A.sol:A": {"bin": "60"}, "B.sol:B": {"bin": "61"}}}
        for artifact in ({"abi": []}, two_contracts):
            with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as f:
                json.dump(artifact, f)
            self.addCleanup(os.remove, f.name)
            with self.assertRaises(ValueError):
                load_bytecode(f.name)


if __name__ == "__main__":
    unittest.main()
