# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ledger backend for the public Hedera networks, built on ``hiero-sdk-python``.

Each ``Transaction`` is rebuilt as the matching SDK transaction, frozen with
the client, signed with the private keys behind the transaction's
signatures and executed. The SDK is synchronous, so every call runs in a
worker thread and the workflow keeps a single event loop.

Receipts and contract queries come from consensus nodes. Token balances come
from the mirror node, after the last submitted transaction has been
ingested there, so a balance read after a transfer sees the transfer.
"""

from __future__ import annotations

import asyncio
import logging
import typing
import unittest
import unittest.mock

import hiero_sdk_python
from hiero_sdk_python.crypto.private_key import PrivateKey as SdkPrivateKey
from hiero_sdk_python.exceptions import PrecheckError as SdkPrecheckError
from hiero_sdk_python.response_code import ResponseCode

from . import asymmetric_crypto, ed25519
from .abi import ContractFunctionResult
from .config import OperatorConfig, WorkflowConfig
from .entity_id import AccountId, ContractId, EntityId, FileId, NftId, TokenId
from .errors import ConfigurationError, PrecheckError
from .hbar import Hbar
from .mirror_client import MirrorNodeClient
from .receipt import AccountBalance, Status, TransactionReceipt
from .transactions import (
    AccountCreate,
    ContractCallQuery,
    ContractCreate,
    ContractExecute,
    FileAppend,
    FileCreate,
    SupplyType,
    TokenAssociate,
    TokenCreate,
    TokenMint,
    TokenType,
    Transaction,
    TransactionBody,
    TransactionId,
    Transfer,
)

T = typing.TypeVar("T", bound=EntityId)


def _status(code: typing.Any) -> Status:
    return Status.from_name(ResponseCode(code).name)


def _from_sdk(kind: typing.Type[T], value: typing.Any) -> typing.Optional[T]:
    return None if value is None else kind.from_str(str(value))


class HieroLedger:
    client: typing.Any
    operator: OperatorConfig
    mirror: MirrorNodeClient

    def __init__(self, client: typing.Any, operator: OperatorConfig, mirror: MirrorNodeClient):
        self.client = client
        self.operator = operator
        self.mirror = mirror
        self._keys: typing.Dict[asymmetric_crypto.PublicKey, asymmetric_crypto.PrivateKey] = {}
        self._last_transaction_id: typing.Optional[TransactionId] = None
        self.register_key(operator.private_key)

    @staticmethod
    def for_network(config: WorkflowConfig) -> HieroLedger:
        if config.mirror_url is None:
            raise ConfigurationError(f"No mirror node for network {config.network!r}")
        network = hiero_sdk_python.Network(network=config.network)
        client = hiero_sdk_python.Client(network)
        client.set_operator(
            hiero_sdk_python.AccountId.from_string(str(config.operator.account_id)),
            _sdk_key(config.operator.private_key),
        )
        mirror = MirrorNodeClient(config.mirror_url, config.client_config)
        return HieroLedger(client, config.operator, mirror)

    def register_key(self, private_key: asymmetric_crypto.PrivateKey):
        self._keys[private_key.public_key()] = private_key

    def _private_key(self, public_key: asymmetric_crypto.PublicKey) -> typing.Any:
        private_key = self._keys.get(public_key)
        if private_key is None:
            raise ValueError(f"No private key registered for {public_key}")
        return _sdk_key(private_key)

    def _public_key(self, public_key: asymmetric_crypto.PublicKey) -> typing.Any:
        return self._private_key(public_key).public_key()

    #
    # Transactions
    #

    async def execute(self, transaction: Transaction) -> TransactionReceipt:
        return await asyncio.to_thread(self._execute, transaction)

    def _execute(self, transaction: Transaction) -> TransactionReceipt:
        if transaction.payer != self.operator.account_id:
            raise ValueError(f"{transaction} is not paid by the operator")
        body = transaction.body_bytes()
        for pair in transaction.signatures:
            if not pair.public_key.verify(body, pair.signature):
                raise ValueError(f"{transaction} carries a signature over other bytes")

        sdk_transaction = self._build(transaction.body)
        sdk_transaction.transaction_fee = transaction.max_transaction_fee.tinybars
        if transaction.memo:
            sdk_transaction.set_transaction_memo(transaction.memo)
        sdk_transaction.freeze_with(self.client)
        operator_key = self.operator.private_key.public_key()
        for pair in transaction.signatures:
            # The client signs as operator on its own.
            if pair.public_key != operator_key:
                sdk_transaction.sign(self._private_key(pair.public_key))

        try:
            sdk_receipt = sdk_transaction.execute(self.client)
        except SdkPrecheckError as e:
            raise PrecheckError(str(transaction), _status(e.status)) from e

        transaction_id = TransactionId.from_str(str(sdk_transaction.transaction_id))
        self._last_transaction_id = transaction_id
        receipt = TransactionReceipt(
            _status(sdk_receipt.status),
            transaction_id,
            account_id=_from_sdk(AccountId, getattr(sdk_receipt, "account_id", None)),
            token_id=_from_sdk(TokenId, getattr(sdk_receipt, "token_id", None)),
            file_id=_from_sdk(FileId, getattr(sdk_receipt, "file_id", None)),
            contract_id=_from_sdk(ContractId, getattr(sdk_receipt, "contract_id", None)),
            serial_numbers=tuple(getattr(sdk_receipt, "serial_numbers", None) or ()),
        )
        logging.info(f"{transaction.body.KIND} {transaction_id}: {receipt.status.name}")
        return receipt

    def _build(self, body: TransactionBody) -> typing.Any:
        sdk = hiero_sdk_python
        if isinstance(body, AccountCreate):
            txn = (
                sdk.AccountCreateTransaction()
                .set_key_without_alias(self._public_key(body.key))
                .set_initial_balance(sdk.Hbar.from_tinybars(body.initial_balance.tinybars))
            )
            if body.memo:
                txn.set_account_memo(body.memo)
            return txn
        if isinstance(body, TokenCreate):
            token_type = (
                sdk.TokenType.NON_FUNGIBLE_UNIQUE
                if body.token_type == TokenType.NON_FUNGIBLE_UNIQUE
                else sdk.TokenType.FUNGIBLE_COMMON
            )
            supply_type = (
                sdk.SupplyType.FINITE
                if body.supply_type == SupplyType.FINITE
                else sdk.SupplyType.INFINITE
            )
            txn = (
                sdk.TokenCreateTransaction()
                .set_token_name(body.name)
                .set_token_symbol(body.symbol)
                .set_decimals(body.decimals)
                .set_initial_supply(body.initial_supply)
                .set_treasury_account_id(_sdk_id(sdk.AccountId, body.treasury_account_id))
                .set_token_type(token_type)
                .set_supply_type(supply_type)
            )
            if body.supply_type == SupplyType.FINITE:
                txn.set_max_supply(body.max_supply)
            if body.supply_key is not None:
                txn.set_supply_key(self._public_key(body.supply_key))
            if body.admin_key is not None:
                txn.set_admin_key(self._public_key(body.admin_key))
            return txn
        if isinstance(body, TokenAssociate):
            txn = sdk.TokenAssociateTransaction().set_account_id(
                _sdk_id(sdk.AccountId, body.account_id)
            )
            for token_id in body.token_ids:
                txn.add_token_id(_sdk_id(sdk.TokenId, token_id))
            return txn
        if isinstance(body, TokenMint):
            txn = sdk.TokenMintTransaction().set_token_id(_sdk_id(sdk.TokenId, body.token_id))
            if body.metadata:
                return txn.set_metadata(list(body.metadata))
            return txn.set_amount(body.amount)
        if isinstance(body, Transfer):
            txn = sdk.TransferTransaction()
            for hbar_transfer in body.hbar_transfers:
                txn.add_hbar_transfer(
                    _sdk_id(sdk.AccountId, hbar_transfer.account_id), hbar_transfer.amount
                )
            for token_transfer in body.token_transfers:
                txn.add_token_transfer(
                    _sdk_id(sdk.TokenId, token_transfer.token_id),
                    _sdk_id(sdk.AccountId, token_transfer.account_id),
                    token_transfer.amount,
                )
            for nft_transfer in body.nft_transfers:
                txn.add_nft_transfer(
                    _sdk_nft_id(nft_transfer.nft_id),
                    _sdk_id(sdk.AccountId, nft_transfer.sender_account_id),
                    _sdk_id(sdk.AccountId, nft_transfer.receiver_account_id),
                )
            return txn
        if isinstance(body, FileCreate):
            txn = sdk.FileCreateTransaction().set_contents(body.contents)
            if body.keys:
                txn.set_keys([self._public_key(key) for key in body.keys])
            if body.memo:
                txn.set_file_memo(body.memo)
            return txn
        if isinstance(body, FileAppend):
            return (
                sdk.FileAppendTransaction()
                .set_file_id(_sdk_id(sdk.FileId, body.file_id))
                .set_contents(body.contents)
            )
        if isinstance(body, ContractCreate):
            txn = (
                sdk.ContractCreateTransaction()
                .set_bytecode_file_id(_sdk_id(sdk.FileId, body.bytecode_file_id))
                .set_gas(body.gas)
                .set_constructor_parameters(body.constructor_parameters)
            )
            if body.initial_balance.tinybars:
                txn.set_initial_balance(body.initial_balance.tinybars)
            if body.admin_key is not None:
                txn.set_admin_key(self._public_key(body.admin_key))
            if body.memo:
                txn.set_contract_memo(body.memo)
            return txn
        if isinstance(body, ContractExecute):
            txn = (
                sdk.ContractExecuteTransaction()
                .set_contract_id(_sdk_id(sdk.ContractId, body.contract_id))
                .set_gas(body.gas)
                .set_function_parameters(body.function_parameters)
            )
            if body.payable_amount.tinybars:
                txn.set_payable_amount(sdk.Hbar.from_tinybars(body.payable_amount.tinybars))
            return txn
        raise TypeError(f"Unsupported transaction body: {type(body).__name__}")

    #
    # Queries
    #

    async def account_balance(self, account_id: AccountId) -> AccountBalance:
        if self._last_transaction_id is not None:
            await self.mirror.wait_for_transaction(self._last_transaction_id)
        return await self.mirror.account_balance(account_id)

    async def call_contract(self, query: ContractCallQuery) -> ContractFunctionResult:
        return await asyncio.to_thread(self._call_contract, query)

    def _call_contract(self, query: ContractCallQuery) -> ContractFunctionResult:
        sdk = hiero_sdk_python
        sdk_query = (
            sdk.ContractCallQuery()
            .set_contract_id(_sdk_id(sdk.ContractId, query.contract_id))
            .set_gas(query.gas)
            .set_function_parameters(query.function_parameters)
        )
        if query.query_payment is not None:
            sdk_query.set_query_payment(sdk.Hbar.from_tinybars(query.query_payment.tinybars))
        try:
            result = sdk_query.execute(self.client)
        except SdkPrecheckError as e:
            raise PrecheckError(f"Call to {query.contract_id}", _status(e.status)) from e
        return ContractFunctionResult(
            bytes(result.contract_call_result), int(getattr(result, "gas_used", 0) or 0)
        )

    async def close(self):
        await self.mirror.close()
        close = getattr(self.client, "close", None)
        if close is not None:
            close()


def _sdk_key(private_key: asymmetric_crypto.PrivateKey) -> typing.Any:
    return SdkPrivateKey.from_string(private_key.der())


def _sdk_id(kind: typing.Any, entity_id: EntityId) -> typing.Any:
    return kind.from_string(str(entity_id))


def _sdk_nft_id(nft_id: NftId) -> typing.Any:
    return hiero_sdk_python.NftId(
        _sdk_id(hiero_sdk_python.TokenId, nft_id.token_id), nft_id.serial_number
    )


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.operator_key = ed25519.PrivateKey.random()
        self.operator = OperatorConfig(AccountId.from_num(2), self.operator_key)
        self.mirror = unittest.mock.AsyncMock(spec=MirrorNodeClient)
        self.ledger = HieroLedger(unittest.mock.MagicMock(), self.operator, self.mirror)

        self.sdk = unittest.mock.MagicMock()
        for target, replacement in (
            (f"{__name__}.hiero_sdk_python", self.sdk),
            (f"{__name__}._sdk_key", lambda key: f"sdk:{key.der()}"),
            (f"{__name__}._sdk_id", lambda kind, entity_id: str(entity_id)),
        ):
            patcher = unittest.mock.patch(target, replacement)
            patcher.start()
            self.addCleanup(patcher.stop)

    def sdk_response(self, txn_mock, status: str, **fields):
        receipt = unittest.mock.Mock(
            status=status, account_id=None, token_id=None, file_id=None, contract_id=None,
            serial_numbers=[],
        )
        for name, value in fields.items():
            setattr(receipt, name, value)
        txn_mock.execute.return_value = receipt
        txn_mock.transaction_id = "0.0.2@1700000000.000000001"

    async def test_associate_signs_with_account_key(self):
        account_key = ed25519.PrivateKey.random()
        self.ledger.register_key(account_key)
        sdk_txn = self.sdk.TokenAssociateTransaction.return_value.set_account_id.return_value
        self.sdk_response(sdk_txn, "SUCCESS")

        with unittest.mock.patch(f"{__name__}._status", return_value=Status.SUCCESS):
            txn = Transaction.build(
                TokenAssociate(AccountId.from_num(1001), (TokenId.from_num(1002),)),
                self.operator.account_id,
                Hbar.from_hbar(2),
            )
            receipt = await self.ledger.execute(txn.sign(self.operator_key).sign(account_key))

        self.assertEqual(receipt.status, Status.SUCCESS)
        self.assertEqual(str(receipt.transaction_id), "0.0.2@1700000000.000000001")
        sdk_txn.add_token_id.assert_called_once_with("0.0.1002")
        sdk_txn.freeze_with.assert_called_once_with(self.ledger.client)
        sdk_txn.sign.assert_called_once_with(f"sdk:{account_key.der()}")

    async def test_receipt_ids_are_converted(self):
        sdk_txn = self.sdk.FileCreateTransaction.return_value.set_contents.return_value
        self.sdk_response(sdk_txn, "SUCCESS", file_id="0.0.1005")

        with unittest.mock.patch(f"{__name__}._status", return_value=Status.SUCCESS):
            txn = Transaction.build(
                FileCreate(b"6080"), self.operator.account_id, Hbar.from_hbar(2)
            )
            receipt = await self.ledger.execute(txn.sign(self.operator_key))

        self.assertEqual(receipt.file_id, FileId.from_num(1005))
        self.assertIsNone(receipt.token_id)

    async def test_unknown_signer_is_rejected(self):
        stranger = ed25519.PrivateKey.random()
        txn = Transaction.build(
            TokenAssociate(AccountId.from_num(1001), (TokenId.from_num(1002),)),
            self.operator.account_id,
            Hbar.from_hbar(2),
        )
        with self.assertRaises(ValueError):
            await self.ledger.execute(txn.sign(self.operator_key).sign(stranger))

    async def test_balance_waits_for_mirror(self):
        self.ledger._last_transaction_id = TransactionId(AccountId.from_num(2), 1, 2)
        self.mirror.account_balance.return_value = AccountBalance(AccountId.from_num(3))

        balance = await self.ledger.account_balance(AccountId.from_num(3))

        self.assertEqual(balance.account_id, AccountId.from_num(3))
        self.mirror.wait_for_transaction.assert_awaited_once_with(
            self.ledger._last_transaction_id
        )


if __name__ == "__main__":
    unittest.main()
