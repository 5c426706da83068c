# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A deterministic, single process ledger.

``InMemoryLedger`` accepts the same signed ``Transaction`` values as the
network backend and answers with the same receipts, which makes it the
backend for the test suite and for ``--network local`` runs. It checks what
the network checks for these workflows:

* prechecks (raise ``PrecheckError``, nothing is charged): unknown payer,
  duplicate transaction id, oversize transaction, missing payer signature,
  a fee above the transaction's max fee, a payer that can not cover it;
* everything else resolves into a receipt. The fee is charged whatever the
  status, and a failed transaction leaves no other trace.

Contracts run through Python runtimes registered against their bytecode,
see ``hedera_workflows.runtimes``.
"""

from __future__ import annotations

import logging
import typing
import unittest
from collections import defaultdict
from dataclasses import dataclass, field

from . import asymmetric_crypto, ed25519
from .abi import ContractFunctionParameters, ContractFunctionResult, encode_function_call
from .entity_id import AccountId, ContractId, FileId, NftId, TokenId
from .errors import PrecheckError
from .hbar import Hbar
from .receipt import AccountBalance, Status, TransactionReceipt
from .runtimes import (
    CallContext,
    ContractRevert,
    ContractRuntime,
    MessageContract,
    OutOfGas,
    RuntimeFactory,
)
from .transactions import (
    MAX_MINT_BATCH,
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
    TransactionId,
    Transfer,
)

FEE_SCHEDULE: typing.Dict[str, Hbar] = {
    AccountCreate.KIND: Hbar.from_hbar("0.05"),
    TokenCreate.KIND: Hbar.from_hbar(1),
    TokenAssociate.KIND: Hbar.from_hbar("0.05"),
    TokenMint.KIND: Hbar.from_hbar("0.02"),
    Transfer.KIND: Hbar.from_hbar("0.001"),
    FileCreate.KIND: Hbar.from_hbar("0.05"),
    FileAppend.KIND: Hbar.from_hbar("0.05"),
    ContractCreate.KIND: Hbar.from_hbar(1),
    ContractExecute.KIND: Hbar.from_hbar("0.1"),
}
CONTRACT_CALL_QUERY_COST = Hbar.from_hbar("0.05")

MAX_TRANSACTION_BYTES = 6144
MAX_FILE_BYTES = 1024 * 1024
MAX_METADATA_BYTES = 100
MAX_TOKEN_NAME_BYTES = 100
FIRST_ENTITY_NUM = 1001


class _Failure(Exception):
    def __init__(self, status: Status):
        super().__init__(status.name)
        self.status = status


@dataclass
class _Account:
    key: typing.Optional[asymmetric_crypto.PublicKey]
    hbars: int
    # Presence of a token id means the account is associated with it.
    tokens: typing.Dict[TokenId, int] = field(default_factory=dict)


@dataclass
class _Token:
    definition: TokenCreate
    total_supply: int
    owners: typing.Dict[int, AccountId] = field(default_factory=dict)
    next_serial: int = 1

    @property
    def is_nft(self) -> bool:
        return self.definition.token_type == TokenType.NON_FUNGIBLE_UNIQUE


@dataclass
class _File:
    keys: typing.Tuple[asymmetric_crypto.PublicKey, ...]
    contents: bytes


@dataclass
class _Contract:
    runtime: ContractRuntime
    admin_key: typing.Optional[asymmetric_crypto.PublicKey]
    hbars: int = 0


class InMemoryLedger:
    """Ledger state held in dictionaries; every call is answered immediately."""

    fee_schedule: typing.Dict[str, Hbar]
    history: typing.List[Transaction]

    def __init__(self, fee_schedule: typing.Optional[typing.Dict[str, Hbar]] = None):
        self.fee_schedule = dict(FEE_SCHEDULE if fee_schedule is None else fee_schedule)
        self.history = []
        self._accounts: typing.Dict[AccountId, _Account] = {}
        self._tokens: typing.Dict[TokenId, _Token] = {}
        self._files: typing.Dict[FileId, _File] = {}
        self._contracts: typing.Dict[ContractId, _Contract] = {}
        self._runtimes: typing.Dict[bytes, RuntimeFactory] = {}
        self._seen: typing.Set[TransactionId] = set()
        self._next_num = FIRST_ENTITY_NUM
        self._handlers: typing.Dict[
            type, typing.Callable[[Transaction], typing.Dict[str, typing.Any]]
        ] = {
            AccountCreate: self._account_create,
            TokenCreate: self._token_create,
            TokenAssociate: self._token_associate,
            TokenMint: self._token_mint,
            Transfer: self._transfer,
            FileCreate: self._file_create,
            FileAppend: self._file_append,
            ContractCreate: self._contract_create,
            ContractExecute: self._contract_execute,
        }

    # Setup and inspection

    def add_account(
        self,
        account_id: AccountId,
        public_key: typing.Optional[asymmetric_crypto.PublicKey],
        balance: Hbar,
    ):
        """Seed an account, e.g. the operator, outside of any transaction."""
        if account_id in self._accounts:
            raise ValueError(f"{account_id} already exists")
        self._accounts[account_id] = _Account(public_key, balance.tinybars)

    def register_runtime(self, bytecode: bytes, factory: RuntimeFactory):
        self._runtimes[bytecode] = factory

    def register_key(self, private_key: asymmetric_crypto.PrivateKey):
        # Signatures are verified from the transaction itself.
        pass

    def nft_owner(self, nft_id: NftId) -> typing.Optional[AccountId]:
        token = self._tokens.get(nft_id.token_id)
        return token.owners.get(nft_id.serial_number) if token else None

    def total_supply(self, token_id: TokenId) -> int:
        return self._tokens[token_id].total_supply

    def file_contents(self, file_id: FileId) -> bytes:
        return self._files[file_id].contents

    def _next_entity(self) -> int:
        num = self._next_num
        self._next_num += 1
        return num

    # LedgerClient

    async def execute(self, transaction: Transaction) -> TransactionReceipt:
        fee = self._precheck(transaction)
        payer = self._accounts[transaction.payer]
        payer.hbars -= fee.tinybars
        self._seen.add(transaction.transaction_id)

        handler = self._handlers.get(type(transaction.body))
        if handler is None:
            raise TypeError(f"Unsupported transaction body: {type(transaction.body).__name__}")
        try:
            fields = handler(transaction)
            status = Status.SUCCESS
            self.history.append(transaction)
        except _Failure as failure:
            fields = {}
            status = failure.status

        logging.info(f"{transaction}: {status.name}, fee {fee}")
        return TransactionReceipt(status, transaction.transaction_id, **fields)

    async def account_balance(self, account_id: AccountId) -> AccountBalance:
        account = self._accounts.get(account_id)
        if account is None:
            raise PrecheckError(f"Balance of {account_id}", Status.INVALID_ACCOUNT_ID)
        return AccountBalance(account_id, Hbar(account.hbars), dict(account.tokens))

    async def call_contract(self, query: ContractCallQuery) -> ContractFunctionResult:
        sender = self._accounts.get(query.sender_account_id)
        if query.sender_account_id is None or sender is None:
            raise PrecheckError("Contract call query", Status.PAYER_ACCOUNT_NOT_FOUND)
        payment = query.query_payment or CONTRACT_CALL_QUERY_COST
        if payment < CONTRACT_CALL_QUERY_COST:
            raise PrecheckError(
                f"Query payment {payment} below cost {CONTRACT_CALL_QUERY_COST}",
                Status.INSUFFICIENT_TX_FEE,
            )
        if sender.hbars < payment.tinybars:
            raise PrecheckError("Contract call query", Status.INSUFFICIENT_PAYER_BALANCE)
        contract = self._contracts.get(query.contract_id)
        if contract is None:
            raise PrecheckError("Contract call query", Status.INVALID_CONTRACT_ID)

        sender.hbars -= payment.tinybars
        context = CallContext(
            query.sender_account_id.to_evm_address(), query.gas, read_only=True
        )
        try:
            return contract.runtime.call(context, query.function_parameters)
        except OutOfGas as e:
            raise PrecheckError(f"Contract call query: {e}", Status.INSUFFICIENT_GAS) from e
        except ContractRevert as e:
            raise PrecheckError(
                f"Contract call query: {e}", Status.CONTRACT_REVERT_EXECUTED
            ) from e

    async def close(self):
        pass

    # Prechecks and shared rules

    def _precheck(self, transaction: Transaction) -> Hbar:
        payer = self._accounts.get(transaction.payer)
        if payer is None:
            raise PrecheckError(str(transaction), Status.PAYER_ACCOUNT_NOT_FOUND)
        if transaction.transaction_id in self._seen:
            raise PrecheckError(str(transaction), Status.DUPLICATE_TRANSACTION)
        if len(transaction.body_bytes()) > MAX_TRANSACTION_BYTES:
            raise PrecheckError(str(transaction), Status.TRANSACTION_OVERSIZE)
        if payer.key is None or not transaction.is_signed_by(payer.key):
            raise PrecheckError(str(transaction), Status.INVALID_SIGNATURE)
        fee = self.fee_schedule[transaction.body.KIND]
        if fee > transaction.max_transaction_fee:
            raise PrecheckError(
                f"{transaction} costs {fee}, limit {transaction.max_transaction_fee}",
                Status.INSUFFICIENT_TX_FEE,
            )
        if payer.hbars < fee.tinybars:
            raise PrecheckError(str(transaction), Status.INSUFFICIENT_PAYER_BALANCE)
        return fee

    @staticmethod
    def _require_signature(
        transaction: Transaction, key: typing.Optional[asymmetric_crypto.PublicKey]
    ):
        if key is not None and not transaction.is_signed_by(key):
            raise _Failure(Status.INVALID_SIGNATURE)

    def _account(
        self, account_id: AccountId, status: Status = Status.INVALID_ACCOUNT_ID
    ) -> _Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise _Failure(status)
        return account

    def _token(self, token_id: TokenId) -> _Token:
        token = self._tokens.get(token_id)
        if token is None:
            raise _Failure(Status.INVALID_TOKEN_ID)
        return token

    def _contract(self, contract_id: ContractId) -> _Contract:
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise _Failure(Status.INVALID_CONTRACT_ID)
        return contract

    # Handlers check everything before changing anything.

    def _account_create(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(AccountCreate, transaction.body)
        payer = self._accounts[transaction.payer]
        if payer.hbars < body.initial_balance.tinybars:
            raise _Failure(Status.INSUFFICIENT_PAYER_BALANCE)

        account_id = AccountId.from_num(self._next_entity())
        payer.hbars -= body.initial_balance.tinybars
        self._accounts[account_id] = _Account(body.key, body.initial_balance.tinybars)
        return {"account_id": account_id}

    def _token_create(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(TokenCreate, transaction.body)
        if not body.name:
            raise _Failure(Status.MISSING_TOKEN_NAME)
        if len(body.name.encode()) > MAX_TOKEN_NAME_BYTES:
            raise _Failure(Status.TOKEN_NAME_TOO_LONG)
        if not body.symbol:
            raise _Failure(Status.MISSING_TOKEN_SYMBOL)
        if len(body.symbol.encode()) > MAX_TOKEN_NAME_BYTES:
            raise _Failure(Status.TOKEN_SYMBOL_TOO_LONG)

        nft = body.token_type == TokenType.NON_FUNGIBLE_UNIQUE
        if body.decimals < 0 or (nft and body.decimals != 0):
            raise _Failure(Status.INVALID_TOKEN_DECIMALS)
        if body.initial_supply < 0 or (nft and body.initial_supply != 0):
            raise _Failure(Status.INVALID_TOKEN_INITIAL_SUPPLY)
        if body.supply_type == SupplyType.FINITE:
            if body.max_supply <= 0:
                raise _Failure(Status.INVALID_TOKEN_MAX_SUPPLY)
            if body.initial_supply > body.max_supply:
                raise _Failure(Status.INVALID_TOKEN_INITIAL_SUPPLY)
        elif body.max_supply != 0:
            raise _Failure(Status.INVALID_TOKEN_MAX_SUPPLY)

        treasury = self._account(
            body.treasury_account_id, Status.INVALID_TREASURY_ACCOUNT_FOR_TOKEN
        )
        self._require_signature(transaction, treasury.key)
        self._require_signature(transaction, body.admin_key)

        token_id = TokenId.from_num(self._next_entity())
        self._tokens[token_id] = _Token(body, body.initial_supply)
        treasury.tokens[token_id] = body.initial_supply
        return {"token_id": token_id, "total_supply": body.initial_supply}

    def _token_associate(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(TokenAssociate, transaction.body)
        account = self._account(body.account_id)
        self._require_signature(transaction, account.key)
        for token_id in body.token_ids:
            self._token(token_id)
            if token_id in account.tokens:
                raise _Failure(Status.TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT)

        for token_id in body.token_ids:
            account.tokens[token_id] = 0
        return {}

    def _token_mint(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(TokenMint, transaction.body)
        token = self._token(body.token_id)
        supply_key = token.definition.supply_key
        if supply_key is None:
            raise _Failure(Status.TOKEN_HAS_NO_SUPPLY_KEY)
        self._require_signature(transaction, supply_key)

        if token.is_nft:
            if body.amount or not body.metadata:
                raise _Failure(Status.INVALID_TOKEN_MINT_AMOUNT)
            if len(body.metadata) > MAX_MINT_BATCH:
                raise _Failure(Status.BATCH_SIZE_LIMIT_EXCEEDED)
            if any(len(item) > MAX_METADATA_BYTES for item in body.metadata):
                raise _Failure(Status.METADATA_TOO_LONG)
            minted = len(body.metadata)
        else:
            if body.metadata or body.amount <= 0:
                raise _Failure(Status.INVALID_TOKEN_MINT_AMOUNT)
            minted = body.amount

        definition = token.definition
        if (
            definition.supply_type == SupplyType.FINITE
            and token.total_supply + minted > definition.max_supply
        ):
            raise _Failure(Status.TOKEN_MAX_SUPPLY_REACHED)

        treasury_id = definition.treasury_account_id
        treasury = self._accounts[treasury_id]
        serials: typing.Tuple[int, ...] = ()
        if token.is_nft:
            serials = tuple(range(token.next_serial, token.next_serial + minted))
            for serial in serials:
                token.owners[serial] = treasury_id
            token.next_serial += minted
        token.total_supply += minted
        treasury.tokens[body.token_id] = treasury.tokens.get(body.token_id, 0) + minted
        return {"serial_numbers": serials, "total_supply": token.total_supply}

    def _transfer(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(Transfer, transaction.body)

        hbar_accounts: typing.Set[AccountId] = set()
        for hbar_transfer in body.hbar_transfers:
            if hbar_transfer.account_id in hbar_accounts:
                raise _Failure(Status.ACCOUNT_REPEATED_IN_ACCOUNT_AMOUNTS)
            hbar_accounts.add(hbar_transfer.account_id)
            account = self._account(hbar_transfer.account_id)
            if account.hbars + hbar_transfer.amount < 0:
                raise _Failure(Status.INSUFFICIENT_ACCOUNT_BALANCE)
        if sum(t.amount for t in body.hbar_transfers) != 0:
            raise _Failure(Status.INVALID_ACCOUNT_AMOUNTS)

        deltas: typing.DefaultDict[
            typing.Tuple[TokenId, AccountId], int
        ] = defaultdict(int)
        per_token: typing.DefaultDict[TokenId, int] = defaultdict(int)
        for token_transfer in body.token_transfers:
            if self._token(token_transfer.token_id).is_nft:
                raise _Failure(
                    Status.ACCOUNT_AMOUNT_TRANSFERS_ONLY_ALLOWED_FOR_FUNGIBLE_COMMON
                )
            account = self._account(token_transfer.account_id)
            if token_transfer.token_id not in account.tokens:
                raise _Failure(Status.TOKEN_NOT_ASSOCIATED_TO_ACCOUNT)
            deltas[(token_transfer.token_id, token_transfer.account_id)] += (
                token_transfer.amount
            )
            per_token[token_transfer.token_id] += token_transfer.amount
        if any(total != 0 for total in per_token.values()):
            raise _Failure(Status.TRANSFERS_NOT_ZERO_SUM_FOR_TOKEN)
        for (token_id, account_id), delta in deltas.items():
            if self._accounts[account_id].tokens[token_id] + delta < 0:
                raise _Failure(Status.INSUFFICIENT_TOKEN_BALANCE)

        moved: typing.Set[NftId] = set()
        for nft_transfer in body.nft_transfers:
            nft_id = nft_transfer.nft_id
            token = self._token(nft_id.token_id)
            owner = token.owners.get(nft_id.serial_number) if token.is_nft else None
            if owner is None or nft_id in moved:
                raise _Failure(Status.INVALID_NFT_ID)
            if owner != nft_transfer.sender_account_id:
                raise _Failure(Status.SENDER_DOES_NOT_OWN_NFT_SERIAL_NO)
            receiver = self._account(nft_transfer.receiver_account_id)
            if nft_id.token_id not in receiver.tokens:
                raise _Failure(Status.TOKEN_NOT_ASSOCIATED_TO_ACCOUNT)
            moved.add(nft_id)

        for account_id in body.senders():
            self._require_signature(transaction, self._accounts[account_id].key)

        for hbar_transfer in body.hbar_transfers:
            self._accounts[hbar_transfer.account_id].hbars += hbar_transfer.amount
        for (token_id, account_id), delta in deltas.items():
            self._accounts[account_id].tokens[token_id] += delta
        for nft_transfer in body.nft_transfers:
            nft_id = nft_transfer.nft_id
            self._tokens[nft_id.token_id].owners[nft_id.serial_number] = (
                nft_transfer.receiver_account_id
            )
            self._accounts[nft_transfer.sender_account_id].tokens[nft_id.token_id] -= 1
            self._accounts[nft_transfer.receiver_account_id].tokens[nft_id.token_id] += 1
        return {}

    def _file_create(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(FileCreate, transaction.body)
        if len(body.contents) > MAX_FILE_BYTES:
            raise _Failure(Status.MAX_FILE_SIZE_EXCEEDED)
        for key in body.keys:
            self._require_signature(transaction, key)

        file_id = FileId.from_num(self._next_entity())
        self._files[file_id] = _File(body.keys, body.contents)
        return {"file_id": file_id}

    def _file_append(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(FileAppend, transaction.body)
        stored = self._files.get(body.file_id)
        if stored is None:
            raise _Failure(Status.INVALID_FILE_ID)
        if not stored.keys:
            raise _Failure(Status.UNAUTHORIZED)
        for key in stored.keys:
            self._require_signature(transaction, key)
        if len(stored.contents) + len(body.contents) > MAX_FILE_BYTES:
            raise _Failure(Status.MAX_FILE_SIZE_EXCEEDED)

        stored.contents += body.contents
        return {"file_id": body.file_id}

    def _contract_create(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(ContractCreate, transaction.body)
        stored = self._files.get(body.bytecode_file_id)
        if stored is None:
            raise _Failure(Status.INVALID_FILE_ID)
        if not stored.contents:
            raise _Failure(Status.CONTRACT_BYTECODE_EMPTY)
        try:
            hex_text = stored.contents.decode().strip()
            if hex_text.startswith("0x"):
                hex_text = hex_text[2:]
            bytecode = bytes.fromhex(hex_text)
        except ValueError:
            raise _Failure(Status.ERROR_DECODING_BYTESTRING)
        self._require_signature(transaction, body.admin_key)
        payer = self._accounts[transaction.payer]
        if payer.hbars < body.initial_balance.tinybars:
            raise _Failure(Status.INSUFFICIENT_PAYER_BALANCE)

        factory = self._runtimes.get(bytecode)
        if factory is None:
            logging.warning(f"No runtime registered for the bytecode in {body.bytecode_file_id}")
            raise _Failure(Status.CONTRACT_EXECUTION_EXCEPTION)
        context = CallContext(transaction.payer.to_evm_address(), body.gas)
        try:
            runtime = factory(context, body.constructor_parameters)
        except OutOfGas:
            raise _Failure(Status.INSUFFICIENT_GAS)
        except ContractRevert:
            raise _Failure(Status.CONTRACT_REVERT_EXECUTED)

        contract_id = ContractId.from_num(self._next_entity())
        payer.hbars -= body.initial_balance.tinybars
        self._contracts[contract_id] = _Contract(
            runtime, body.admin_key, body.initial_balance.tinybars
        )
        return {"contract_id": contract_id}

    def _contract_execute(self, transaction: Transaction) -> typing.Dict[str, typing.Any]:
        body = typing.cast(ContractExecute, transaction.body)
        contract = self._contract(body.contract_id)
        payer = self._accounts[transaction.payer]
        if payer.hbars < body.payable_amount.tinybars:
            raise _Failure(Status.INSUFFICIENT_PAYER_BALANCE)

        context = CallContext(transaction.payer.to_evm_address(), body.gas)
        try:
            contract.runtime.call(context, body.function_parameters)
        except OutOfGas:
            raise _Failure(Status.INSUFFICIENT_GAS)
        except ContractRevert:
            raise _Failure(Status.CONTRACT_REVERT_EXECUTED)

        payer.hbars -= body.payable_amount.tinybars
        contract.hbars += body.payable_amount.tinybars
        return {"contract_id": body.contract_id}


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.ledger = InMemoryLedger()
        self.operator_id = AccountId.from_num(2)
        self.operator_key = ed25519.PrivateKey.random()
        self.ledger.add_account(
            self.operator_id, self.operator_key.public_key(), Hbar.from_hbar(1000)
        )

    async def submit(self, body, *keys, max_fee: Hbar = Hbar.from_hbar(20)):
        txn = Transaction.build(body, self.operator_id, max_fee)
        return await self.sign_and_execute(txn, *keys)

    async def sign_and_execute(self, txn: Transaction, *keys):
        for key in (self.operator_key,) + keys:
            txn = txn.sign(key)
        return await self.ledger.execute(txn)

    def unchecked(self, body) -> Transaction:
        """A transaction that skips local validation."""
        return Transaction(
            TransactionId.generate(self.operator_id), Hbar.from_hbar(20), body
        )

    async def new_account(self, key: ed25519.PrivateKey) -> AccountId:
        receipt = await self.submit(AccountCreate(key.public_key(), Hbar(100)))
        self.assertEqual(receipt.status, Status.SUCCESS)
        return receipt.account_id

    async def new_fungible_token(self) -> TokenId:
        receipt = await self.submit(
            TokenCreate("USD Bar", "USDB", self.operator_id, decimals=2, initial_supply=10000)
        )
        self.assertEqual(receipt.status, Status.SUCCESS)
        return receipt.token_id

    async def new_nft(self, supply_key: ed25519.PrivateKey, max_supply=250) -> TokenId:
        receipt = await self.submit(
            TokenCreate(
                "Hedera Token Test",
                "HTT",
                self.operator_id,
                token_type=TokenType.NON_FUNGIBLE_UNIQUE,
                supply_type=SupplyType.FINITE,
                max_supply=max_supply,
                supply_key=supply_key.public_key(),
            )
        )
        self.assertEqual(receipt.status, Status.SUCCESS)
        return receipt.token_id

    async def test_account_create_charges_fee_and_balance(self):
        key = ed25519.PrivateKey.random()
        account_id = await self.new_account(key)
        operator = await self.ledger.account_balance(self.operator_id)
        created = await self.ledger.account_balance(account_id)
        self.assertEqual(created.hbars, Hbar(100))
        self.assertEqual(
            operator.hbars,
            Hbar.from_hbar(1000) - Hbar(100) - FEE_SCHEDULE[AccountCreate.KIND],
        )

    async def test_prechecks(self):
        body = AccountCreate(ed25519.PrivateKey.random().public_key(), Hbar(100))

        with self.assertRaises(PrecheckError) as cm:
            await self.submit(body, max_fee=Hbar(1))
        self.assertEqual(cm.exception.status, Status.INSUFFICIENT_TX_FEE)

        unsigned = Transaction.build(body, self.operator_id, Hbar.from_hbar(2))
        with self.assertRaises(PrecheckError) as cm:
            await self.ledger.execute(unsigned)
        self.assertEqual(cm.exception.status, Status.INVALID_SIGNATURE)

        signed = unsigned.sign(self.operator_key)
        await self.ledger.execute(signed)
        with self.assertRaises(PrecheckError) as cm:
            await self.ledger.execute(signed)
        self.assertEqual(cm.exception.status, Status.DUPLICATE_TRANSACTION)

    async def test_associate_needs_account_signature(self):
        key = ed25519.PrivateKey.random()
        account_id = await self.new_account(key)
        token_id = await self.new_fungible_token()

        receipt = await self.submit(TokenAssociate(account_id, (token_id,)))
        self.assertEqual(receipt.status, Status.INVALID_SIGNATURE)
        balance = await self.ledger.account_balance(account_id)
        self.assertFalse(balance.is_associated(token_id))

        receipt = await self.submit(TokenAssociate(account_id, (token_id,)), key)
        self.assertEqual(receipt.status, Status.SUCCESS)
        receipt = await self.submit(TokenAssociate(account_id, (token_id,)), key)
        self.assertEqual(receipt.status, Status.TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT)

    async def test_fungible_transfer(self):
        key = ed25519.PrivateKey.random()
        account_id = await self.new_account(key)
        token_id = await self.new_fungible_token()
        body = Transfer().add_token_transfer(token_id, self.operator_id, -10)
        body = body.add_token_transfer(token_id, account_id, 10)

        receipt = await self.submit(body)
        self.assertEqual(receipt.status, Status.TOKEN_NOT_ASSOCIATED_TO_ACCOUNT)

        await self.submit(TokenAssociate(account_id, (token_id,)), key)
        receipt = await self.submit(body)
        self.assertEqual(receipt.status, Status.SUCCESS)
        treasury = await self.ledger.account_balance(self.operator_id)
        recipient = await self.ledger.account_balance(account_id)
        self.assertEqual(treasury.balance_of(token_id), 9990)
        self.assertEqual(recipient.balance_of(token_id), 10)

    async def test_insufficient_token_balance(self):
        key = ed25519.PrivateKey.random()
        account_id = await self.new_account(key)
        token_id = await self.new_fungible_token()
        await self.submit(TokenAssociate(account_id, (token_id,)), key)
        body = Transfer().add_token_transfer(token_id, account_id, -10)
        body = body.add_token_transfer(token_id, self.operator_id, 10)

        receipt = await self.submit(body, key)
        self.assertEqual(receipt.status, Status.INSUFFICIENT_TOKEN_BALANCE)
        treasury = await self.ledger.account_balance(self.operator_id)
        self.assertEqual(treasury.balance_of(token_id), 10000)

    async def test_ledger_checks_zero_sum(self):
        token_id = await self.new_fungible_token()
        body = Transfer().add_token_transfer(token_id, self.operator_id, -10)
        receipt = await self.sign_and_execute(self.unchecked(body))
        self.assertEqual(receipt.status, Status.TRANSFERS_NOT_ZERO_SUM_FOR_TOKEN)

    async def test_nft_mint_and_transfer(self):
        supply_key = ed25519.PrivateKey.random()
        token_id = await self.new_nft(supply_key)
        metadata = tuple(f"ipfs://cid{i}".encode() for i in range(5))

        receipt = await self.submit(TokenMint(token_id, metadata=metadata))
        self.assertEqual(receipt.status, Status.INVALID_SIGNATURE)

        receipt = await self.submit(TokenMint(token_id, metadata=metadata), supply_key)
        self.assertEqual(receipt.serial_numbers, (1, 2, 3, 4, 5))
        self.assertEqual(self.ledger.total_supply(token_id), 5)

        key = ed25519.PrivateKey.random()
        account_id = await self.new_account(key)
        await self.submit(TokenAssociate(account_id, (token_id,)), key)
        nft_id = NftId(token_id, 1)
        receipt = await self.submit(
            Transfer().add_nft_transfer(nft_id, self.operator_id, account_id)
        )
        self.assertEqual(receipt.status, Status.SUCCESS)
        self.assertEqual(self.ledger.nft_owner(nft_id), account_id)

        receipt = await self.submit(
            Transfer().add_nft_transfer(nft_id, self.operator_id, account_id)
        )
        self.assertEqual(receipt.status, Status.SENDER_DOES_NOT_OWN_NFT_SERIAL_NO)

    async def test_nft_limits(self):
        supply_key = ed25519.PrivateKey.random()
        token_id = await self.new_nft(supply_key, max_supply=3)

        too_many = tuple(b"x" for _ in range(MAX_MINT_BATCH + 1))
        receipt = await self.sign_and_execute(
            self.unchecked(TokenMint(token_id, metadata=too_many)), supply_key
        )
        self.assertEqual(receipt.status, Status.BATCH_SIZE_LIMIT_EXCEEDED)

        receipt = await self.submit(
            TokenMint(token_id, metadata=(b"x" * (MAX_METADATA_BYTES + 1),)), supply_key
        )
        self.assertEqual(receipt.status, Status.METADATA_TOO_LONG)

        receipt = await self.submit(
            TokenMint(token_id, metadata=(b"a", b"b", b"c", b"d")), supply_key
        )
        self.assertEqual(receipt.status, Status.TOKEN_MAX_SUPPLY_REACHED)

    async def test_nft_decimals_rejected(self):
        body = TokenCreate(
            "Hedera Token Test",
            "HTT",
            self.operator_id,
            token_type=TokenType.NON_FUNGIBLE_UNIQUE,
            supply_type=SupplyType.FINITE,
            decimals=2,
            max_supply=250,
        )
        receipt = await self.sign_and_execute(self.unchecked(body))
        self.assertEqual(receipt.status, Status.INVALID_TOKEN_DECIMALS)

    async def test_contract_lifecycle(self):
        bytecode = bytes.fromhex("608060405234801561001057600080fd5b50")
        self.ledger.register_runtime(bytecode, MessageContract)

        receipt = await self.submit(
            FileCreate(bytecode.hex().encode(), (self.operator_key.public_key(),))
        )
        file_id = receipt.file_id
        constructor = ContractFunctionParameters().add_string("Hello from Hedera!")

        receipt = await self.submit(ContractCreate(file_id, 1_000, constructor.to_bytes()))
        self.assertEqual(receipt.status, Status.INSUFFICIENT_GAS)

        receipt = await self.submit(ContractCreate(file_id, 300_000, constructor.to_bytes()))
        contract_id = receipt.contract_id
        self.assertIsNotNone(contract_id)

        query = ContractCallQuery(
            contract_id,
            100_000,
            encode_function_call("get_message"),
            Hbar.from_hbar(2),
            self.operator_id,
        )
        result = await self.ledger.call_contract(query)
        self.assertEqual(result.get_string(0), "Hello from Hedera!")

        set_call = encode_function_call(
            "set_message", ContractFunctionParameters().add_string("Hello from Hedera again!")
        )
        receipt = await self.submit(ContractExecute(contract_id, 100_000, set_call))
        self.assertEqual(receipt.status, Status.SUCCESS)
        result = await self.ledger.call_contract(query)
        self.assertEqual(result.get_string(0), "Hello from Hedera again!")

    async def test_contract_unknown_bytecode(self):
        receipt = await self.submit(
            FileCreate(b"6080604052", (self.operator_key.public_key(),))
        )
        before = await self.ledger.account_balance(self.operator_id)

        with self.assertLogs(level="WARNING"):
            receipt = await self.submit(ContractCreate(receipt.file_id, 300_000))
        self.assertEqual(receipt.status, Status.CONTRACT_EXECUTION_EXCEPTION)
        self.assertIsNone(receipt.contract_id)
        after = await self.ledger.account_balance(self.operator_id)
        self.assertEqual(
            before.hbars - after.hbars, FEE_SCHEDULE[ContractCreate.KIND]
        )

    async def test_contract_query_payment(self):
        query = ContractCallQuery(
            ContractId.from_num(5), 100_000, b"", Hbar(1), self.operator_id
        )
        with self.assertRaises(PrecheckError) as cm:
            await self.ledger.call_contract(query)
        self.assertEqual(cm.exception.status, Status.INSUFFICIENT_TX_FEE)

    async def test_file_append(self):
        receipt = await self.submit(FileCreate(b"abc", (self.operator_key.public_key(),)))
        await self.submit(FileAppend(receipt.file_id, b"def"))
        self.assertEqual(self.ledger.file_contents(receipt.file_id), b"abcdef")

        receipt = await self.submit(FileCreate(b"abc"))
        receipt = await self.submit(FileAppend(receipt.file_id, b"def"))
        self.assertEqual(receipt.status, Status.UNAUTHORIZED)


if __name__ == "__main__":
    unittest.main()
