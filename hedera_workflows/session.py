# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ledger operations on behalf of one operator account.

``LedgerSession`` is the capability set the workflows are written against:
accounts, tokens, transfers, balances and contracts. Every mutating call
builds a transaction, signs it as operator (the fee payer) and with any
further keys the ledger requires, submits it and checks the receipt. A
receipt with any status other than ``SUCCESS`` raises
``ReceiptStatusError``, so no caller ever sees an id from a failed step.

Examples:
    Create a token and hand some of it to a fresh account::

        session = LedgerSession(ledger, config.operator)
        key = session.generate_key()
        account_id = await session.create_account(key.public_key(), Hbar(100))
        token_id = await session.create_token(
            TokenCreate("USD Bar", "USDB", session.operator_id, decimals=2, initial_supply=10000)
        )
        await session.associate(account_id, token_id, key)
        await session.transfer_token(token_id, session.operator_id, account_id, 10)
"""

from __future__ import annotations

import asyncio
import logging
import typing
import unittest
from typing import List, Optional, Sequence, Tuple

from . import asymmetric_crypto, ed25519
from .abi import ContractFunctionParameters, ContractFunctionResult, encode_function_call
from .asymmetric_crypto import PrivateKeyVariant
from .config import DEFAULT_MAX_QUERY_PAYMENT, DEFAULT_MAX_TRANSACTION_FEE, OperatorConfig
from .entity_id import AccountId, ContractId, FileId, NftId, TokenId
from .errors import PrecheckError, ReceiptStatusError
from .hbar import Hbar
from .keys import generate_private_key
from .ledger import LedgerClient
from .receipt import AccountBalance, Status, TransactionReceipt
from .transactions import (
    AccountCreate,
    ContractCallQuery,
    ContractCreate,
    ContractExecute,
    FileAppend,
    FileCreate,
    TokenAssociate,
    TokenCreate,
    TokenMint,
    Transaction,
    TransactionBody,
    Transfer,
)

# Content above this size goes out as one FileCreate plus FileAppends.
FILE_CHUNK_SIZE = 4096


def create_chunks(data: bytes, chunk_size: int = FILE_CHUNK_SIZE) -> List[bytes]:
    """Split data into chunks of at most ``chunk_size`` bytes."""
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)] or [b""]


class LedgerSession:
    ledger: LedgerClient
    operator: OperatorConfig
    max_transaction_fee: Hbar
    max_query_payment: Hbar

    def __init__(
        self,
        ledger: LedgerClient,
        operator: OperatorConfig,
        max_transaction_fee: Hbar = DEFAULT_MAX_TRANSACTION_FEE,
        max_query_payment: Hbar = DEFAULT_MAX_QUERY_PAYMENT,
    ):
        self.ledger = ledger
        self.operator = operator
        self.max_transaction_fee = max_transaction_fee
        self.max_query_payment = max_query_payment

    @property
    def operator_id(self) -> AccountId:
        return self.operator.account_id

    def generate_key(
        self, variant: PrivateKeyVariant = PrivateKeyVariant.Ed25519
    ) -> asymmetric_crypto.PrivateKey:
        """A new key, known to the ledger so it can sign as that key later."""
        private_key = generate_private_key(variant)
        self.ledger.register_key(private_key)
        return private_key

    async def submit(
        self,
        body: TransactionBody,
        signers: Sequence[asymmetric_crypto.PrivateKey] = (),
        action: Optional[str] = None,
        max_transaction_fee: Optional[Hbar] = None,
    ) -> TransactionReceipt:
        """
        Build, sign, execute and check one transaction.

        :param signers: Keys the ledger requires besides the operator's.
        :raises ValueError: If the body fails local validation.
        :raises PrecheckError: If the ledger refused the transaction.
        :raises ReceiptStatusError: If the receipt status is not ``SUCCESS``.
        """
        action = action or body.KIND
        transaction = Transaction.build(
            body, self.operator_id, max_transaction_fee or self.max_transaction_fee
        )
        transaction = transaction.sign(self.operator.private_key)
        for signer in signers:
            self.ledger.register_key(signer)
            transaction = transaction.sign(signer)

        logging.info(f"Submitting {action}: {transaction.transaction_id}")
        receipt = await self.ledger.execute(transaction)
        logging.info(f"{action} status: {receipt.status.name}")
        return receipt.validate_status(action)

    #
    # Accounts and balances
    #

    async def create_account(
        self, public_key: asymmetric_crypto.PublicKey, initial_balance: Hbar
    ) -> AccountId:
        receipt = await self.submit(
            AccountCreate(public_key, initial_balance), action="create account"
        )
        return typing.cast(AccountId, receipt.account_id)

    async def query_balance(self, account_id: AccountId) -> AccountBalance:
        return await self.ledger.account_balance(account_id)

    async def query_balances(self, *account_ids: AccountId) -> List[AccountBalance]:
        """Independent reads, so they run concurrently."""
        return list(
            await asyncio.gather(*[self.query_balance(account_id) for account_id in account_ids])
        )

    #
    # Tokens
    #

    async def create_token(
        self,
        token: TokenCreate,
        signers: Sequence[asymmetric_crypto.PrivateKey] = (),
    ) -> TokenId:
        """
        :param signers: The treasury key when the treasury is not the
            operator, and the admin key when one is set.
        """
        receipt = await self.submit(token, signers, action=f"create token {token.symbol}")
        return typing.cast(TokenId, receipt.token_id)

    async def associate(
        self,
        account_id: AccountId,
        token_id: TokenId,
        account_key: asymmetric_crypto.PrivateKey,
    ) -> TransactionReceipt:
        return await self.submit(
            TokenAssociate(account_id, (token_id,)),
            [account_key],
            action=f"associate {token_id} with {account_id}",
        )

    async def mint(
        self,
        token_id: TokenId,
        metadata: Sequence[bytes],
        supply_key: asymmetric_crypto.PrivateKey,
        max_transaction_fee: Optional[Hbar] = None,
    ) -> Tuple[int, ...]:
        """Mint one NFT per metadata entry and return the new serial numbers."""
        receipt = await self.submit(
            TokenMint(token_id, metadata=tuple(metadata)),
            [supply_key],
            action=f"mint {token_id}",
            max_transaction_fee=max_transaction_fee,
        )
        return receipt.serial_numbers

    async def mint_fungible(
        self,
        token_id: TokenId,
        amount: int,
        supply_key: asymmetric_crypto.PrivateKey,
    ) -> int:
        """Mint ``amount`` units to the treasury and return the new total supply."""
        receipt = await self.submit(
            TokenMint(token_id, amount=amount), [supply_key], action=f"mint {token_id}"
        )
        return typing.cast(int, receipt.total_supply)

    async def transfer_token(
        self,
        token_id: TokenId,
        sender: AccountId,
        receiver: AccountId,
        amount: int,
        signers: Sequence[asymmetric_crypto.PrivateKey] = (),
    ) -> TransactionReceipt:
        """
        :param signers: The sender's key, unless the sender is the operator.
        :raises ValueError: If ``amount`` is not positive.
        """
        if amount <= 0:
            raise ValueError(f"Transfer amount must be positive, got {amount}")
        body = Transfer().add_token_transfer(token_id, sender, -amount)
        body = body.add_token_transfer(token_id, receiver, amount)
        return await self.submit(
            body, signers, action=f"transfer {amount} of {token_id} to {receiver}"
        )

    async def transfer_nft(
        self,
        nft_id: NftId,
        sender: AccountId,
        receiver: AccountId,
        signers: Sequence[asymmetric_crypto.PrivateKey] = (),
    ) -> TransactionReceipt:
        return await self.submit(
            Transfer().add_nft_transfer(nft_id, sender, receiver),
            signers,
            action=f"transfer {nft_id} to {receiver}",
        )

    #
    # Files and contracts
    #

    async def upload_file(self, contents: bytes) -> FileId:
        """
        Store ``contents`` in a new file owned by the operator. Content larger
        than one chunk is appended chunk by chunk, in order.
        """
        chunks = create_chunks(contents)
        operator_key = self.operator.private_key.public_key()
        receipt = await self.submit(
            FileCreate(chunks[0], (operator_key,)), action="create file"
        )
        file_id = typing.cast(FileId, receipt.file_id)
        for index, chunk in enumerate(chunks[1:], start=1):
            await self.submit(
                FileAppend(file_id, chunk),
                action=f"append chunk {index + 1}/{len(chunks)} to {file_id}",
            )
        return file_id

    async def upload_bytecode(self, bytecode: str) -> FileId:
        """
        Store hex ``bytecode`` as the hex text contract creation expects.

        :raises ValueError: If ``bytecode`` is not hex.
        """
        bytecode = bytecode.strip()
        if bytecode.startswith("0x"):
            bytecode = bytecode[2:]
        bytes.fromhex(bytecode)
        file_id = await self.upload_file(bytecode.encode())
        logging.info(f"Contract bytecode file: {file_id}")
        return file_id

    async def create_contract(
        self,
        bytecode_file_id: FileId,
        constructor_parameters: Optional[ContractFunctionParameters] = None,
        gas: int = 300_000,
    ) -> ContractId:
        params = constructor_parameters or ContractFunctionParameters()
        receipt = await self.submit(
            ContractCreate(bytecode_file_id, gas, params.to_bytes()),
            action="create contract",
        )
        return typing.cast(ContractId, receipt.contract_id)

    async def deploy_contract(
        self,
        bytecode: str,
        constructor_parameters: Optional[ContractFunctionParameters] = None,
        gas: int = 300_000,
    ) -> ContractId:
        """Upload hex ``bytecode`` as a file, then instantiate the contract."""
        file_id = await self.upload_bytecode(bytecode)
        return await self.create_contract(file_id, constructor_parameters, gas)

    async def call_contract(
        self,
        contract_id: ContractId,
        function_name: str,
        params: Optional[ContractFunctionParameters] = None,
        gas: int = 100_000,
        query_payment: Optional[Hbar] = None,
    ) -> ContractFunctionResult:
        """A read-only call. Nothing is committed and there is no receipt."""
        payment = query_payment or self.max_query_payment
        if payment > self.max_query_payment:
            raise ValueError(
                f"Query payment {payment} exceeds the maximum {self.max_query_payment}"
            )
        query = ContractCallQuery(
            contract_id,
            gas,
            encode_function_call(function_name, params),
            payment,
            self.operator_id,
        )
        logging.info(f"Calling {function_name} on {contract_id}")
        return await self.ledger.call_contract(query)

    async def execute_contract(
        self,
        contract_id: ContractId,
        function_name: str,
        params: Optional[ContractFunctionParameters] = None,
        gas: int = 100_000,
    ) -> TransactionReceipt:
        return await self.submit(
            ContractExecute(contract_id, gas, encode_function_call(function_name, params)),
            action=f"execute {function_name} on {contract_id}",
        )

    async def close(self):
        await self.ledger.close()


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        from .memory_ledger import InMemoryLedger

        self.ledger = InMemoryLedger()
        operator_key = ed25519.PrivateKey.random()
        self.operator = OperatorConfig(AccountId.from_num(2), operator_key)
        self.ledger.add_account(
            self.operator.account_id, operator_key.public_key(), Hbar.from_hbar(1000)
        )
        self.session = LedgerSession(self.ledger, self.operator)

    async def fungible(self) -> TokenId:
        return await self.session.create_token(
            TokenCreate("USD Bar", "USDB", self.operator.account_id, decimals=2, initial_supply=10000)
        )

    async def test_failed_receipt_raises(self):
        key = self.session.generate_key()
        account_id = await self.session.create_account(key.public_key(), Hbar(100))
        token_id = await self.fungible()

        # The operator can not associate someone else's account.
        with self.assertRaises(ReceiptStatusError) as cm:
            await self.session.associate(account_id, token_id, self.operator.private_key)
        self.assertEqual(cm.exception.status, Status.INVALID_SIGNATURE)

        await self.session.associate(account_id, token_id, key)
        balance = await self.session.query_balance(account_id)
        self.assertTrue(balance.is_associated(token_id))

    async def test_transfer_more_than_balance(self):
        key = self.session.generate_key()
        account_id = await self.session.create_account(key.public_key(), Hbar(100))
        token_id = await self.fungible()
        await self.session.associate(account_id, token_id, key)

        with self.assertRaises(ReceiptStatusError) as cm:
            await self.session.transfer_token(
                token_id, account_id, self.operator.account_id, 1, [key]
            )
        self.assertEqual(cm.exception.status, Status.INSUFFICIENT_TOKEN_BALANCE)

    async def test_transfer_non_positive_amount(self):
        key = self.session.generate_key()
        account_id = await self.session.create_account(key.public_key(), Hbar(100))
        token_id = await self.fungible()
        await self.session.associate(account_id, token_id, key)
        await self.session.transfer_token(
            token_id, self.operator.account_id, account_id, 10
        )

        for amount in (-5, 0):
            with self.assertRaises(ValueError):
                await self.session.transfer_token(
                    token_id, self.operator.account_id, account_id, amount, [key]
                )
        balance = await self.session.query_balance(account_id)
        self.assertEqual(balance.balance_of(token_id), 10)

    async def test_query_balances_concurrently(self):
        key = self.session.generate_key(PrivateKeyVariant.Secp256k1)
        account_id = await self.session.create_account(key.public_key(), Hbar(100))
        operator, created = await self.session.query_balances(
            self.operator.account_id, account_id
        )
        self.assertEqual(operator.account_id, self.operator.account_id)
        self.assertEqual(created.hbars, Hbar(100))

    async def test_mint_fungible(self):
        supply_key = self.session.generate_key()
        token_id = await self.session.create_token(
            TokenCreate(
                "USD Bar",
                "USDB",
                self.operator.account_id,
                decimals=2,
                initial_supply=10000,
                supply_key=supply_key.public_key(),
            )
        )
        total = await self.session.mint_fungible(token_id, 500, supply_key)
        self.assertEqual(total, 10500)

    async def test_upload_large_file_in_chunks(self):
        contents = bytes(range(256)) * 40
        file_id = await self.session.upload_file(contents)
        self.assertEqual(self.ledger.file_contents(file_id), contents)
        kinds = [txn.body.KIND for txn in self.ledger.history]
        self.assertEqual(kinds, ["file_create", "file_append", "file_append"])

    async def test_deploy_rejects_non_hex_bytecode(self):
        with self.assertRaises(ValueError):
            await self.session.deploy_contract("not bytecode")
        self.assertEqual(self.ledger.history, [])

    async def test_query_payment_capped(self):
        with self.assertRaises(ValueError):
            await self.session.call_contract(
                ContractId.from_num(5), "get_message", query_payment=Hbar.from_hbar(51)
            )

    async def test_precheck_propagates(self):
        session = LedgerSession(self.ledger, self.operator, max_transaction_fee=Hbar(1))
        with self.assertRaises(PrecheckError):
            await session.create_account(ed25519.PrivateKey.random().public_key(), Hbar(1))

    def test_create_chunks(self):
        self.assertEqual(create_chunks(b"abcde", 2), [b"ab", b"cd", b"e"])
        self.assertEqual(create_chunks(b""), [b""])


if __name__ == "__main__":
    unittest.main()
