# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Outcomes returned by the ledger: response codes, receipts and balances.

A ``TransactionReceipt`` is the only place a newly created entity id comes
from. Callers are expected to check ``status`` before touching the ids;
``validate_status`` does that and raises ``ReceiptStatusError`` otherwise.
"""

from __future__ import annotations

import logging
import typing
import unittest
from dataclasses import dataclass, field
from enum import Enum

from .entity_id import AccountId, ContractId, FileId, TokenId
from .errors import ReceiptStatusError
from .hbar import ZERO, Hbar

if typing.TYPE_CHECKING:
    from .transactions import TransactionId


class Status(Enum):
    """The subset of Hedera response codes these workflows can observe."""

    INVALID_ACCOUNT_ID = "INVALID_ACCOUNT_ID"
    INSUFFICIENT_TX_FEE = "INSUFFICIENT_TX_FEE"
    INSUFFICIENT_PAYER_BALANCE = "INSUFFICIENT_PAYER_BALANCE"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    TRANSACTION_OVERSIZE = "TRANSACTION_OVERSIZE"
    SUCCESS = "SUCCESS"
    INSUFFICIENT_GAS = "INSUFFICIENT_GAS"
    INVALID_FILE_ID = "INVALID_FILE_ID"
    INVALID_CONTRACT_ID = "INVALID_CONTRACT_ID"
    CONTRACT_REVERT_EXECUTED = "CONTRACT_REVERT_EXECUTED"
    CONTRACT_BYTECODE_EMPTY = "CONTRACT_BYTECODE_EMPTY"
    CONTRACT_EXECUTION_EXCEPTION = "CONTRACT_EXECUTION_EXCEPTION"
    INVALID_ACCOUNT_AMOUNTS = "INVALID_ACCOUNT_AMOUNTS"
    INSUFFICIENT_ACCOUNT_BALANCE = "INSUFFICIENT_ACCOUNT_BALANCE"
    ACCOUNT_REPEATED_IN_ACCOUNT_AMOUNTS = "ACCOUNT_REPEATED_IN_ACCOUNT_AMOUNTS"
    MAX_FILE_SIZE_EXCEEDED = "MAX_FILE_SIZE_EXCEEDED"
    INVALID_TOKEN_ID = "INVALID_TOKEN_ID"
    INVALID_TOKEN_DECIMALS = "INVALID_TOKEN_DECIMALS"
    INVALID_TOKEN_INITIAL_SUPPLY = "INVALID_TOKEN_INITIAL_SUPPLY"
    INVALID_TREASURY_ACCOUNT_FOR_TOKEN = "INVALID_TREASURY_ACCOUNT_FOR_TOKEN"
    INSUFFICIENT_TOKEN_BALANCE = "INSUFFICIENT_TOKEN_BALANCE"
    TOKEN_HAS_NO_SUPPLY_KEY = "TOKEN_HAS_NO_SUPPLY_KEY"
    INVALID_TOKEN_MINT_AMOUNT = "INVALID_TOKEN_MINT_AMOUNT"
    TOKEN_NOT_ASSOCIATED_TO_ACCOUNT = "TOKEN_NOT_ASSOCIATED_TO_ACCOUNT"
    MISSING_TOKEN_SYMBOL = "MISSING_TOKEN_SYMBOL"
    TOKEN_SYMBOL_TOO_LONG = "TOKEN_SYMBOL_TOO_LONG"
    MISSING_TOKEN_NAME = "MISSING_TOKEN_NAME"
    TOKEN_NAME_TOO_LONG = "TOKEN_NAME_TOO_LONG"
    TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT = "TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT"
    TRANSFERS_NOT_ZERO_SUM_FOR_TOKEN = "TRANSFERS_NOT_ZERO_SUM_FOR_TOKEN"
    INVALID_TOKEN_MAX_SUPPLY = "INVALID_TOKEN_MAX_SUPPLY"
    INVALID_NFT_ID = "INVALID_NFT_ID"
    METADATA_TOO_LONG = "METADATA_TOO_LONG"
    BATCH_SIZE_LIMIT_EXCEEDED = "BATCH_SIZE_LIMIT_EXCEEDED"
    TOKEN_MAX_SUPPLY_REACHED = "TOKEN_MAX_SUPPLY_REACHED"
    SENDER_DOES_NOT_OWN_NFT_SERIAL_NO = "SENDER_DOES_NOT_OWN_NFT_SERIAL_NO"
    ACCOUNT_AMOUNT_TRANSFERS_ONLY_ALLOWED_FOR_FUNGIBLE_COMMON = (
        "ACCOUNT_AMOUNT_TRANSFERS_ONLY_ALLOWED_FOR_FUNGIBLE_COMMON"
    )
    UNAUTHORIZED = "UNAUTHORIZED"
    ERROR_DECODING_BYTESTRING = "ERROR_DECODING_BYTESTRING"
    PAYER_ACCOUNT_NOT_FOUND = "PAYER_ACCOUNT_NOT_FOUND"
    UNKNOWN = "UNKNOWN"

    @staticmethod
    def from_name(name: str) -> Status:
        """Map a response code name reported by the SDK onto ``Status``.

        Codes this module does not list collapse into ``UNKNOWN``; they are
        failures all the same.
        """
        try:
            return Status[name]
        except KeyError:
            logging.warning(f"Unrecognised response code {name}")
            return Status.UNKNOWN


@dataclass(frozen=True)
class TransactionReceipt:
    status: Status
    transaction_id: typing.Optional[TransactionId] = None
    account_id: typing.Optional[AccountId] = None
    token_id: typing.Optional[TokenId] = None
    file_id: typing.Optional[FileId] = None
    contract_id: typing.Optional[ContractId] = None
    serial_numbers: typing.Tuple[int, ...] = ()
    total_supply: typing.Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == Status.SUCCESS

    def validate_status(self, action: str = "transaction") -> TransactionReceipt:
        if not self.success:
            raise ReceiptStatusError(f"{action} failed", self)
        return self


@dataclass(frozen=True)
class AccountBalance:
    """Balances of one account: hbars plus units held per token."""

    account_id: AccountId
    hbars: Hbar = ZERO
    tokens: typing.Mapping[TokenId, int] = field(default_factory=dict)

    def balance_of(self, token_id: TokenId) -> int:
        """Units of ``token_id`` held; NFTs count one unit per serial."""
        return self.tokens.get(token_id, 0)

    def is_associated(self, token_id: TokenId) -> bool:
        return token_id in self.tokens

    def __str__(self) -> str:
        tokens = ", ".join(f"{token}: {amount}" for token, amount in self.tokens.items())
        return f"{self.account_id}: {self.hbars} [{tokens}]"


class Test(unittest.TestCase):
    def test_validate_status(self):
        ok = TransactionReceipt(Status.SUCCESS, token_id=TokenId.from_num(5))
        self.assertIs(ok.validate_status(), ok)

        failed = TransactionReceipt(Status.INVALID_SIGNATURE)
        with self.assertRaises(ReceiptStatusError) as cm:
            failed.validate_status("associate")
        self.assertEqual(cm.exception.status, Status.INVALID_SIGNATURE)
        self.assertIn("associate failed: INVALID_SIGNATURE", str(cm.exception))

    def test_from_name(self):
        self.assertEqual(Status.from_name("SUCCESS"), Status.SUCCESS)
        self.assertEqual(Status.from_name("SOMETHING_NEW"), Status.UNKNOWN)

    def test_balance_lookup_is_typed(self):
        token_id = TokenId.from_num(5)
        balance = AccountBalance(AccountId.from_num(2), tokens={token_id: 4})
        self.assertEqual(balance.balance_of(token_id), 4)
        self.assertEqual(balance.balance_of(TokenId.from_num(6)), 0)
        self.assertTrue(balance.is_associated(token_id))


if __name__ == "__main__":
    unittest.main()
