# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Transaction intents and the signed transaction envelope.

Every state change the workflows make is one of the bodies below: create an
account, create a token, associate, mint, transfer, create or append to a
file, create a contract, execute a contract. Bodies are frozen dataclasses;
``validate`` checks what can be checked without the ledger (signs of
amounts, zero-sum transfers, gas > 0) and the ledger checks the rest.

A body becomes a ``Transaction`` once it is bound to a transaction id (payer
plus valid-start time) and a max fee. From then on the canonical body bytes
are fixed. ``Transaction.sign`` returns a new value carrying one more
signature over those bytes, so a signed transaction is never mutated.

Examples:
    Build, sign and hand to a ledger::

        txn = Transaction.build(
            TokenAssociate(new_account, (token_id,)),
            payer=operator_id,
            max_transaction_fee=Hbar.from_hbar(2),
        )
        txn = txn.sign(operator_key).sign(new_account_key)
        receipt = await ledger.execute(txn)

    A fungible transfer that nets to zero::

        body = Transfer().add_token_transfer(token_id, treasury, -10).add_token_transfer(
            token_id, recipient, 10
        )
"""

from __future__ import annotations

import time
import typing
import unittest
from collections import defaultdict
from dataclasses import dataclass, field, replace
from enum import Enum

from . import asymmetric_crypto
from .bcs import Serializer
from .entity_id import AccountId, ContractId, FileId, NftId, TokenId
from .hbar import ZERO, Hbar

MAX_MEMO_BYTES = 100
MAX_MINT_BATCH = 10

_last_valid_start = 0


class TokenType(Enum):
    FUNGIBLE_COMMON = 0
    NON_FUNGIBLE_UNIQUE = 1


class SupplyType(Enum):
    INFINITE = 0
    FINITE = 1


@dataclass(frozen=True)
class TransactionId:
    """Payer account plus the valid-start time, unique per transaction."""

    account_id: AccountId
    valid_start_seconds: int
    valid_start_nanos: int

    @staticmethod
    def generate(account_id: AccountId) -> TransactionId:
        """A fresh id; valid-start times never repeat within the process."""
        global _last_valid_start
        now = max(time.time_ns(), _last_valid_start + 1)
        _last_valid_start = now
        return TransactionId(account_id, now // 1_000_000_000, now % 1_000_000_000)

    def __str__(self) -> str:
        return f"{self.account_id}@{self.valid_start_seconds}.{self.valid_start_nanos:09d}"

    @staticmethod
    def from_str(value: str) -> TransactionId:
        account, _, start = value.partition("@")
        seconds, _, nanos = start.partition(".")
        if not seconds.isdigit() or not nanos.isdigit():
            raise ValueError(f"Invalid TransactionId: {value!r}")
        return TransactionId(AccountId.from_str(account), int(seconds), int(nanos))

    def to_mirror_str(self) -> str:
        """The ``0.0.2-1700000000-000000001`` form used by mirror node URLs."""
        return f"{self.account_id}-{self.valid_start_seconds}-{self.valid_start_nanos:09d}"

    def serialize(self, serializer: Serializer):
        serializer.struct(self.account_id)
        serializer.u64(self.valid_start_seconds)
        serializer.u32(self.valid_start_nanos)


class TransactionBody:
    """Base of every intent; ``KIND`` tags the body in the signed bytes."""

    KIND: typing.ClassVar[str]

    def validate(self):
        pass

    def serialize(self, serializer: Serializer):
        raise NotImplementedError


def _optional_key(
    serializer: Serializer, key: typing.Optional[asymmetric_crypto.PublicKey]
):
    serializer.option(key, Serializer.struct)


@dataclass(frozen=True)
class AccountCreate(TransactionBody):
    KIND: typing.ClassVar[str] = "account_create"

    key: asymmetric_crypto.PublicKey
    initial_balance: Hbar = ZERO
    memo: str = ""

    def validate(self):
        if self.initial_balance.tinybars < 0:
            raise ValueError("Initial balance can not be negative")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.key)
        serializer.u64(self.initial_balance.tinybars)
        serializer.str(self.memo)


@dataclass(frozen=True)
class TokenCreate(TransactionBody):
    """Create a fungible token or an NFT collection.

    The treasury receives the initial supply and must sign. NFTs start with
    zero supply and zero decimals and grow through ``TokenMint`` signed by
    the supply key. ``max_supply`` only applies to ``SupplyType.FINITE``.
    """

    KIND: typing.ClassVar[str] = "token_create"

    name: str
    symbol: str
    treasury_account_id: AccountId
    token_type: TokenType = TokenType.FUNGIBLE_COMMON
    supply_type: SupplyType = SupplyType.INFINITE
    decimals: int = 0
    initial_supply: int = 0
    max_supply: int = 0
    supply_key: typing.Optional[asymmetric_crypto.PublicKey] = None
    admin_key: typing.Optional[asymmetric_crypto.PublicKey] = None
    memo: str = ""

    def validate(self):
        if self.decimals < 0 or self.initial_supply < 0 or self.max_supply < 0:
            raise ValueError("Decimals and supplies can not be negative")
        if self.token_type == TokenType.NON_FUNGIBLE_UNIQUE and (
            self.decimals or self.initial_supply
        ):
            raise ValueError("NFT collections have no decimals and start empty")
        if self.supply_type == SupplyType.FINITE and self.max_supply == 0:
            raise ValueError("A finite token needs a max supply")
        if self.supply_type == SupplyType.INFINITE and self.max_supply:
            raise ValueError("Max supply only applies to finite tokens")

    def serialize(self, serializer: Serializer):
        serializer.str(self.name)
        serializer.str(self.symbol)
        serializer.struct(self.treasury_account_id)
        serializer.u8(self.token_type.value)
        serializer.u8(self.supply_type.value)
        serializer.u32(self.decimals)
        serializer.u64(self.initial_supply)
        serializer.u64(self.max_supply)
        _optional_key(serializer, self.supply_key)
        _optional_key(serializer, self.admin_key)
        serializer.str(self.memo)


@dataclass(frozen=True)
class TokenAssociate(TransactionBody):
    """Let ``account_id`` hold ``token_ids``; signed by that account's key."""

    KIND: typing.ClassVar[str] = "token_associate"

    account_id: AccountId
    token_ids: typing.Tuple[TokenId, ...]

    def validate(self):
        if not self.token_ids:
            raise ValueError("Nothing to associate")
        if len(set(self.token_ids)) != len(self.token_ids):
            raise ValueError("Token ids repeat in association")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.account_id)
        serializer.sequence(list(self.token_ids), Serializer.struct)


@dataclass(frozen=True)
class TokenMint(TransactionBody):
    """Mint ``amount`` fungible units or one NFT per ``metadata`` entry."""

    KIND: typing.ClassVar[str] = "token_mint"

    token_id: TokenId
    amount: int = 0
    metadata: typing.Tuple[bytes, ...] = ()

    def validate(self):
        if self.amount < 0:
            raise ValueError("Mint amount can not be negative")
        if bool(self.amount) == bool(self.metadata):
            raise ValueError("Mint either an amount or a batch of metadata")
        if len(self.metadata) > MAX_MINT_BATCH:
            raise ValueError(f"At most {MAX_MINT_BATCH} NFTs per mint")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.token_id)
        serializer.u64(self.amount)
        serializer.sequence(list(self.metadata), Serializer.to_bytes)


@dataclass(frozen=True)
class AccountAmount:
    account_id: AccountId
    amount: int

    def serialize(self, serializer: Serializer):
        serializer.struct(self.account_id)
        serializer.i64(self.amount)


@dataclass(frozen=True)
class TokenTransfer:
    token_id: TokenId
    account_id: AccountId
    amount: int

    def serialize(self, serializer: Serializer):
        serializer.struct(self.token_id)
        serializer.struct(self.account_id)
        serializer.i64(self.amount)


@dataclass(frozen=True)
class NftTransfer:
    nft_id: NftId
    sender_account_id: AccountId
    receiver_account_id: AccountId

    def serialize(self, serializer: Serializer):
        serializer.struct(self.nft_id)
        serializer.struct(self.sender_account_id)
        serializer.struct(self.receiver_account_id)


@dataclass(frozen=True)
class Transfer(TransactionBody):
    """Atomic hbar, fungible token and NFT movements.

    Every account with a negative adjustment and every NFT sender must sign.
    Adjustments of each currency must add up to zero.
    """

    KIND: typing.ClassVar[str] = "crypto_transfer"

    hbar_transfers: typing.Tuple[AccountAmount, ...] = ()
    token_transfers: typing.Tuple[TokenTransfer, ...] = ()
    nft_transfers: typing.Tuple[NftTransfer, ...] = ()

    def add_hbar_transfer(self, account_id: AccountId, amount: Hbar) -> Transfer:
        return replace(
            self,
            hbar_transfers=self.hbar_transfers
            + (AccountAmount(account_id, amount.tinybars),),
        )

    def add_token_transfer(
        self, token_id: TokenId, account_id: AccountId, amount: int
    ) -> Transfer:
        return replace(
            self,
            token_transfers=self.token_transfers
            + (TokenTransfer(token_id, account_id, amount),),
        )

    def add_nft_transfer(
        self, nft_id: NftId, sender: AccountId, receiver: AccountId
    ) -> Transfer:
        return replace(
            self,
            nft_transfers=self.nft_transfers + (NftTransfer(nft_id, sender, receiver),),
        )

    def senders(self) -> typing.Set[AccountId]:
        accounts = {t.account_id for t in self.hbar_transfers if t.amount < 0}
        accounts |= {t.account_id for t in self.token_transfers if t.amount < 0}
        accounts |= {t.sender_account_id for t in self.nft_transfers}
        return accounts

    def validate(self):
        if not (self.hbar_transfers or self.token_transfers or self.nft_transfers):
            raise ValueError("Transfer moves nothing")
        if sum(t.amount for t in self.hbar_transfers) != 0:
            raise ValueError("Hbar transfers must net to zero")
        per_token: typing.DefaultDict[TokenId, int] = defaultdict(int)
        for transfer in self.token_transfers:
            per_token[transfer.token_id] += transfer.amount
        for token_id, total in per_token.items():
            if total != 0:
                raise ValueError(f"Transfers of {token_id} must net to zero, got {total}")
        for nft in self.nft_transfers:
            if nft.sender_account_id == nft.receiver_account_id:
                raise ValueError(f"{nft.nft_id} sent to its own owner")

    def serialize(self, serializer: Serializer):
        serializer.sequence(list(self.hbar_transfers), Serializer.struct)
        serializer.sequence(list(self.token_transfers), Serializer.struct)
        serializer.sequence(list(self.nft_transfers), Serializer.struct)


@dataclass(frozen=True)
class FileCreate(TransactionBody):
    KIND: typing.ClassVar[str] = "file_create"

    contents: bytes
    keys: typing.Tuple[asymmetric_crypto.PublicKey, ...] = ()
    memo: str = ""

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.contents)
        serializer.sequence(list(self.keys), Serializer.struct)
        serializer.str(self.memo)


@dataclass(frozen=True)
class FileAppend(TransactionBody):
    KIND: typing.ClassVar[str] = "file_append"

    file_id: FileId
    contents: bytes

    def validate(self):
        if not self.contents:
            raise ValueError("Nothing to append")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.file_id)
        serializer.to_bytes(self.contents)


@dataclass(frozen=True)
class ContractCreate(TransactionBody):
    """Instantiate the bytecode stored in ``bytecode_file_id``."""

    KIND: typing.ClassVar[str] = "contract_create"

    bytecode_file_id: FileId
    gas: int
    constructor_parameters: bytes = b""
    initial_balance: Hbar = ZERO
    admin_key: typing.Optional[asymmetric_crypto.PublicKey] = None
    memo: str = ""

    def validate(self):
        if self.gas <= 0:
            raise ValueError("Gas must be positive")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.bytecode_file_id)
        serializer.u64(self.gas)
        serializer.to_bytes(self.constructor_parameters)
        serializer.u64(self.initial_balance.tinybars)
        _optional_key(serializer, self.admin_key)
        serializer.str(self.memo)


@dataclass(frozen=True)
class ContractExecute(TransactionBody):
    """A state changing contract call; ``function_parameters`` is ABI call data."""

    KIND: typing.ClassVar[str] = "contract_call"

    contract_id: ContractId
    gas: int
    function_parameters: bytes
    payable_amount: Hbar = ZERO

    def validate(self):
        if self.gas <= 0:
            raise ValueError("Gas must be positive")

    def serialize(self, serializer: Serializer):
        serializer.struct(self.contract_id)
        serializer.u64(self.gas)
        serializer.to_bytes(self.function_parameters)
        serializer.u64(self.payable_amount.tinybars)


@dataclass(frozen=True)
class ContractCallQuery:
    """A read-only contract call answered by a node; nothing is committed."""

    contract_id: ContractId
    gas: int
    function_parameters: bytes
    query_payment: typing.Optional[Hbar] = None
    sender_account_id: typing.Optional[AccountId] = None

    def __post_init__(self):
        if self.gas <= 0:
            raise ValueError("Gas must be positive")


@dataclass(frozen=True)
class SignaturePair:
    public_key: asymmetric_crypto.PublicKey
    signature: asymmetric_crypto.Signature


@dataclass(frozen=True)
class Transaction:
    transaction_id: TransactionId
    max_transaction_fee: Hbar
    body: TransactionBody
    memo: str = ""
    signatures: typing.Tuple[SignaturePair, ...] = field(default=())

    @staticmethod
    def build(
        body: TransactionBody,
        payer: AccountId,
        max_transaction_fee: Hbar,
        memo: str = "",
        transaction_id: typing.Optional[TransactionId] = None,
    ) -> Transaction:
        """Validate ``body`` and bind it to a payer and a fee limit.

        :raises ValueError: If the body fails local validation or the memo is
            too long.
        """
        body.validate()
        if len(memo.encode()) > MAX_MEMO_BYTES:
            raise ValueError(f"Memo exceeds {MAX_MEMO_BYTES} bytes")
        if max_transaction_fee.tinybars <= 0:
            raise ValueError("Max transaction fee must be positive")
        return Transaction(
            transaction_id or TransactionId.generate(payer),
            max_transaction_fee,
            body,
            memo,
        )

    @property
    def payer(self) -> AccountId:
        return self.transaction_id.account_id

    def body_bytes(self) -> bytes:
        """The canonical bytes every signature covers."""
        ser = Serializer()
        ser.struct(self.transaction_id)
        ser.u64(self.max_transaction_fee.tinybars)
        ser.str(self.memo)
        ser.str(self.body.KIND)
        ser.struct(self.body)
        return ser.output()

    def sign(self, private_key: asymmetric_crypto.PrivateKey) -> Transaction:
        public_key = private_key.public_key()
        if any(pair.public_key == public_key for pair in self.signatures):
            return self
        pair = SignaturePair(public_key, private_key.sign(self.body_bytes()))
        return replace(self, signatures=self.signatures + (pair,))

    def is_signed_by(self, public_key: asymmetric_crypto.PublicKey) -> bool:
        body = self.body_bytes()
        return any(
            pair.public_key == public_key and public_key.verify(body, pair.signature)
            for pair in self.signatures
        )

    def __str__(self) -> str:
        return f"{self.body.KIND} {self.transaction_id}"


class Test(unittest.TestCase):
    def setUp(self):
        from . import ed25519

        self.payer = AccountId.from_num(2)
        self.key = ed25519.PrivateKey.random()
        self.other_key = ed25519.PrivateKey.random()
        self.token_id = TokenId.from_num(1001)

    def build(self, body: TransactionBody) -> Transaction:
        return Transaction.build(body, self.payer, Hbar.from_hbar(2))

    def test_sign_returns_new_transaction(self):
        txn = self.build(TokenAssociate(AccountId.from_num(3), (self.token_id,)))
        signed = txn.sign(self.key)
        self.assertEqual(txn.signatures, ())
        self.assertTrue(signed.is_signed_by(self.key.public_key()))
        self.assertFalse(signed.is_signed_by(self.other_key.public_key()))
        # Signing twice with the same key is a no-op.
        self.assertIs(signed.sign(self.key), signed)

    def test_signature_covers_body(self):
        txn = self.build(TokenAssociate(AccountId.from_num(3), (self.token_id,)))
        signed = txn.sign(self.key)
        tampered = replace(
            signed, body=TokenAssociate(AccountId.from_num(4), (self.token_id,))
        )
        self.assertFalse(tampered.is_signed_by(self.key.public_key()))

    def test_transfer_must_net_to_zero(self):
        treasury, recipient = AccountId.from_num(2), AccountId.from_num(3)
        body = Transfer().add_token_transfer(self.token_id, treasury, -10)
        with self.assertRaises(ValueError):
            self.build(body)
        body = body.add_token_transfer(self.token_id, recipient, 10)
        self.assertEqual(body.senders(), {treasury})
        self.build(body)

    def test_hbar_transfer_must_net_to_zero(self):
        body = Transfer().add_hbar_transfer(self.payer, Hbar(-5))
        with self.assertRaises(ValueError):
            self.build(body)

    def test_nft_transfer_senders(self):
        treasury, recipient = AccountId.from_num(2), AccountId.from_num(3)
        body = Transfer().add_nft_transfer(NftId(self.token_id, 1), treasury, recipient)
        self.assertEqual(body.senders(), {treasury})
        with self.assertRaises(ValueError):
            self.build(
                Transfer().add_nft_transfer(NftId(self.token_id, 1), treasury, treasury)
            )

    def test_mint_amount_or_metadata(self):
        with self.assertRaises(ValueError):
            self.build(TokenMint(self.token_id))
        with self.assertRaises(ValueError):
            self.build(TokenMint(self.token_id, amount=1, metadata=(b"x",)))
        self.build(TokenMint(self.token_id, metadata=(b"ipfs://a",)))

    def test_token_create_rules(self):
        nft = TokenCreate(
            "Hedera Token Test",
            "HTT",
            self.payer,
            token_type=TokenType.NON_FUNGIBLE_UNIQUE,
            supply_type=SupplyType.FINITE,
            max_supply=250,
            supply_key=self.key.public_key(),
        )
        self.build(nft)
        with self.assertRaises(ValueError):
            self.build(replace(nft, decimals=2))
        with self.assertRaises(ValueError):
            self.build(replace(nft, max_supply=0))
        with self.assertRaises(ValueError):
            self.build(replace(nft, supply_type=SupplyType.INFINITE))

    def test_mint_batch_limit(self):
        metadata = tuple(f"ipfs://{i}".encode() for i in range(MAX_MINT_BATCH + 1))
        with self.assertRaises(ValueError):
            self.build(TokenMint(self.token_id, metadata=metadata))

    def test_memo_and_fee_limits(self):
        body = TokenAssociate(AccountId.from_num(3), (self.token_id,))
        with self.assertRaises(ValueError):
            Transaction.build(body, self.payer, Hbar.from_hbar(1), memo="x" * 101)
        with self.assertRaises(ValueError):
            Transaction.build(body, self.payer, Hbar(0))

    def test_transaction_id_formats(self):
        txn_id = TransactionId(AccountId.from_num(2), 1700000000, 5)
        self.assertEqual(str(txn_id), "0.0.2@1700000000.000000005")
        self.assertEqual(txn_id.to_mirror_str(), "0.0.2-1700000000-000000005")
        self.assertEqual(TransactionId.from_str(str(txn_id)), txn_id)

    def test_contract_gas(self):
        with self.assertRaises(ValueError):
            ContractCallQuery(ContractId.from_num(5), 0, b"")
        with self.assertRaises(ValueError):
            self.build(ContractExecute(ContractId.from_num(5), 0, b""))


if __name__ == "__main__":
    unittest.main()
