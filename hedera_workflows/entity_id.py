# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ledger entity identifiers.

Every account, token, file and contract on Hedera is named by a
``shard.realm.num`` triple, written ``"0.0.1234"``. The kinds share one
number space per realm but are distinct types here: a ``TokenId`` never
compares equal to an ``AccountId`` with the same digits, so an id can not be
passed where another kind is expected without a type error showing up in
review or in mypy.

Ids can carry an optional checksum suffix (``"0.0.1234-vfmkw"``) when copied
from explorers; it is accepted and dropped on parse.

Examples:
    Parsing and printing::

        token_id = TokenId.from_str("0.0.5005")
        assert str(token_id) == "0.0.5005"

    The EVM (long-zero) form used by contract calls::

        ContractId.from_str("0.0.1234").to_evm_address()
        # '00000000000000000000000000000000000004d2'

    One NFT::

        nft = NftId(token_id, 1)
        assert str(nft) == "0.0.5005/1"
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass

from .bcs import Serializer

T = typing.TypeVar("T", bound="EntityId")


@dataclass(frozen=True)
class EntityId:
    shard: int
    realm: int
    num: int

    def __post_init__(self):
        for part in (self.shard, self.realm, self.num):
            if part < 0:
                raise ValueError(f"Entity id parts must be non-negative: {self}")

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"

    @classmethod
    def from_str(cls: typing.Type[T], value: str) -> T:
        """Parse ``"shard.realm.num"``, ignoring any ``-checksum`` suffix.

        :raises ValueError: If the value is not three dot separated integers.
        """
        head = value.strip().split("-", 1)[0]
        parts = head.split(".")
        if len(parts) != 3 or not all(part.isdigit() for part in parts):
            raise ValueError(f"Invalid {cls.__name__}: {value!r}")
        return cls(int(parts[0]), int(parts[1]), int(parts[2]))

    @classmethod
    def from_num(cls: typing.Type[T], num: int) -> T:
        return cls(0, 0, num)

    def to_evm_address(self) -> str:
        """The 20 byte long-zero address: 4 bytes shard, 8 realm, 8 num."""
        return (
            self.shard.to_bytes(4, "big")
            + self.realm.to_bytes(8, "big")
            + self.num.to_bytes(8, "big")
        ).hex()

    def serialize(self, serializer: Serializer):
        serializer.u64(self.shard)
        serializer.u64(self.realm)
        serializer.u64(self.num)


class AccountId(EntityId):
    pass


class TokenId(EntityId):
    pass


class FileId(EntityId):
    pass


class ContractId(EntityId):
    pass


@dataclass(frozen=True)
class NftId:
    """One serial number of a non-fungible token."""

    token_id: TokenId
    serial_number: int

    def __post_init__(self):
        if self.serial_number <= 0:
            raise ValueError("NFT serial numbers start at 1")

    def __str__(self) -> str:
        return f"{self.token_id}/{self.serial_number}"

    @staticmethod
    def from_str(value: str) -> NftId:
        token, sep, serial = value.replace("@", "/").partition("/")
        if not sep or not serial.isdigit():
            raise ValueError(f"Invalid NftId: {value!r}")
        return NftId(TokenId.from_str(token), int(serial))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.token_id)
        serializer.u64(self.serial_number)


class Test(unittest.TestCase):
    def test_parse_and_print(self):
        account_id = AccountId.from_str("0.0.1234")
        self.assertEqual(account_id, AccountId(0, 0, 1234))
        self.assertEqual(str(account_id), "0.0.1234")

    def test_checksum_is_ignored(self):
        self.assertEqual(AccountId.from_str("0.0.1234-vfmkw"), AccountId(0, 0, 1234))

    def test_kinds_are_distinct(self):
        self.assertNotEqual(TokenId(0, 0, 7), AccountId(0, 0, 7))
        self.assertIsInstance(TokenId.from_str("0.0.7"), TokenId)
        self.assertEqual(len({TokenId(0, 0, 7), TokenId(0, 0, 7)}), 1)

    def test_invalid(self):
        for value in ["", "0.0", "0.0.x", "a.b.c", "0.0.1.2"]:
            with self.assertRaises(ValueError):
                AccountId.from_str(value)
        with self.assertRaises(ValueError):
            AccountId(0, 0, -1)

    def test_evm_address(self):
        self.assertEqual(
            ContractId.from_str("0.0.1234").to_evm_address(),
            "00000000000000000000000000000000000004d2",
        )

    def test_nft_id(self):
        nft = NftId(TokenId.from_num(5005), 1)
        self.assertEqual(str(nft), "0.0.5005/1")
        self.assertEqual(NftId.from_str("0.0.5005/1"), nft)
        self.assertEqual(NftId.from_str("0.0.5005@1"), nft)
        with self.assertRaises(ValueError):
            NftId(TokenId.from_num(5005), 0)


if __name__ == "__main__":
    unittest.main()
