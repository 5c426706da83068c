# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Solidity ABI encoding for contract constructor and function arguments.

Hedera smart contracts run on an EVM, so calls carry standard ABI data: a
four byte selector (the first bytes of the keccak-256 hash of the function
signature) followed by the encoded arguments. Constructor arguments are
the encoded arguments alone.

Examples:
    Constructor arguments::

        params = ContractFunctionParameters().add_string("Hello from Hedera!")
        params.to_bytes()

    A function call::

        call_data = encode_function_call(
            "set_message", ContractFunctionParameters().add_string("hi")
        )

    Reading a result::

        ContractFunctionResult(raw).get_string(0)
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass

from eth_abi import decode, encode
from eth_utils import keccak


@dataclass(frozen=True)
class ContractFunctionParameters:
    """An immutable list of typed ABI arguments.

    Each ``add_*`` returns a new value, so a parameter list can be shared
    between transactions without one call mutating another.
    """

    types: typing.Tuple[str, ...] = ()
    values: typing.Tuple[typing.Any, ...] = ()

    def _add(self, abi_type: str, value: typing.Any) -> ContractFunctionParameters:
        return ContractFunctionParameters(self.types + (abi_type,), self.values + (value,))

    def add_string(self, value: str) -> ContractFunctionParameters:
        return self._add("string", value)

    def to_bytes(self) -> bytes:
        return encode(list(self.types), list(self.values))

    def signature(self, function_name: str) -> str:
        return f"{function_name}({','.join(self.types)})"


def function_selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_function_call(
    function_name: str,
    params: typing.Optional[ContractFunctionParameters] = None,
) -> bytes:
    params = params or ContractFunctionParameters()
    return function_selector(params.signature(function_name)) + params.to_bytes()


@dataclass(frozen=True)
class ContractFunctionResult:
    """Raw ABI encoded return data of a contract call."""

    raw: bytes
    gas_used: int = 0

    def _word(self, index: int) -> int:
        start = index * 32
        return int.from_bytes(self.raw[start : start + 32], "big")

    def get_string(self, index: int) -> str:
        """Read a dynamic ``string`` return value at position ``index``."""
        offset = self._word(index)
        length = int.from_bytes(self.raw[offset : offset + 32], "big")
        return self.raw[offset + 32 : offset + 32 + length].decode()

    def decode(self, types: typing.List[str]) -> typing.Tuple[typing.Any, ...]:
        return decode(types, self.raw)


class Test(unittest.TestCase):
    def test_selector(self):
        # Well known ERC-20 selector.
        self.assertEqual(
            function_selector("transfer(address,uint256)").hex(), "a9059cbb"
        )

    def test_immutable_builder(self):
        base = ContractFunctionParameters()
        with_string = base.add_string("Hello from Hedera!")
        self.assertEqual(base.types, ())
        self.assertEqual(with_string.types, ("string",))
        self.assertEqual(with_string.signature("set_message"), "set_message(string)")

    def test_string_round_trip_through_result(self):
        params = ContractFunctionParameters().add_string("Hello from Hedera!")
        result = ContractFunctionResult(params.to_bytes())
        self.assertEqual(result.get_string(0), "Hello from Hedera!")
        self.assertEqual(result.decode(["string"]), ("Hello from Hedera!",))

    def test_second_string_result(self):
        params = ContractFunctionParameters().add_string("one").add_string("seven")
        result = ContractFunctionResult(params.to_bytes())
        self.assertEqual(result.get_string(1), "seven")

    def test_function_call_prefix(self):
        call = encode_function_call("get_message")
        self.assertEqual(call, function_selector("get_message()"))


if __name__ == "__main__":
    unittest.main()
