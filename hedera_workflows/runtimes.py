# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Contract runtimes for the in-memory ledger.

The in-memory ledger has no EVM. A deployed contract is instead backed by a
Python object registered against the contract's bytecode. Runtimes accept
ABI call data and answer with ABI return data, so callers can not tell the
difference between a runtime and the real contract.
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from typing_extensions import Protocol

from .abi import ContractFunctionParameters, ContractFunctionResult, function_selector


class ContractRevert(Exception):
    """The contract refused the call; its state is unchanged."""


class OutOfGas(Exception):
    """The call needed more gas than the caller provided."""

    def __init__(self, needed: int, provided: int):
        super().__init__(f"needed {needed} gas, provided {provided}")
        self.needed = needed
        self.provided = provided


@dataclass(frozen=True)
class CallContext:
    """Who calls, with how much gas, and whether state may change."""

    caller: str
    gas: int
    read_only: bool = False

    def charge(self, amount: int) -> int:
        if amount > self.gas:
            raise OutOfGas(amount, self.gas)
        return amount


class ContractRuntime(Protocol):
    def call(self, context: CallContext, call_data: bytes) -> ContractFunctionResult:
        ...


RuntimeFactory = typing.Callable[[CallContext, bytes], ContractRuntime]


class MessageContract:
    """The ``HelloHedera`` contract: an owner-writable string.

    Solidity source::

        constructor(string memory message_) {
            owner = msg.sender;
            message = message_;
        }
        function set_message(string memory message_) public {
            require(msg.sender == owner);
            message = message_;
        }
        function get_message() public view returns (string memory) {
            return message;
        }
    """

    DEPLOY_GAS = 70_000
    GET_GAS = 22_000
    SET_GAS = 30_000

    GET_MESSAGE = function_selector("get_message()")
    SET_MESSAGE = function_selector("set_message(string)")

    owner: str
    message: str

    def __init__(self, context: CallContext, constructor_args: bytes):
        self.deploy_gas = context.charge(self.DEPLOY_GAS)
        self.owner = context.caller
        self.message = self._decode_string(constructor_args)

    @staticmethod
    def _decode_string(data: bytes) -> str:
        try:
            return decode(["string"], data)[0]
        except (DecodingError, ValueError) as e:
            raise ContractRevert(f"bad string argument: {e}") from e

    def call(self, context: CallContext, call_data: bytes) -> ContractFunctionResult:
        selector, args = call_data[:4], call_data[4:]
        if selector == self.GET_MESSAGE:
            gas_used = context.charge(self.GET_GAS)
            return ContractFunctionResult(encode(["string"], [self.message]), gas_used)
        if selector == self.SET_MESSAGE:
            gas_used = context.charge(self.SET_GAS)
            message = self._decode_string(args)
            if context.caller != self.owner:
                raise ContractRevert("caller is not the owner")
            if context.read_only:
                raise ContractRevert("state change in a read-only call")
            self.message = message
            return ContractFunctionResult(b"", gas_used)
        raise ContractRevert(f"unknown selector {selector.hex()}")


class Test(unittest.TestCase):
    def setUp(self):
        self.owner = CallContext("00" * 19 + "02", 300_000)
        args = ContractFunctionParameters().add_string("Hello from Hedera!").to_bytes()
        self.contract = MessageContract(self.owner, args)

    def get_message(self, context: CallContext) -> str:
        return self.contract.call(context, MessageContract.GET_MESSAGE).get_string(0)

    def test_read_after_write(self):
        self.assertEqual(self.get_message(self.owner), "Hello from Hedera!")
        set_call = MessageContract.SET_MESSAGE + (
            ContractFunctionParameters().add_string("Hello from Hedera again!").to_bytes()
        )
        self.contract.call(self.owner, set_call)
        self.assertEqual(self.get_message(self.owner), "Hello from Hedera again!")

    def test_only_owner_sets(self):
        stranger = CallContext("00" * 19 + "03", 100_000)
        set_call = MessageContract.SET_MESSAGE + (
            ContractFunctionParameters().add_string("mine now").to_bytes()
        )
        with self.assertRaises(ContractRevert):
            self.contract.call(stranger, set_call)
        self.assertEqual(self.get_message(stranger), "Hello from Hedera!")

    def test_read_only_call_keeps_state(self):
        view = CallContext(self.owner.caller, 100_000, read_only=True)
        set_call = MessageContract.SET_MESSAGE + (
            ContractFunctionParameters().add_string("nope").to_bytes()
        )
        with self.assertRaises(ContractRevert):
            self.contract.call(view, set_call)
        self.assertEqual(self.contract.message, "Hello from Hedera!")

    def test_gas(self):
        with self.assertRaises(OutOfGas):
            self.contract.call(CallContext(self.owner.caller, 1_000), MessageContract.GET_MESSAGE)
        with self.assertRaises(OutOfGas):
            MessageContract(CallContext(self.owner.caller, 10), b"")

    def test_unknown_selector(self):
        with self.assertRaises(ContractRevert):
            self.contract.call(self.owner, bytes.fromhex("deadbeef"))


if __name__ == "__main__":
    unittest.main()
