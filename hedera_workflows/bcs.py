# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS) writer used for transaction bodies.

Signatures in this package are computed over the canonical bytes of a
transaction body. BCS gives every body exactly one byte representation:
integers are little endian and fixed width, lengths are ULEB128 prefixed,
and optional values carry a one byte tag. The ledger backends re-derive the
same bytes when checking signatures, so the encoding must stay stable.

Only the writer half is needed here; nothing in the workflows decodes BCS.

Examples:
    Encoding a transfer body by hand::

        ser = Serializer()
        ser.struct(token_id)
        ser.struct(account_id)
        ser.i64(-10)
        body = ser.output()

    Encoding a list with a per-item encoder::

        ser.sequence([b"ipfs://a", b"ipfs://b"], Serializer.to_bytes)
"""

from __future__ import annotations

import io
import typing
import unittest

from typing_extensions import Protocol

MAX_U8 = 2**8 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MIN_I64 = -(2**63)
MAX_I64 = 2**63 - 1


class Serializable(Protocol):
    """Anything that can write itself into a Serializer."""

    def to_bytes(self) -> bytes:
        ser = Serializer()
        self.serialize(ser)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Serializer:
    """A BCS serializer writing into an in-memory buffer."""

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def to_bytes(self, value: bytes):
        """Write a length prefixed byte string."""
        self.uleb128(len(value))
        self._output.write(value)

    def fixed_bytes(self, value: bytes):
        self._output.write(value)

    def option(
        self,
        value: typing.Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a one byte presence tag followed by the value, if any."""
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            value_encoder(self, value)

    def sequence(
        self,
        values: typing.Sequence[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.uleb128(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        self.to_bytes(value.encode())

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        if value < 0 or value > MAX_U8:
            raise Exception(f"Cannot encode {value} into u8")
        self._write_int(value, 1)

    def u32(self, value: int):
        if value < 0 or value > MAX_U32:
            raise Exception(f"Cannot encode {value} into u32")
        self._write_int(value, 4)

    def u64(self, value: int):
        if value < 0 or value > MAX_U64:
            raise Exception(f"Cannot encode {value} into u64")
        self._write_int(value, 8)

    def i64(self, value: int):
        """Write a signed 64 bit integer in two's complement.

        Transfer adjustments are signed: the sender side is negative.
        """
        if value < MIN_I64 or value > MAX_I64:
            raise Exception(f"Cannot encode {value} into i64")
        self._output.write(value.to_bytes(8, "little", signed=True))

    def uleb128(self, value: int):
        if value > MAX_U32:
            raise Exception(f"Cannot encode {value} into uleb128")
        while value >= 0x80:
            # Write 7 (lowest) bits of data and set the 8th bit to 1.
            byte = value & 0x7F
            self.u8(byte | 0x80)
            value >>= 7
        # Write the remaining bits of data and set the highest bit to 0.
        self.u8(value & 0x7F)

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_u64(self):
        ser = Serializer()
        ser.u64(1)
        self.assertEqual(ser.output(), b"\x01" + b"\x00" * 7)

    def test_i64_negative(self):
        ser = Serializer()
        ser.i64(-10)
        self.assertEqual(ser.output(), (-10).to_bytes(8, "little", signed=True))

    def test_i64_out_of_range(self):
        with self.assertRaises(Exception):
            Serializer().i64(2**63)

    def test_uleb128(self):
        ser = Serializer()
        ser.uleb128(300)
        self.assertEqual(ser.output(), b"\xac\x02")

    def test_str_is_length_prefixed(self):
        ser = Serializer()
        ser.str("HTT")
        self.assertEqual(ser.output(), b"\x03HTT")

    def test_option(self):
        ser = Serializer()
        ser.option(None, Serializer.u8)
        ser.option(7, Serializer.u8)
        self.assertEqual(ser.output(), b"\x00\x01\x07")

    def test_sequence(self):
        ser = Serializer()
        ser.sequence([b"a", b"bc"], Serializer.to_bytes)
        self.assertEqual(ser.output(), b"\x02\x01a\x02bc")


if __name__ == "__main__":
    unittest.main()
