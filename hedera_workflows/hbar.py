# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Hbar amounts, stored as integer tinybars (1 hbar = 100,000,000 tinybars).
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass
from decimal import Decimal

TINYBARS_PER_HBAR = 100_000_000


@dataclass(frozen=True, order=True)
class Hbar:
    tinybars: int

    @staticmethod
    def from_hbar(amount: int | str | Decimal) -> Hbar:
        tinybars = Decimal(amount) * TINYBARS_PER_HBAR
        if tinybars != tinybars.to_integral_value():
            raise ValueError(f"{amount} hbar is not a whole number of tinybars")
        return Hbar(int(tinybars))

    @staticmethod
    def from_tinybars(amount: int) -> Hbar:
        return Hbar(amount)

    def to_hbar(self) -> Decimal:
        return Decimal(self.tinybars) / TINYBARS_PER_HBAR

    def __str__(self) -> str:
        return f"{self.to_hbar().normalize():f} ℏ"

    def __add__(self, other: Hbar) -> Hbar:
        return Hbar(self.tinybars + other.tinybars)

    def __sub__(self, other: Hbar) -> Hbar:
        return Hbar(self.tinybars - other.tinybars)


ZERO = Hbar(0)


class Test(unittest.TestCase):
    def test_conversion(self):
        self.assertEqual(Hbar.from_hbar(100).tinybars, 10_000_000_000)
        self.assertEqual(Hbar.from_hbar("0.5"), Hbar(50_000_000))
        self.assertEqual(Hbar.from_tinybars(100).to_hbar(), Decimal("0.000001"))

    def test_str(self):
        self.assertEqual(str(Hbar.from_hbar(2)), "2 ℏ")
        self.assertEqual(str(Hbar(100)), "0.000001 ℏ")

    def test_fractional_tinybar(self):
        with self.assertRaises(ValueError):
            Hbar.from_hbar("0.000000001")

    def test_ordering(self):
        self.assertLess(Hbar(1), Hbar.from_hbar(1))
        self.assertEqual(Hbar(3) - Hbar(1) + Hbar(2), Hbar(4))


if __name__ == "__main__":
    unittest.main()
