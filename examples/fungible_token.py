# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Fungible Token Example - create a token and transfer some of it.

Creates "USD Bar" (USDB) with two decimals and an initial supply of 10000
units (100.00 USDB) held by the operator as treasury, associates a new
account with it and transfers 10 units (0.10 USDB) to that account.

Examples:
    Run on testnet::

        python -m examples.fungible_token

    Expected output::

        === Accounts ===
        Treasury: 0.0.1234
        New account: 0.0.5678

        === Token ===
        Created token with Token ID: 0.0.5679

        === Balances before transfer ===
        Treasury: 10000
        New account: 0

        === Balances after transfer ===
        Treasury: 9990
        New account: 10
"""

import asyncio

from hedera_workflows.flows import (
    FUNGIBLE_DECIMALS,
    FUNGIBLE_INITIAL_SUPPLY,
    FUNGIBLE_NAME,
    FUNGIBLE_SYMBOL,
    FUNGIBLE_TRANSFER_AMOUNT,
    NEW_ACCOUNT_BALANCE,
)
from hedera_workflows.transactions import TokenCreate

from .common import connect


async def main():
    session = connect()

    new_key = session.generate_key()
    new_account = await session.create_account(new_key.public_key(), NEW_ACCOUNT_BALANCE)
    supply_key = session.generate_key()

    print("\n=== Accounts ===")
    print(f"Treasury: {session.operator_id}")
    print(f"New account: {new_account}")

    # :!:>section_1
    token_id = await session.create_token(
        TokenCreate(
            FUNGIBLE_NAME,
            FUNGIBLE_SYMBOL,
            session.operator_id,
            decimals=FUNGIBLE_DECIMALS,
            initial_supply=FUNGIBLE_INITIAL_SUPPLY,
            supply_key=supply_key.public_key(),
        )
    )  # <:!:section_1

    print("\n=== Token ===")
    print(f"Created token with Token ID: {token_id}")

    await session.associate(new_account, token_id, new_key)

    print("\n=== Balances before transfer ===")
    treasury, recipient = await session.query_balances(session.operator_id, new_account)
    print(f"Treasury: {treasury.balance_of(token_id)}")
    print(f"New account: {recipient.balance_of(token_id)}")

    # :!:>section_2
    await session.transfer_token(
        token_id, session.operator_id, new_account, FUNGIBLE_TRANSFER_AMOUNT
    )  # <:!:section_2

    print("\n=== Balances after transfer ===")
    treasury, recipient = await session.query_balances(session.operator_id, new_account)
    print(f"Treasury: {treasury.balance_of(token_id)}")
    print(f"New account: {recipient.balance_of(token_id)}")

    await session.close()


if __name__ == "__main__":
    asyncio.run(main())
