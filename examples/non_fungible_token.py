# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
NFT Example - create an NFT collection, mint it and transfer one NFT.

Workflow:
    1. **Account**: create a new ED25519 account funded with 100 tinybars
    2. **Collection**: create "Hedera Token Test" (HTT), a finite collection
       of at most 250 NFTs, with the operator as treasury and a freshly
       generated supply key
    3. **Mint**: mint five NFTs whose metadata points at IPFS documents,
       signed by the supply key
    4. **Associate**: let the new account hold HTT, signed by its own key
    5. **Transfer**: move serial 1 from the treasury to the new account

Balances of both accounts are printed before and after the transfer.

Examples:
    Run on testnet::

        python -m examples.non_fungible_token

    Expected output::

        === Accounts ===
        Treasury: 0.0.1234
        New account: 0.0.5678

        === Collection ===
        Created NFT with Token ID: 0.0.5679
        Minted serials: 1, 2, 3, 4, 5

        === Balances before transfer ===
        Treasury: 5 NFTs
        New account: 0 NFTs

        === Balances after transfer ===
        Treasury: 4 NFTs
        New account: 1 NFTs
"""

import asyncio

from hedera_workflows.entity_id import NftId
from hedera_workflows.flows import (
    NEW_ACCOUNT_BALANCE,
    NFT_MAX_SUPPLY,
    NFT_METADATA,
    NFT_MINT_MAX_FEE,
    NFT_NAME,
    NFT_SYMBOL,
)
from hedera_workflows.transactions import SupplyType, TokenCreate, TokenType

from .common import connect


async def main():
    session = connect()

    # :!:>section_1
    new_key = session.generate_key()
    new_account = await session.create_account(new_key.public_key(), NEW_ACCOUNT_BALANCE)
    supply_key = session.generate_key()  # <:!:section_1

    print("\n=== Accounts ===")
    print(f"Treasury: {session.operator_id}")
    print(f"New account: {new_account}")

    # :!:>section_2
    token_id = await session.create_token(
        TokenCreate(
            NFT_NAME,
            NFT_SYMBOL,
            session.operator_id,
            token_type=TokenType.NON_FUNGIBLE_UNIQUE,
            supply_type=SupplyType.FINITE,
            max_supply=NFT_MAX_SUPPLY,
            supply_key=supply_key.public_key(),
        )
    )
    serials = await session.mint(
        token_id, NFT_METADATA, supply_key, max_transaction_fee=NFT_MINT_MAX_FEE
    )  # <:!:section_2

    print("\n=== Collection ===")
    print(f"Created NFT with Token ID: {token_id}")
    print(f"Minted serials: {', '.join(str(serial) for serial in serials)}")

    # :!:>section_3
    await session.associate(new_account, token_id, new_key)  # <:!:section_3

    print("\n=== Balances before transfer ===")
    treasury, recipient = await session.query_balances(session.operator_id, new_account)
    print(f"Treasury: {treasury.balance_of(token_id)} NFTs")
    print(f"New account: {recipient.balance_of(token_id)} NFTs")

    # :!:>section_4
    await session.transfer_nft(
        NftId(token_id, serials[0]), session.operator_id, new_account
    )  # <:!:section_4

    print("\n=== Balances after transfer ===")
    treasury, recipient = await session.query_balances(session.operator_id, new_account)
    print(f"Treasury: {treasury.balance_of(token_id)} NFTs")
    print(f"New account: {recipient.balance_of(token_id)} NFTs")

    await session.close()


if __name__ == "__main__":
    asyncio.run(main())
