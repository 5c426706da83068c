# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Hedera workflows - token and smart contract demonstrations on Hedera.

Three ordered workflows run on behalf of one operator account:

- **NFT**: create a finite NFT collection, mint a batch of NFTs, associate a
  new account and transfer it serial 1.
- **Fungible token**: create a token with two decimals, associate a new
  account and transfer it 10 units.
- **Smart contract**: upload the HelloHedera bytecode, deploy it, read its
  message, update it and read it again.

Every step waits for its receipt and checks its status before the next step
starts. The first failure stops the run with ``WorkflowAborted``.

Module Organization:
    Workflow:
    - **workflow**: ``Step`` and the sequential ``WorkflowRunner``
    - **flows**: the three workflows and their result types
    - **session**: ``LedgerSession``, the ledger operations the flows use
    - **cli**: ``python -m hedera_workflows.cli {nft,fungible,contract}``

    Ledger model:
    - **transactions**: transaction bodies and the signed envelope
    - **receipt**: statuses, receipts and balances
    - **entity_id**, **hbar**: ids and amounts
    - **abi**: Solidity ABI arguments and results

    Backends:
    - **hiero_ledger**: testnet/previewnet/mainnet through ``hiero-sdk-python``
    - **mirror_client**: mirror node REST client for balances and records
    - **memory_ledger**, **runtimes**: a local in-memory ledger

    Cryptography:
    - **ed25519**, **secp256k1_ecdsa**, **asymmetric_crypto**, **keys**

Configuration:
    ``MY_ACCOUNT_ID`` and ``MY_PRIVATE_KEY`` are required, from the
    environment or a ``.env`` file. ``HEDERA_NETWORK`` selects the network.

Requirements:
    - Python 3.10 or higher
"""
