# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Smart Contract Example - deploy HelloHedera, read and update its message.

The contract (``contracts/HelloHedera.sol``) stores a message set by its
constructor. Only the deploying account may change it.

Workflow:
    1. **Upload**: store the hex bytecode in a Hedera file
    2. **Deploy**: create the contract from the file with the constructor
       argument "Hello from Hedera!"
    3. **Read**: query ``get_message`` (a paid, read-only call)
    4. **Update**: execute ``set_message("Hello from Hedera again!")``
    5. **Read again**: query ``get_message`` once more

Examples:
    Compile the contract, then run::

        solc --combined-json bin contracts/HelloHedera.sol > HelloHedera.json
        python -m examples.hello_hedera ./HelloHedera.json

    The artifact may also be the Remix shape ``{"data": {"bytecode": {"object":
    ...}}}`` or any JSON with a top-level ``bytecode``.
"""

import asyncio
import sys

from hedera_workflows.abi import ContractFunctionParameters
from hedera_workflows.flows import (
    CONTRACT_CREATE_GAS,
    CONTRACT_MESSAGE,
    CONTRACT_NEW_MESSAGE,
    CONTRACT_QUERY_PAYMENT,
    load_bytecode,
)

from .common import HELLO_HEDERA_ARTIFACT, connect


async def main(artifact_path: str):
    bytecode = load_bytecode(artifact_path)
    session = connect(bytecode)

    # :!:>section_1
    file_id = await session.upload_bytecode(bytecode)
    print(f"The smart contract byte code file ID is {file_id}")
    contract_id = await session.create_contract(
        file_id,
        ContractFunctionParameters().add_string(CONTRACT_MESSAGE),
        CONTRACT_CREATE_GAS,
    )
    print(f"The smart contract ID is {contract_id}")  # <:!:section_1

    # :!:>section_2
    result = await session.call_contract(
        contract_id,
        "get_message",
        gas=CONTRACT_CREATE_GAS,
        query_payment=CONTRACT_QUERY_PAYMENT,
    )
    print(f"The contract message: {result.get_string(0)}")  # <:!:section_2

    # :!:>section_3
    receipt = await session.execute_contract(
        contract_id,
        "set_message",
        ContractFunctionParameters().add_string(CONTRACT_NEW_MESSAGE),
    )
    print(f"The transaction status is {receipt.status.name}")  # <:!:section_3

    result = await session.call_contract(
        contract_id, "get_message", query_payment=CONTRACT_QUERY_PAYMENT
    )
    print(f"The updated contract message: {result.get_string(0)}")

    await session.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else HELLO_HEDERA_ARTIFACT))
