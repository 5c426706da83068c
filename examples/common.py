# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Common configuration and utilities for the Hedera workflow examples.

Environment Variables:
    MY_ACCOUNT_ID: Operator account id (required)
    MY_PRIVATE_KEY: Operator private key (required)
    HEDERA_NETWORK: testnet (default), previewnet, mainnet or local
    HELLO_HEDERA_ARTIFACT: Compiled HelloHedera contract artifact

Values may also come from a ``.env`` file in the working directory.
"""

import os
import os.path
from typing import Optional

from hedera_workflows.cli import local_ledger, network_ledger
from hedera_workflows.config import WorkflowConfig
from hedera_workflows.session import LedgerSession

NETWORK = os.getenv("HEDERA_NETWORK", "testnet")

# Compiled with solc or Remix from contracts/HelloHedera.sol
HELLO_HEDERA_ARTIFACT = os.getenv(
    "HELLO_HEDERA_ARTIFACT",
    os.path.abspath("./HelloHedera.json"),
)


def connect(bytecode: Optional[str] = None) -> LedgerSession:
    """A session for the configured operator and network."""
    config = WorkflowConfig.from_env(network=NETWORK)
    if config.network == "local":
        ledger = local_ledger(config, bytecode)
    else:
        ledger = network_ledger(config)
    return LedgerSession(
        ledger, config.operator, config.max_transaction_fee, config.max_query_payment
    )
