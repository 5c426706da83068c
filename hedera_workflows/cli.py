# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line entry point for the three workflows.

Examples:
    Create an NFT collection on testnet with credentials from ``.env``::

        python -m hedera_workflows.cli nft

    Deploy the HelloHedera contract::

        python -m hedera_workflows.cli contract --artifact HelloHedera.json

    Try a flow without a network, against the in-memory ledger::

        python -m hedera_workflows.cli fungible --network local --verbose

Exit status is 0 when every step succeeded, 1 when a step failed and 2 for
usage or configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import unittest
import unittest.mock
from typing import List, Optional

from .config import MIRROR_URLS, WorkflowConfig
from .errors import ConfigurationError, WorkflowAborted
from .flows import (
    ContractFlowResult,
    FungibleFlowResult,
    NftFlowResult,
    load_bytecode,
    run_contract_flow,
    run_fungible_flow,
    run_nft_flow,
)
from .hbar import Hbar
from .ledger import LedgerClient
from .runtimes import MessageContract
from .session import LedgerSession

# Starting balance of the operator on the in-memory ledger.
LOCAL_OPERATOR_BALANCE = Hbar.from_hbar(10_000)


def local_ledger(config: WorkflowConfig, bytecode: Optional[str] = None) -> LedgerClient:
    """An in-memory ledger holding the operator account, and able to run the
    message contract when given its bytecode."""
    from .memory_ledger import InMemoryLedger

    ledger = InMemoryLedger()
    ledger.add_account(
        config.operator.account_id,
        config.operator.private_key.public_key(),
        LOCAL_OPERATOR_BALANCE,
    )
    if bytecode:
        code = bytecode[2:] if bytecode.startswith("0x") else bytecode
        ledger.register_runtime(bytes.fromhex(code), MessageContract)
    return ledger


def network_ledger(config: WorkflowConfig) -> LedgerClient:
    from .hiero_ledger import HieroLedger

    return HieroLedger.for_network(config)


def print_nft_result(result: NftFlowResult):
    print(f"- The new account ID is: {result.account.account_id}")
    print(f"- Created NFT with Token ID: {result.token_id}")
    print(f"- Minted serials: {', '.join(str(s) for s in result.serial_numbers)}")
    print(f"- NFT transferred: {result.transferred}")
    _print_balances(result.token_id, result.balances_before, result.balances_after)


def print_fungible_result(result: FungibleFlowResult):
    print(f"- The new account ID is: {result.account.account_id}")
    print(f"- Created token with Token ID: {result.token_id}")
    _print_balances(result.token_id, result.balances_before, result.balances_after)


def print_contract_result(result: ContractFlowResult):
    print(f"- The smart contract ID is: {result.contract_id}")
    print(f"- The contract message: {result.message}")
    print(f"- The contract message after the update: {result.updated_message}")


def _print_balances(token_id, before, after):
    for label, (treasury, recipient) in (("before", before), ("after", after)):
        print(f"\n=== Balances {label} transfer ===")
        print(f"Treasury {treasury.account_id}: {treasury.balance_of(token_id)} units of {token_id}")
        print(f"Account {recipient.account_id}: {recipient.balance_of(token_id)} units of {token_id}")


async def run(command: str, session: LedgerSession, bytecode: Optional[str]):
    if command == "nft":
        print_nft_result(await run_nft_flow(session))
    elif command == "fungible":
        print_fungible_result(await run_fungible_flow(session))
    else:
        assert bytecode is not None
        print_contract_result(await run_contract_flow(session, bytecode))


async def main(args: List[str]):
    parser = argparse.ArgumentParser(description="Hedera token and contract workflows")
    parser.add_argument(
        "command",
        type=str,
        help="The workflow to run",
        choices=["nft", "fungible", "contract"],
    )
    parser.add_argument(
        "--network",
        help="Network to run against; overrides HEDERA_NETWORK",
        choices=sorted(MIRROR_URLS),
    )
    parser.add_argument(
        "--artifact",
        help="Compiled contract artifact (JSON) holding the bytecode to deploy",
        type=str,
    )
    parser.add_argument(
        "--verbose", help="Log every step and transaction", action="store_true"
    )
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if parsed_args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    bytecode = None
    if parsed_args.command == "contract":
        if parsed_args.artifact is None:
            parser.error("Missing required argument '--artifact'")
        try:
            bytecode = load_bytecode(parsed_args.artifact)
        except FileNotFoundError:
            parser.error(f"Artifact file not found: {parsed_args.artifact}")
        except ValueError as e:
            parser.error(f"Failed to load artifact: {e}")

    try:
        config = WorkflowConfig.from_env(network=parsed_args.network)
        if config.network == "local":
            ledger = local_ledger(config, bytecode)
        else:
            ledger = network_ledger(config)
    except ConfigurationError as e:
        parser.error(str(e))

    session = LedgerSession(
        ledger, config.operator, config.max_transaction_fee, config.max_query_payment
    )
    try:
        await run(parsed_args.command, session, bytecode)
    except WorkflowAborted as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await session.close()


def console_main():
    asyncio.run(main(sys.argv[1:]))


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        import io

        from . import ed25519

        self.environ = {
            "MY_ACCOUNT_ID": "0.0.2",
            "MY_PRIVATE_KEY": ed25519.PrivateKey.random().der(),
        }
        for patcher in (
            unittest.mock.patch.dict("os.environ", self.environ, clear=True),
            unittest.mock.patch("hedera_workflows.config.load_dotenv"),
            unittest.mock.patch("logging.basicConfig"),
            unittest.mock.patch("sys.stdout", new_callable=io.StringIO),
            unittest.mock.patch("sys.stderr", new_callable=io.StringIO),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)

    def output(self) -> str:
        return sys.stdout.getvalue()  # type: ignore[attr-defined]

    async def test_fungible_local(self):
        await main(["fungible", "--network", "local"])
        output = self.output()
        self.assertIn("Created token with Token ID: 0.0.", output)
        self.assertIn("9990 units", output)

    async def test_nft_local(self):
        await main(["nft", "--network", "local"])
        output = self.output()
        self.assertIn("Minted serials: 1, 2, 3, 4, 5", output)
        self.assertIn("4 units", output)

    async def test_contract_local(self):
        import json
        import os
        import tempfile

        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as f:
            json.dump({"bytecode": "0x6080604052"}, f)
        self.addCleanup(os.remove, f.name)

        await main(["contract", "--network", "local", "--artifact", f.name])
        self.assertIn(
            "The contract message after the update: Hello from Hedera again!", self.output()
        )

    async def test_verbose_logging_level(self):
        for flags, level in (([], logging.WARNING), (["--verbose"], logging.INFO)):
            logging.basicConfig.reset_mock()  # type: ignore[attr-defined]
            await main(["fungible", "--network", "local"] + flags)
            self.assertEqual(
                logging.basicConfig.call_args.kwargs["level"], level  # type: ignore[attr-defined]
            )

    async def test_contract_needs_artifact(self):
        with self.assertRaises(SystemExit) as cm:
            await main(["contract", "--network", "local"])
        self.assertEqual(cm.exception.code, 2)

    async def test_missing_credentials(self):
        with unittest.mock.patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(SystemExit) as cm:
                await main(["nft", "--network", "local"])
        self.assertEqual(cm.exception.code, 2)
        self.assertIn("MY_ACCOUNT_ID", sys.stderr.getvalue())  # type: ignore[attr-defined]

    async def test_failed_step_exits_non_zero(self):
        with unittest.mock.patch(
            f"{__name__}.LOCAL_OPERATOR_BALANCE", Hbar.from_hbar("0.5")
        ):
            with self.assertLogs(level="ERROR"):
                with self.assertRaises(SystemExit) as cm:
                    await main(["nft", "--network", "local"])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("step 'create token' failed", sys.stderr.getvalue())  # type: ignore[attr-defined]


if __name__ == "__main__":
    console_main()
