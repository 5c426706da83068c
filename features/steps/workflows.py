# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import given, then, use_step_matcher, when

from hedera_workflows import ed25519
from hedera_workflows.config import OperatorConfig
from hedera_workflows.entity_id import AccountId
from hedera_workflows.errors import PrecheckError, ReceiptStatusError, WorkflowAborted
from hedera_workflows.flows import run_contract_flow, run_fungible_flow, run_nft_flow
from hedera_workflows.hbar import Hbar
from hedera_workflows.memory_ledger import InMemoryLedger
from hedera_workflows.runtimes import MessageContract
from hedera_workflows.session import LedgerSession

# Use regular expressions
use_step_matcher("re")

HELLO_HEDERA_BYTECODE = "608060405234801561001057600080fd5b50"


def run(context: typing.Any, coroutine: typing.Awaitable[typing.Any]):
    """Run a flow, keeping a workflow failure for the Then steps."""
    try:
        context.result = context.loop.run_until_complete(coroutine)
    except WorkflowAborted as e:
        context.error = e


@given(r"an operator account holding (?P<hbar>\d+) hbar on the in-memory ledger")
def given_operator(context: typing.Any, hbar: str):
    key = ed25519.PrivateKey.random()
    context.operator = OperatorConfig(AccountId.from_num(2), key)
    context.ledger = InMemoryLedger()
    context.ledger.add_account(
        context.operator.account_id, key.public_key(), Hbar.from_hbar(int(hbar))
    )
    context.session = LedgerSession(context.ledger, context.operator)


@given(r"the HelloHedera bytecode runs as the message contract")
def given_message_contract(context: typing.Any):
    context.ledger.register_runtime(bytes.fromhex(HELLO_HEDERA_BYTECODE), MessageContract)


@when(r"the (?P<flow>nft|fungible|contract) workflow runs")
def when_flow_runs(context: typing.Any, flow: str):
    if flow == "nft":
        run(context, run_nft_flow(context.session))
    elif flow == "fungible":
        run(context, run_fungible_flow(context.session))
    else:
        run(context, run_contract_flow(context.session, HELLO_HEDERA_BYTECODE))


@when(r"the fungible workflow runs with a transfer of (?P<amount>\d+) units")
def when_fungible_transfer(context: typing.Any, amount: str):
    run(context, run_fungible_flow(context.session, amount=int(amount)))


@then(r"(?P<count>\d+) serial numbers are minted, none above (?P<max_supply>\d+)")
def then_serials(context: typing.Any, count: str, max_supply: str):
    serials = context.result.serial_numbers
    assert len(serials) == int(count), f"minted {serials}"
    assert all(serial <= int(max_supply) for serial in serials), f"minted {serials}"


@then(
    r"before the transfer the treasury held (?P<treasury>\d+) and the new account held (?P<recipient>\d+)"
)
def then_balances_before(context: typing.Any, treasury: str, recipient: str):
    token_id = context.result.token_id
    held = [b.balance_of(token_id) for b in context.result.balances_before]
    assert held == [int(treasury), int(recipient)], f"balances before: {held}"


@then(
    r"the treasury holds (?P<treasury>\d+) and the new account holds (?P<recipient>\d+) of the token"
)
def then_balances_after(context: typing.Any, treasury: str, recipient: str):
    token_id = context.result.token_id
    held = [b.balance_of(token_id) for b in context.result.balances_after]
    assert held == [int(treasury), int(recipient)], f"balances after: {held}"
    assert sum(held) == context.ledger.total_supply(token_id)


@then(r'the workflow stops at step "(?P<step>[^"]+)" with status (?P<status>[A-Z_]+)')
def then_workflow_stops(context: typing.Any, step: str, status: str):
    error = context.error
    assert error is not None, "the workflow completed"
    assert error.step == step, f"stopped at {error.step}"
    cause = error.__cause__
    assert isinstance(cause, (PrecheckError, ReceiptStatusError)), repr(cause)
    assert cause.status.name == status, f"status {cause.status.name}"


@then(r'the contract message was "(?P<before>[^"]*)" and then "(?P<after>[^"]*)"')
def then_contract_messages(context: typing.Any, before: str, after: str):
    assert context.error is None, str(context.error)
    assert context.result.message == before, context.result.message
    assert context.result.updated_message == after, context.result.updated_message
