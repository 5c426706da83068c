# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Exceptions raised by the ledger clients, the session and the workflow runner.

* ``ConfigurationError``: credentials are missing or malformed. Raised
  before any network call is made.
* ``ApiError``: a transport or HTTP failure talking to a node or mirror.
* ``PrecheckError``: the ledger refused a transaction or query before it
  reached consensus, e.g. the query payment did not cover the cost.
* ``ReceiptStatusError``: consensus was reached but the receipt reports a
  status other than ``SUCCESS``.
* ``WorkflowAborted``: the first failure of a workflow run, naming the step
  that failed and the steps that already committed.
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .receipt import Status, TransactionReceipt


class ConfigurationError(Exception):
    """Required configuration is missing or can not be parsed."""


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class PrecheckError(Exception):
    """The ledger rejected the request before consensus."""

    status: Status

    def __init__(self, message: str, status: Status):
        super().__init__(f"{message}: {status.name}")
        self.status = status


class ReceiptStatusError(Exception):
    """A transaction reached consensus with a failure status."""

    receipt: TransactionReceipt

    def __init__(self, message: str, receipt: TransactionReceipt):
        super().__init__(f"{message}: {receipt.status.name}")
        self.receipt = receipt

    @property
    def status(self) -> Status:
        return self.receipt.status


class WorkflowAborted(Exception):
    """A workflow stopped at ``step``; ``completed`` lists committed steps."""

    step: str
    completed: typing.List[str]

    def __init__(self, step: str, completed: typing.List[str], cause: BaseException):
        super().__init__(f"step '{step}' failed: {cause}")
        self.step = step
        self.completed = completed
        self.__cause__ = cause
