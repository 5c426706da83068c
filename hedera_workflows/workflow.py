# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A strictly sequential runner for ordered ledger steps.

Each ``Step`` is a name plus an async action. The action receives a
read-only view of the results of every step before it, so a step can only
reference an entity id once the step that created it has returned. The
first exception stops the run; the remaining steps never start and the
failure is re-raised as ``WorkflowAborted`` naming the failed step and the
steps that already committed. Committed steps are not rolled back.
"""

from __future__ import annotations

import logging
import types
import typing
import unittest
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Sequence

from .errors import WorkflowAborted

StepAction = Callable[[Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Step:
    name: str
    action: StepAction


@dataclass
class WorkflowResult:
    results: Dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> List[str]:
        return list(self.results)

    def __getitem__(self, name: str) -> Any:
        return self.results[name]


class WorkflowRunner:
    name: str

    def __init__(self, name: str = "workflow"):
        self.name = name

    async def run(self, steps: Sequence[Step]) -> WorkflowResult:
        """
        Run ``steps`` in order.

        :raises ValueError: If two steps share a name.
        :raises WorkflowAborted: On the first step that raises.
        """
        names = [step.name for step in steps]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")

        result = WorkflowResult()
        for index, step in enumerate(steps, start=1):
            logging.info(f"{self.name} [{index}/{len(steps)}] {step.name}")
            try:
                value = await step.action(types.MappingProxyType(result.results))
            except Exception as e:
                logging.error(f"{self.name} stopped at {step.name}", exc_info=True)
                raise WorkflowAborted(step.name, result.completed, e) from e
            result.results[step.name] = value
        logging.info(f"{self.name} finished {len(steps)} steps")
        return result


class Test(unittest.IsolatedAsyncioTestCase):
    async def test_runs_in_order_with_earlier_results(self):
        seen: List[str] = []

        async def first(results):
            seen.append("first")
            return 1

        async def second(results):
            seen.append("second")
            return results["first"] + 1

        result = await WorkflowRunner().run([Step("first", first), Step("second", second)])
        self.assertEqual(seen, ["first", "second"])
        self.assertEqual(result["second"], 2)
        self.assertEqual(result.completed, ["first", "second"])

    async def test_first_failure_halts(self):
        calls: List[str] = []

        async def ok(results):
            calls.append("ok")

        async def boom(results):
            raise RuntimeError("boom")

        async def never(results):
            calls.append("never")

        steps = [Step("ok", ok), Step("boom", boom), Step("never", never)]
        with self.assertLogs(level=logging.ERROR):
            with self.assertRaises(WorkflowAborted) as cm:
                await WorkflowRunner().run(steps)
        self.assertEqual(cm.exception.step, "boom")
        self.assertEqual(cm.exception.completed, ["ok"])
        self.assertIsInstance(cm.exception.__cause__, RuntimeError)
        self.assertEqual(calls, ["ok"])

    async def test_results_are_read_only(self):
        async def tamper(results):
            typing.cast(Dict[str, Any], results)["other"] = 1

        with self.assertLogs(level=logging.ERROR):
            with self.assertRaises(WorkflowAborted) as cm:
                await WorkflowRunner().run([Step("tamper", tamper)])
        self.assertIsInstance(cm.exception.__cause__, TypeError)

    async def test_duplicate_names(self):
        async def noop(results):
            return None

        with self.assertRaises(ValueError):
            await WorkflowRunner().run([Step("a", noop), Step("a", noop)])


if __name__ == "__main__":
    unittest.main()
