# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import asyncio
import typing


def before_scenario(context: typing.Any, scenario: typing.Any):
    context.loop = asyncio.new_event_loop()
    context.error = None


def after_scenario(context: typing.Any, scenario: typing.Any):
    context.loop.close()
