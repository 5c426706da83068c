# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous client for the Hedera mirror node REST API.

Consensus nodes answer receipts and contract queries, but token balances are
served by mirror nodes, which ingest the record stream a few seconds behind
consensus. ``MirrorNodeClient`` covers the reads the workflows need:

- **Balances**: hbar balance and per-token balances of an account, following
  the mirror node's pagination links.
- **Transactions**: look up a transaction record by id, and wait until a
  freshly submitted transaction has been ingested.

Public mirror nodes:
    - Testnet: https://testnet.mirrornode.hedera.com/api/v1
    - Previewnet: https://previewnet.mirrornode.hedera.com/api/v1
    - Mainnet: https://mainnet-public.mirrornode.hedera.com/api/v1

Examples:
    Query the balances of an account::

        client = MirrorNodeClient("https://testnet.mirrornode.hedera.com/api/v1")
        balance = await client.account_balance(AccountId.from_str("0.0.1234"))
        print(balance.hbars, balance.balance_of(token_id))
        await client.close()

    Read after write::

        await client.wait_for_transaction(receipt.transaction_id)
        balance = await client.account_balance(recipient)

Error Handling:
    Every non-success HTTP status raises ``ApiError`` carrying the status
    code, except the 404 that ``transaction_pending`` reads as "not ingested
    yet".
"""

from __future__ import annotations

import asyncio
import typing
import unittest
import unittest.mock
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .entity_id import AccountId, TokenId
from .errors import ApiError
from .hbar import Hbar
from .metadata import Metadata
from .receipt import AccountBalance

if typing.TYPE_CHECKING:
    from .transactions import TransactionId


@dataclass
class ClientConfig:
    """Common configuration for clients, particularly for submitting transactions"""

    transaction_wait_in_seconds: int = 20
    page_limit: int = 100
    http2: bool = True
    api_key: Optional[str] = None


class MirrorNodeClient:
    """A thin async wrapper over the mirror node ``/api/v1`` endpoints."""

    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(
        self,
        base_url: str,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        # Default limits
        limits = httpx.Limits()
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        # Default headers
        headers = {Metadata.CLIENT_HEADER: Metadata.get_client_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def close(self):
        await self.client.aclose()

    #
    # Account accessors
    #

    async def account(self, account_id: AccountId) -> Dict[str, Any]:
        response = await self._get(endpoint=f"accounts/{account_id}")
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_id}", response.status_code)
        return response.json()

    async def account_tokens(self, account_id: AccountId) -> Dict[TokenId, int]:
        """
        Every token ``account_id`` is associated with and the units it holds,
        following ``links.next`` until the last page.

        :raises ApiError: If any page request fails.
        """
        tokens: Dict[TokenId, int] = {}
        url: Optional[str] = f"{self.base_url}/accounts/{account_id}/tokens"
        params: Optional[Dict[str, Any]] = {"limit": self.client_config.page_limit}
        while url:
            response = await self.client.get(url=url, params=params)
            if response.status_code >= 400:
                raise ApiError(f"{response.text} - {account_id}", response.status_code)
            page = response.json()
            for token in page.get("tokens", []):
                tokens[TokenId.from_str(token["token_id"])] = int(token["balance"])
            next_link = (page.get("links") or {}).get("next")
            # The next link carries its own query string.
            url = str(httpx.URL(self.base_url).join(next_link)) if next_link else None
            params = None
        return tokens

    async def account_balance(self, account_id: AccountId) -> AccountBalance:
        info = await self.account(account_id)
        hbars = Hbar(int(info["balance"]["balance"]))
        tokens = await self.account_tokens(account_id)
        return AccountBalance(account_id, hbars, tokens)

    #
    # Transactions
    #

    async def transaction(self, transaction_id: str | TransactionId) -> Dict[str, Any]:
        """The record of a transaction, as ingested by the mirror node."""
        response = await self._get(endpoint=f"transactions/{_mirror_id(transaction_id)}")
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {transaction_id}", response.status_code)
        return response.json()["transactions"][0]

    async def transaction_pending(self, transaction_id: str | TransactionId) -> bool:
        response = await self._get(endpoint=f"transactions/{_mirror_id(transaction_id)}")
        if response.status_code == 404:
            return True
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return not response.json().get("transactions")

    async def wait_for_transaction(
        self, transaction_id: str | TransactionId
    ) -> Dict[str, Any]:
        """
        Waits up to the duration specified in client_config for a transaction to reach the
        mirror node, then returns its record.
        """

        count = 0
        while await self.transaction_pending(transaction_id):
            assert (
                count < self.client_config.transaction_wait_in_seconds
            ), f"transaction {transaction_id} timed out"
            await asyncio.sleep(1)
            count += 1
        return await self.transaction(transaction_id)

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


def _mirror_id(transaction_id: str | TransactionId) -> str:
    if isinstance(transaction_id, str):
        if "@" not in transaction_id:
            return transaction_id
        account, _, start = transaction_id.partition("@")
        return f"{account}-{start.replace('.', '-')}"
    return transaction_id.to_mirror_str()


class Test(unittest.IsolatedAsyncioTestCase):
    BASE_URL = "https://testnet.mirrornode.hedera.com/api/v1"

    def client(self, handler) -> MirrorNodeClient:
        return MirrorNodeClient(
            self.BASE_URL,
            ClientConfig(transaction_wait_in_seconds=2, http2=False),
            transport=httpx.MockTransport(handler),
        )

    def setUp(self):
        # The header needs the installed package version.
        patcher = unittest.mock.patch.object(
            Metadata, "get_client_header_val", return_value="hedera-workflows/test"
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_account_balance_follows_pagination(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request.url)
            path = request.url.path
            if path == "/api/v1/accounts/0.0.1001":
                return httpx.Response(200, json={"balance": {"balance": 500}})
            if path == "/api/v1/accounts/0.0.1001/tokens":
                if "token.id" not in request.url.params:
                    return httpx.Response(
                        200,
                        json={
                            "tokens": [{"token_id": "0.0.2001", "balance": 10}],
                            "links": {
                                "next": "/api/v1/accounts/0.0.1001/tokens?limit=100&token.id=gt:0.0.2001"
                            },
                        },
                    )
                return httpx.Response(
                    200,
                    json={
                        "tokens": [{"token_id": "0.0.2002", "balance": 1}],
                        "links": {"next": None},
                    },
                )
            return httpx.Response(404, json={"_status": {"messages": []}})

        client = self.client(handler)
        balance = await client.account_balance(AccountId.from_num(1001))
        await client.close()

        self.assertEqual(balance.hbars, Hbar(500))
        self.assertEqual(balance.balance_of(TokenId.from_num(2001)), 10)
        self.assertEqual(balance.balance_of(TokenId.from_num(2002)), 1)
        self.assertEqual(len(requests), 3)
        self.assertEqual(requests[-1].params["token.id"], "gt:0.0.2001")

    async def test_api_error(self):
        client = self.client(lambda request: httpx.Response(500, text="boom"))
        with self.assertRaises(ApiError) as cm:
            await client.account(AccountId.from_num(7))
        await client.close()
        self.assertEqual(cm.exception.status_code, 500)

    async def test_wait_for_transaction(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(404, json={})
            return httpx.Response(
                200, json={"transactions": [{"result": "SUCCESS"}]}
            )

        client = self.client(handler)
        with unittest.mock.patch("asyncio.sleep", new=unittest.mock.AsyncMock()):
            record = await client.wait_for_transaction("0.0.2@1700000000.000000005")
        await client.close()

        self.assertEqual(record["result"], "SUCCESS")
        self.assertEqual(calls[0], "/api/v1/transactions/0.0.2-1700000000-000000005")

    async def test_wait_times_out(self):
        client = self.client(lambda request: httpx.Response(404, json={}))
        with unittest.mock.patch("asyncio.sleep", new=unittest.mock.AsyncMock()):
            with self.assertRaises(AssertionError):
                await client.wait_for_transaction("0.0.2-1700000000-000000005")
        await client.close()


if __name__ == "__main__":
    unittest.main()
