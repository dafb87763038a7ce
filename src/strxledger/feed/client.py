"""
History and chain API client.

Async REST client for the XPR Network chain and Hyperion history endpoints.
Supplies the feeds the engine consumes:
- paginated transfer actions (GET /v2/history/get_actions)
- the staking contract's config row (POST /v1/chain/get_table_rows)
- the rewards pool balance (POST /v1/chain/get_currency_balance)
- the oracle token price (POST /v1/chain/get_table_rows on the prices table)

Page fetches never raise on network trouble; they return an errored
FetchResult so the accumulator keeps its last good ledger. Snapshot,
balance and price fetches raise TransientFetchFailure for the scheduler to absorb.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from ..config.schema import Config
from ..engine.ledger import FetchPage, FetchResult
from ..engine.pool_state import PoolStateSnapshot, parse_asset
from ..engine.records import records_from_actions
from ..errors import FeedParseError, TransientFetchFailure

logger = logging.getLogger(__name__)

ACTIONS_PATH = "/v2/history/get_actions"
TABLE_ROWS_PATH = "/v1/chain/get_table_rows"
CURRENCY_BALANCE_PATH = "/v1/chain/get_currency_balance"


class ActionFeedClient:
    """
    Chain/history API client.

    Usage:
        async with ActionFeedClient(config) as client:
            page = await client.fetch_actions_page("bridge.strx", "transfer", 0, 300)
            snapshot = await client.fetch_pool_state()
    """

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._endpoint = config.feed.endpoint
        self._session = session
        self._owns_session = session is None

    async def start(self):
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.feed.request_timeout)
            )

    async def stop(self):
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> 'ActionFeedClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get_json(self, path: str, params: Dict[str, str]) -> Any:
        if self._session is None:
            raise TransientFetchFailure("client not started")
        try:
            async with self._session.get(f"{self._endpoint}{path}", params=params) as response:
                status = response.status
                data = await response.json(content_type=None) if status == 200 else None
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise TransientFetchFailure(f"GET {path} failed: {e}") from e
        if status != 200:
            raise TransientFetchFailure(f"GET {path} returned HTTP {status}")
        return data

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        if self._session is None:
            raise TransientFetchFailure("client not started")
        try:
            async with self._session.post(
                f"{self._endpoint}{path}",
                json=payload,
                headers={"Content-Type": "application/json"}
            ) as response:
                status = response.status
                data = await response.json(content_type=None) if status == 200 else None
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise TransientFetchFailure(f"POST {path} failed: {e}") from e
        if status != 200:
            raise TransientFetchFailure(f"POST {path} returned HTTP {status}")
        return data

    # =========================================================================
    # Feeds
    # =========================================================================

    async def fetch_actions_page(
        self,
        account: str,
        action_filter: str,
        offset: int,
        limit: int,
        action_account: Optional[str] = None
    ) -> FetchResult:
        """
        Fetch one page of actions for an account.

        Args:
            account: Account whose history is read
            action_filter: Action name, e.g. "transfer"
            offset: Number of actions to skip
            limit: Page size
            action_account: Restrict to actions of this contract

        Returns:
            FetchResult; errored=True on any transport or payload failure
        """
        params = {
            "limit": str(limit),
            "account": account,
            "act.name": action_filter,
            "skip": str(offset),
        }
        if action_account:
            params["act.account"] = action_account

        try:
            data = await self._get_json(ACTIONS_PATH, params)
        except TransientFetchFailure as e:
            logger.warning("Action page %s@%d failed: %s", account, offset, e)
            return FetchResult(errored=True)

        actions = data.get("actions") if isinstance(data, dict) else None
        if not isinstance(actions, list):
            logger.warning("Action page %s@%d has no actions list", account, offset)
            return FetchResult(errored=True)

        return FetchResult(records=tuple(records_from_actions(actions)))

    async def fetch_pool_state(self) -> PoolStateSnapshot:
        """
        Fetch the staking contract's config row as a snapshot.

        Raises:
            TransientFetchFailure: On transport failure or an unusable row
        """
        contract = self.config.feed.staking_contract
        data = await self._post_json(TABLE_ROWS_PATH, {
            "json": True,
            "code": contract,
            "scope": contract,
            "table": "config",
            "limit": 10,
        })
        rows = self._table_rows(data)
        if not rows:
            raise TransientFetchFailure("staking config table returned no rows")
        try:
            return PoolStateSnapshot.from_config_row(rows[0], captured_at=datetime.now(timezone.utc))
        except FeedParseError as e:
            raise TransientFetchFailure(f"unusable staking config row: {e}") from e

    async def fetch_rewards_pool_balance(self) -> float:
        """
        Fetch the rewards pool token balance.

        Raises:
            TransientFetchFailure: On transport failure or an empty balance list
        """
        data = await self._post_json(CURRENCY_BALANCE_PATH, {
            "code": self.config.feed.token_contract,
            "account": self.config.feed.rewards_account,
            "symbol": self.config.feed.symbol,
        })
        if not isinstance(data, list) or not data:
            raise TransientFetchFailure("currency balance returned no assets")
        try:
            return parse_asset(data[0])
        except FeedParseError as e:
            raise TransientFetchFailure(str(e)) from e

    async def fetch_price(self) -> float:
        """
        Fetch the token price from the oracle's prices table.

        Returns:
            Price per token, from the row keyed by the configured symbol

        Raises:
            TransientFetchFailure: On transport failure or a missing/unusable price row
        """
        oracle = self.config.feed.oracle_contract
        data = await self._post_json(TABLE_ROWS_PATH, {
            "json": True,
            "code": oracle,
            "scope": oracle,
            "table": "prices",
            "limit": 10,
        })
        symbol = self.config.feed.price_symbol
        row = next(
            (r for r in self._table_rows(data) if isinstance(r, dict) and r.get("sym") == symbol),
            None
        )
        if row is None:
            raise TransientFetchFailure(f"oracle has no {symbol} price row")
        try:
            return parse_asset(row.get("quantity"))
        except FeedParseError as e:
            raise TransientFetchFailure(f"unusable {symbol} price row: {e}") from e

    @staticmethod
    def _table_rows(data: Any) -> list:
        rows = data.get("rows") if isinstance(data, dict) else None
        return rows if isinstance(rows, list) else []

    def page_fetcher(
        self,
        account: str,
        action_filter: Optional[str] = None,
        action_account: Optional[str] = None
    ) -> FetchPage:
        """Bind an account to the accumulator's (offset, limit) fetch contract."""
        action_filter = action_filter or self.config.feed.action_filter

        async def fetch_page(offset: int, limit: int) -> FetchResult:
            return await self.fetch_actions_page(account, action_filter, offset, limit, action_account)

        return fetch_page
