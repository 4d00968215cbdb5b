"""
Etherscan client for Ethereum mainnet.

Three account endpoints feed one raw payload:
  balance  -> wei as a decimal string
  txlist   -> normal transactions (newest first)
  tokentx  -> ERC-20 transfer events (newest first)

Etherscan wraps every answer in {"status", "message", "result"}. status "0"
with "No transactions found" is an empty list, a "rate limit" message is
RATE_LIMITED, anything else with status "0" is INVALID_RESPONSE.

The free tier allows a few calls per second, so consecutive requests from this
client are spaced at least min_interval_sec apart, and a rate-limited call is
retried exactly once after waiting that interval.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

import httpx

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.config.env import DEFAULT_ETHERSCAN_URL
from backend_amlcheck.core.exceptions import UpstreamError, UpstreamErrorKind
from backend_amlcheck.core.models import Chain
from backend_amlcheck.services.cache import TTLCache
from backend_amlcheck.upstream.base import UpstreamClient
from backend_amlcheck.upstream.prices import CoinGeckoPriceClient

logger = get_logger(__name__)

DEFAULT_MIN_INTERVAL_SEC = 0.5
MAINNET_CHAIN_ID = 1
TX_PAGE_SIZE = 100
NO_TRANSACTIONS_MESSAGE = "no transactions found"
RATE_LIMIT_MARKER = "rate limit"
LIST_ACTIONS = ("txlist", "tokentx")


def parse_etherscan_payload(action: str, payload: Any) -> Any:
    """Unwrap {"status","message","result"} or raise UpstreamError."""
    if not isinstance(payload, dict) or "result" not in payload:
        raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"etherscan {action}: malformed envelope")

    status = str(payload.get("status", ""))
    message = str(payload.get("message", ""))
    result = payload.get("result")

    if status == "1":
        if action in LIST_ACTIONS and not isinstance(result, list):
            raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"etherscan {action}: result is not a list")
        return result

    text = f"{message} {result if isinstance(result, str) else ''}".lower()
    if RATE_LIMIT_MARKER in text:
        raise UpstreamError(UpstreamErrorKind.RATE_LIMITED, f"etherscan {action}: {message}")
    if action in LIST_ACTIONS and (NO_TRANSACTIONS_MESSAGE in text or result == []):
        return []
    raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"etherscan {action}: {message or 'error'}")


class EtherscanClient(UpstreamClient):
    chain = Chain.ETHEREUM
    price_asset = "ethereum"
    source = "etherscan"

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        prices: CoinGeckoPriceClient,
        *,
        base_url: str = DEFAULT_ETHERSCAN_URL,
        api_key: str = "",
        chain_id: int = MAINNET_CHAIN_ID,
        min_interval_sec: float = DEFAULT_MIN_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        **kwargs: Any,
    ):
        super().__init__(http, cache, prices, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.chain_id = chain_id
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._sleep = sleep
        self._throttle_lock = asyncio.Lock()
        self._last_request_at: float | None = None

    async def _throttle(self) -> None:
        """Wait until min_interval_sec has passed since the previous request."""
        async with self._throttle_lock:
            if self._last_request_at is not None:
                wait = self._last_request_at + self.min_interval_sec - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_request_at = self._clock()

    async def request(self, action: str, address: str, **extra: Any) -> Any:
        """One account-module call with throttling and a single retry on rate limit."""
        params: dict[str, Any] = {
            "chainid": self.chain_id,
            "module": "account",
            "action": action,
            "address": address,
            "apikey": self.api_key,
            **extra,
        }
        for attempt in range(2):
            await self._throttle()
            try:
                payload = await self._get(self.base_url, params)
                return parse_etherscan_payload(action, payload)
            except UpstreamError as e:
                if e.kind is not UpstreamErrorKind.RATE_LIMITED or attempt > 0:
                    raise
                logger.warning(
                    "etherscan_rate_limited_retrying",
                    action=action,
                    address=short_address(address),
                    wait_sec=self.min_interval_sec,
                )
                await self._sleep(self.min_interval_sec)
        raise UpstreamError(UpstreamErrorKind.RATE_LIMITED, f"etherscan {action}: retry exhausted")

    async def fetch_balance(self, address: str) -> str:
        result = await self.request("balance", address, tag="latest")
        text = str(result).strip()
        if not text.isdigit():
            raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, "etherscan balance: not an integer")
        return text

    async def fetch_transactions(self, address: str) -> list[dict[str, Any]]:
        return await self.request(
            "txlist",
            address,
            startblock=0,
            endblock=99999999,
            page=1,
            offset=TX_PAGE_SIZE,
            sort="desc",
        )

    async def fetch_token_transfers(self, address: str) -> list[dict[str, Any]]:
        return await self.request("tokentx", address, page=1, offset=TX_PAGE_SIZE, sort="desc")

    async def _fetch_raw_uncached(self, address: str) -> dict[str, Any]:
        balance, transactions, token_transfers = await asyncio.gather(
            self.fetch_balance(address),
            self.fetch_transactions(address),
            self.fetch_token_transfers(address),
        )
        logger.debug(
            "etherscan_address_fetched",
            address=short_address(address),
            tx_count=len(transactions),
            token_transfers=len(token_transfers),
        )
        return {
            "address": address,
            "balance": balance,
            "transactions": transactions,
            "token_transfers": token_transfers,
        }

    async def fetch_token_price(self, contract: str) -> float:
        return await self.prices.fetch_token_price(contract)
