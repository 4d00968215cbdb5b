"""
Blockchair client: Solana address dashboards plus the generic chain-stats passthrough.

GET {base}/solana/dashboards/address/{address} answers
{"data": {"<address>": {"address": {...}, "transactions": [...]}}, "context": {...}}.
A dashboard without an entry for the address is NOT_FOUND. Blockchair signals
quota problems with 402 / 429 / 430, all treated as RATE_LIMITED.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.config.env import DEFAULT_BLOCKCHAIR_URL
from backend_amlcheck.core.exceptions import UpstreamError, UpstreamErrorKind
from backend_amlcheck.core.models import Chain
from backend_amlcheck.services.cache import PRICE_TTL_SEC, TTLCache
from backend_amlcheck.upstream.base import UpstreamClient
from backend_amlcheck.upstream.prices import CoinGeckoPriceClient

logger = get_logger(__name__)

BLOCKCHAIR_RATE_LIMIT_STATUSES = (402, 429, 430)
STATS_CHAIN = "bitcoin"


class BlockchairClient(UpstreamClient):
    chain = Chain.SOLANA
    price_asset = "solana"
    source = "blockchair"

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        prices: CoinGeckoPriceClient,
        *,
        base_url: str = DEFAULT_BLOCKCHAIR_URL,
        api_key: str = "",
        stats_ttl_sec: float = PRICE_TTL_SEC,
        **kwargs: Any,
    ):
        super().__init__(http, cache, prices, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.stats_ttl_sec = stats_ttl_sec

    def _params(self) -> dict[str, Any]:
        return {"key": self.api_key} if self.api_key else {}

    async def _fetch_raw_uncached(self, address: str) -> dict[str, Any]:
        payload = await self._get(
            f"{self.base_url}/solana/dashboards/address/{address}",
            self._params(),
            rate_limit_statuses=BLOCKCHAIR_RATE_LIMIT_STATUSES,
        )
        payload = self._require_dict(payload, address)
        data = payload.get("data")
        if not isinstance(data, dict) or not data.get(address):
            logger.info("blockchair_address_missing", address=short_address(address))
            raise UpstreamError(UpstreamErrorKind.NOT_FOUND, "blockchair: address not in dashboard")
        return payload

    async def fetch_stats(self, chain: str = STATS_CHAIN) -> dict[str, Any]:
        """Blockchair /<chain>/stats, passed through unchanged (cached)."""

        async def fetch() -> dict[str, Any]:
            payload = await self._get(
                f"{self.base_url}/{chain}/stats",
                self._params(),
                rate_limit_statuses=BLOCKCHAIR_RATE_LIMIT_STATUSES,
            )
            return self._require_dict(payload, chain)

        return await self.cache.get_or_fetch(f"blockchair:{chain}:stats", self.stats_ttl_sec, fetch)
