"""
BlockCypher client for Bitcoin mainnet.

GET {base}/btc/main/addrs/{address}/full returns final_balance (satoshi),
n_tx / final_n_tx and the address's transactions. The raw JSON is returned
unchanged; analytics.normalizer reads it.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.config.env import DEFAULT_BLOCKCYPHER_URL
from backend_amlcheck.core.models import Chain
from backend_amlcheck.services.cache import TTLCache
from backend_amlcheck.upstream.base import UpstreamClient
from backend_amlcheck.upstream.prices import CoinGeckoPriceClient

logger = get_logger(__name__)

BLOCKCYPHER_TX_LIMIT = 50


class BlockCypherClient(UpstreamClient):
    chain = Chain.BITCOIN
    price_asset = "bitcoin"
    source = "blockcypher"

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        prices: CoinGeckoPriceClient,
        *,
        base_url: str = DEFAULT_BLOCKCYPHER_URL,
        token: str = "",
        **kwargs: Any,
    ):
        super().__init__(http, cache, prices, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.token = token

    async def _fetch_raw_uncached(self, address: str) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": BLOCKCYPHER_TX_LIMIT}
        if self.token:
            params["token"] = self.token
        payload = await self._get(f"{self.base_url}/btc/main/addrs/{address}/full", params)
        data = self._require_dict(payload, address)
        logger.debug(
            "blockcypher_address_fetched",
            address=short_address(address),
            n_tx=data.get("n_tx"),
        )
        return data
