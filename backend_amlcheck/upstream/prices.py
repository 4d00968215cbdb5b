"""
Spot prices from CoinGecko (native assets and ERC-20 tokens), cached for 60s.

fetch_price / fetch_token_price raise UpstreamError like every other upstream
call. Callers that treat a price as optional go through best_effort(), which
turns an UpstreamError into Lookup.unavailable instead of failing the request.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx

from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.config.env import DEFAULT_COINGECKO_URL
from backend_amlcheck.core.exceptions import UpstreamError, UpstreamErrorKind
from backend_amlcheck.core.models import Lookup
from backend_amlcheck.services.cache import PRICE_TTL_SEC, TTLCache
from backend_amlcheck.upstream.base import get_json

logger = get_logger(__name__)

SOURCE = "coingecko"
VS_CURRENCY = "usd"
TOKEN_PLATFORM = "ethereum"


def price_cache_key(asset: str) -> str:
    return f"{asset}_price_usd"


def token_price_cache_key(contract: str) -> str:
    return f"token:{contract.lower()}_price_usd"


def _extract_usd(payload: Any, key: str) -> float:
    """payload[key]["usd"] as float; NOT_FOUND when CoinGecko has no entry for key."""
    if not isinstance(payload, dict):
        raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"{SOURCE}: expected a JSON object")
    entry = payload.get(key)
    if entry is None:
        raise UpstreamError(UpstreamErrorKind.NOT_FOUND, f"{SOURCE}: no price for {key}")
    try:
        return float(entry[VS_CURRENCY])
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"{SOURCE}: bad price for {key}") from e


class CoinGeckoPriceClient:
    """Simple-price endpoints; one instance shared by all chain clients."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        *,
        base_url: str = DEFAULT_COINGECKO_URL,
        api_key: str = "",
        ttl_sec: float = PRICE_TTL_SEC,
        timeout_sec: float = 5.0,
    ):
        self.http = http
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.ttl_sec = ttl_sec
        self.timeout_sec = timeout_sec

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"x-cg-demo-api-key": self.api_key}
        return {}

    async def _get(self, path: str, params: dict[str, str]) -> Any:
        return await get_json(
            self.http,
            f"{self.base_url}{path}",
            source=SOURCE,
            params=params,
            headers=self._headers(),
            timeout=self.timeout_sec,
        )

    async def fetch_price(self, asset: str) -> float:
        """USD price of a CoinGecko asset id (bitcoin, ethereum, solana)."""

        async def fetch() -> float:
            payload = await self._get("/simple/price", {"ids": asset, "vs_currencies": VS_CURRENCY})
            return _extract_usd(payload, asset)

        return await self.cache.get_or_fetch(price_cache_key(asset), self.ttl_sec, fetch)

    async def fetch_token_price(self, contract: str) -> float:
        """USD price of an ERC-20 token by contract address."""
        contract = contract.lower()

        async def fetch() -> float:
            payload = await self._get(
                f"/simple/token_price/{TOKEN_PLATFORM}",
                {"contract_addresses": contract, "vs_currencies": VS_CURRENCY},
            )
            return _extract_usd(payload, contract)

        return await self.cache.get_or_fetch(token_price_cache_key(contract), self.ttl_sec, fetch)


async def best_effort(fetch: Callable[[], Awaitable[float]], what: str) -> Lookup:
    """Await fetch(); an UpstreamError becomes Lookup.unavailable (logged at debug)."""
    try:
        return Lookup.of(await fetch())
    except UpstreamError as e:
        logger.debug("price_lookup_unavailable", what=what, kind=e.kind.value, detail=e.detail)
        return Lookup.unavailable(e.kind.value)
