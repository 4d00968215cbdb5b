"""
Shared plumbing for explorer / price API clients.

get_json() performs one GET through the shared httpx.AsyncClient and maps every
failure onto UpstreamError:
  404 -> NOT_FOUND, 429 (plus any client-specific limit codes) -> RATE_LIMITED,
  connect / timeout / transport errors -> NETWORK_ERROR,
  any other non-2xx or a body that is not JSON -> INVALID_RESPONSE.

UpstreamClient is the per-chain base: fetch_raw() goes through the cache under
"<chain>:<address>", fetch_price() delegates to the shared price client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.core.exceptions import UpstreamError, UpstreamErrorKind
from backend_amlcheck.core.models import Chain
from backend_amlcheck.services.cache import DEFAULT_TTL_SEC, TTLCache

if TYPE_CHECKING:
    from backend_amlcheck.upstream.prices import CoinGeckoPriceClient

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 5.0
DEFAULT_RATE_LIMIT_STATUSES = (429,)


def map_status(
    status_code: int,
    source: str,
    rate_limit_statuses: tuple[int, ...] = DEFAULT_RATE_LIMIT_STATUSES,
) -> UpstreamError | None:
    """Return the UpstreamError for a non-2xx status, or None for 2xx."""
    if 200 <= status_code < 300:
        return None
    if status_code == 404:
        return UpstreamError(UpstreamErrorKind.NOT_FOUND, f"{source}: HTTP 404")
    if status_code in rate_limit_statuses:
        return UpstreamError(UpstreamErrorKind.RATE_LIMITED, f"{source}: HTTP {status_code}")
    return UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"{source}: HTTP {status_code}")


async def get_json(
    http: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    rate_limit_statuses: tuple[int, ...] = DEFAULT_RATE_LIMIT_STATUSES,
) -> Any:
    """GET url and return the decoded JSON body; raise UpstreamError on any failure."""
    try:
        resp = await http.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        logger.warning("upstream_request_timeout", source=source, url=url, error=str(e))
        raise UpstreamError(UpstreamErrorKind.NETWORK_ERROR, f"{source}: timeout") from e
    except httpx.TransportError as e:
        logger.warning("upstream_request_failed", source=source, url=url, error=str(e))
        raise UpstreamError(UpstreamErrorKind.NETWORK_ERROR, f"{source}: {type(e).__name__}") from e

    err = map_status(resp.status_code, source, rate_limit_statuses)
    if err is not None:
        logger.info(
            "upstream_http_error",
            source=source,
            status_code=resp.status_code,
            kind=err.kind.value,
        )
        raise err

    try:
        return resp.json()
    except ValueError as e:
        logger.warning("upstream_invalid_json", source=source, status_code=resp.status_code)
        raise UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, f"{source}: body is not JSON") from e


class UpstreamClient:
    """
    Base per-chain client.

    Subclasses set chain / price_asset / source and implement _fetch_raw_uncached().
    """

    chain: Chain
    price_asset: str
    source: str = "upstream"

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        prices: CoinGeckoPriceClient,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        raw_ttl_sec: float = DEFAULT_TTL_SEC,
    ):
        self.http = http
        self.cache = cache
        self.prices = prices
        self.timeout_sec = timeout_sec
        self.raw_ttl_sec = raw_ttl_sec

    def raw_cache_key(self, address: str) -> str:
        return f"{self.chain.value}:{address}"

    async def fetch_raw(self, address: str) -> dict[str, Any]:
        """Raw explorer payload for address (cached)."""
        return await self.cache.get_or_fetch(
            self.raw_cache_key(address),
            self.raw_ttl_sec,
            lambda: self._fetch_raw_uncached(address),
        )

    async def fetch_price(self) -> float:
        """USD spot price of the chain's native asset (cached)."""
        return await self.prices.fetch_price(self.price_asset)

    async def _fetch_raw_uncached(self, address: str) -> dict[str, Any]:
        raise NotImplementedError

    async def _get(self, url: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return await get_json(
            self.http,
            url,
            source=self.source,
            params=params,
            timeout=self.timeout_sec,
            **kwargs,
        )

    def _require_dict(self, payload: Any, address: str) -> dict[str, Any]:
        if not isinstance(payload, dict):
            logger.warning(
                "upstream_unexpected_payload",
                source=self.source,
                address=short_address(address),
                payload_type=type(payload).__name__,
            )
            raise UpstreamError(
                UpstreamErrorKind.INVALID_RESPONSE,
                f"{self.source}: expected a JSON object",
            )
        return payload
