"""
Wallet info pipeline: address -> scored WalletInfo.

detect chain -> validate address -> fetch raw data + price (concurrently) ->
normalize -> enrich (USD, tokens, wallet type, known entity) -> score ->
validate output. Each request walks RequestState and logs every transition
as "wallet_info_state". A request either returns a complete record or raises
a WalletCheckError; no partial record is ever returned.

Prices are best-effort (Lookup); every other upstream failure fails the request.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Callable

import httpx

from backend_amlcheck.amlcheck_logging import bind_address
from backend_amlcheck.analytics import normalizer
from backend_amlcheck.analytics.enricher import (
    token_contracts,
    with_known_address_info,
    with_risk,
    with_token_analysis,
    with_usd_values,
    with_wallet_type,
)
from backend_amlcheck.analytics.known_addresses import lookup_known_address
from backend_amlcheck.analytics.risk_scorer import (
    DEFAULT_WEIGHTS,
    RiskWeights,
    WalletStats,
    ethereum_stats,
    generic_stats,
    risk_level,
    score,
)
from backend_amlcheck.analytics.wallet_classifier import classify_wallet
from backend_amlcheck.chains.detector import NetworkDetector
from backend_amlcheck.config.settings import Settings
from backend_amlcheck.core.exceptions import (
    InvalidAddressError,
    UnknownNetworkError,
    UnsupportedNetworkError,
    WalletCheckError,
)
from backend_amlcheck.core.models import AddressCheck, Chain, Lookup, WalletInfo
from backend_amlcheck.services.cache import TTLCache
from backend_amlcheck.upstream import (
    BlockchairClient,
    BlockCypherClient,
    CoinGeckoPriceClient,
    EtherscanClient,
    UpstreamClient,
    best_effort,
)

# CoinGecko free tier: keep per-request token price lookups bounded
MAX_TOKEN_PRICE_LOOKUPS = 10


class RequestState(str, Enum):
    IDLE = "idle"
    DETECTING_CHAIN = "detecting_chain"
    VALIDATING_ADDRESS = "validating_address"
    INVALID = "invalid"
    FETCHING_UPSTREAM = "fetching_upstream"
    NORMALIZING = "normalizing"
    ENRICHING = "enriching"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"


StateListener = Callable[[RequestState, dict[str, Any]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RequestTrace:
    """Current state of one request plus its bound logger."""

    def __init__(self, address: str, listener: StateListener | None):
        self.state = RequestState.IDLE
        self.log = bind_address(address)
        self._listener = listener

    def enter(self, state: RequestState, **context: Any) -> None:
        self.log.debug("wallet_info_state", previous=self.state.value, state=state.value, **context)
        self.state = state
        if self._listener is not None:
            self._listener(state, context)

    def bind(self, **context: Any) -> None:
        self.log = self.log.bind(**context)


class WalletInfoService:
    """
    Orchestrates one wallet lookup.

    clients must cover every Chain; enabled_networks restricts which of them
    may be used (others raise UnsupportedNetworkError).
    """

    def __init__(
        self,
        clients: dict[Chain, UpstreamClient],
        *,
        detector: NetworkDetector | None = None,
        enabled_networks: tuple[str, ...] | None = None,
        weights: RiskWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], datetime] = _utcnow,
        state_listener: StateListener | None = None,
    ):
        self.clients = clients
        self.detector = detector or NetworkDetector()
        self.enabled_networks = tuple(enabled_networks or (c.value for c in Chain))
        self.weights = weights
        self._clock = clock
        self._state_listener = state_listener

    def validate_address(self, address: str) -> AddressCheck:
        return self.detector.validate_and_identify((address or "").strip())

    def client_for(self, chain: Chain) -> UpstreamClient:
        client = self.clients.get(chain)
        if client is None or chain.value not in self.enabled_networks:
            raise UnsupportedNetworkError(chain.value)
        return client

    def _resolve_chain(self, address: str, network: str | None) -> Chain:
        if network:
            return Chain.parse(network)
        chain = self.detector.detect(address)
        if chain is None:
            raise UnknownNetworkError(address)
        return chain

    async def get_wallet_info(self, address: str, network: str | None = None) -> WalletInfo:
        """
        Full lookup for address. network (case-insensitive tag) skips detection.

        Raises UnknownNetworkError, UnsupportedNetworkError, InvalidAddressError
        or UpstreamError.
        """
        address = (address or "").strip()
        trace = _RequestTrace(address, self._state_listener)
        try:
            trace.enter(RequestState.DETECTING_CHAIN)
            chain = self._resolve_chain(address, network)
            client = self.client_for(chain)
            trace.bind(network=chain.value)

            trace.enter(RequestState.VALIDATING_ADDRESS)
            if not self.detector.adapter_for(chain).validate_address(address):
                trace.enter(RequestState.INVALID)
                raise InvalidAddressError(address, chain.value)

            trace.enter(RequestState.FETCHING_UPSTREAM, source=client.source)
            raw, price = await asyncio.gather(
                client.fetch_raw(address),
                best_effort(client.fetch_price, f"{client.price_asset}_price"),
            )

            trace.enter(RequestState.NORMALIZING)
            info = normalizer.from_raw(chain, raw)

            trace.enter(RequestState.ENRICHING, price_available=price.available)
            info, stats = await self._enrich(chain, client, address, raw, info, price)

            trace.enter(RequestState.SCORING)
            assessment = score(chain, stats, self.weights)
            info = normalizer.validate(with_risk(info, assessment))
        except InvalidAddressError:
            raise
        except WalletCheckError as e:
            trace.enter(RequestState.FAILED, code=e.code)
            trace.log.info("wallet_info_failed", code=e.code, error=e.message, detail=e.detail)
            raise
        except Exception as e:
            trace.enter(RequestState.FAILED, code="internal")
            trace.log.exception("wallet_info_error", error=str(e))
            raise

        trace.enter(RequestState.DONE)
        trace.log.info(
            "wallet_info_done",
            tx_count=info.tx_count,
            risk_score=info.risk_score,
            risk_level=risk_level(info.risk_score),
            flags=info.risk_flags,
        )
        return info

    async def _enrich(
        self,
        chain: Chain,
        client: UpstreamClient,
        address: str,
        raw: dict[str, Any],
        info: WalletInfo,
        price: Lookup,
    ) -> tuple[WalletInfo, WalletStats]:
        now = self._clock()
        info = with_usd_values(info, price)

        if chain is Chain.ETHEREUM:
            transfers = raw.get("token_transfers") or []
            contracts = token_contracts(transfers)[:MAX_TOKEN_PRICE_LOOKUPS]
            lookups = await asyncio.gather(
                *(best_effort(partial(client.fetch_token_price, c), f"token:{c}") for c in contracts)
            )
            info = with_token_analysis(info, transfers, price, dict(zip(contracts, lookups)))
            stats = ethereum_stats(address, raw.get("transactions") or [], transfers, info.balance, now)
            info = with_wallet_type(info, classify_wallet(stats))
        else:
            stats = generic_stats(info, now)

        info = with_known_address_info(info, address)
        known = lookup_known_address(chain, address)
        if known is not None:
            stats = replace(stats, known_type=known.type, known_risk=known.risk)
        return info, stats

    async def chain_stats(self) -> dict[str, Any]:
        """Blockchair Bitcoin stats passthrough (cached)."""
        client = self.clients.get(Chain.SOLANA)
        if not isinstance(client, BlockchairClient):
            raise UnsupportedNetworkError("blockchair")
        return await client.fetch_stats()


def build_upstream_clients(
    settings: Settings,
    http: httpx.AsyncClient,
    cache: TTLCache,
) -> dict[Chain, UpstreamClient]:
    """One client per chain, sharing the HTTP client, the cache and the price client."""
    common = {"timeout_sec": settings.upstream_timeout_sec, "raw_ttl_sec": settings.cache_ttl_sec}
    prices = CoinGeckoPriceClient(
        http,
        cache,
        base_url=settings.coingecko_url,
        api_key=settings.coingecko_api_key,
        ttl_sec=settings.price_cache_ttl_sec,
        timeout_sec=settings.upstream_timeout_sec,
    )
    return {
        Chain.BITCOIN: BlockCypherClient(
            http,
            cache,
            prices,
            base_url=settings.blockcypher_url,
            token=settings.blockcypher_token,
            **common,
        ),
        Chain.ETHEREUM: EtherscanClient(
            http,
            cache,
            prices,
            base_url=settings.etherscan_url,
            api_key=settings.etherscan_api_key,
            chain_id=settings.etherscan_chain_id,
            min_interval_sec=settings.etherscan_min_interval_sec,
            **common,
        ),
        Chain.SOLANA: BlockchairClient(
            http,
            cache,
            prices,
            base_url=settings.blockchair_url,
            api_key=settings.blockchair_api_key,
            stats_ttl_sec=settings.price_cache_ttl_sec,
            **common,
        ),
    }


def build_wallet_info_service(
    settings: Settings,
    http: httpx.AsyncClient,
    cache: TTLCache,
    **kwargs: Any,
) -> WalletInfoService:
    return WalletInfoService(
        build_upstream_clients(settings, http, cache),
        enabled_networks=settings.enabled_networks,
        **kwargs,
    )
