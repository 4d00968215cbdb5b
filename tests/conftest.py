"""
Pytest fixtures for AML Check tests.

Upstream APIs are replaced by an httpx.MockTransport router that answers with
canned BlockCypher / Etherscan / Blockchair / CoinGecko payloads and records
every request. Time is injected (fake monotonic clock, fixed "now").
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from backend_amlcheck.config.settings import Settings
from backend_amlcheck.services.cache import TTLCache
from backend_amlcheck.services.wallet_info import WalletInfoService, build_wallet_info_service

BTC_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
BTC_P2SH_ADDRESS = "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"
BTC_BECH32_ADDRESS = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
ETH_ADDRESS = "0x1111111111111111111111111111111111111111"
ETH_PEER_A = "0x2222222222222222222222222222222222222222"
ETH_PEER_B = "0x3333333333333333333333333333333333333333"
ETH_PEER_C = "0x4444444444444444444444444444444444444444"
ETH_BURN_ADDRESS = "0x000000000000000000000000000000000000dEaD"
TORNADO_ADDRESS = "0x8484ef722627bf18ca5ae6bcf031c23e6e922b30"
SOL_ADDRESS = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"

USDT_CONTRACT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
WETH_CONTRACT = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

BTC_PRICE = 40000.0
ETH_PRICE = 2000.0
SOL_PRICE = 150.0

BLOCKCYPHER_ADDRESS = {
    "address": BTC_ADDRESS,
    "final_balance": 150000000,
    "n_tx": 3,
    "final_n_tx": 3,
    "txrefs": [
        {"tx_hash": "aa01", "tx_input_n": -1, "value": 100000000, "confirmed": "2024-01-02T10:00:00Z"},
        {"tx_hash": "bb02", "tx_input_n": 0, "value": 25000000, "confirmed": "2024-02-03T11:30:00.123Z"},
        {"tx_hash": "cc03", "tx_input_n": -1, "value": 75000000, "confirmed": "2023-12-01T08:00:00Z"},
    ],
}

ETHERSCAN_BALANCE = {"status": "1", "message": "OK", "result": "2500000000000000000"}
ETHERSCAN_TXLIST = {
    "status": "1",
    "message": "OK",
    "result": [
        {
            "hash": "0xh2",
            "timeStamp": "1706745600",
            "from": ETH_PEER_B,
            "to": ETH_ADDRESS,
            "value": "500000000000000000",
            "input": "0x",
        },
        {
            "hash": "0xh1",
            "timeStamp": "1704067200",
            "from": ETH_ADDRESS,
            "to": ETH_PEER_A,
            "value": "1000000000000000000",
            "input": "0x",
        },
    ],
}
ETHERSCAN_TOKENTX = {
    "status": "1",
    "message": "OK",
    "result": [
        {
            "hash": "0xt2",
            "timeStamp": "1706832000",
            "contractAddress": USDT_CONTRACT,
            "tokenSymbol": "USDT",
            "tokenName": "Tether USD",
            "tokenDecimal": "6",
            "from": ETH_ADDRESS,
            "to": ETH_PEER_A,
            "value": "1500000",
        },
        {
            "hash": "0xt3",
            "timeStamp": "1704240000",
            "contractAddress": WETH_CONTRACT,
            "tokenSymbol": "WETH",
            "tokenName": "Wrapped Ether",
            "tokenDecimal": "18",
            "from": ETH_PEER_C,
            "to": ETH_ADDRESS,
            "value": "1000000000000000000",
        },
        {
            "hash": "0xt1",
            "timeStamp": "1704153600",
            "contractAddress": USDT_CONTRACT,
            "tokenSymbol": "USDT",
            "tokenName": "Tether USD",
            "tokenDecimal": "6",
            "from": ETH_PEER_C,
            "to": ETH_ADDRESS,
            "value": "5000000",
        },
    ],
}
ETHERSCAN_NO_TRANSACTIONS = {"status": "0", "message": "No transactions found", "result": []}

BLOCKCHAIR_SOLANA = {
    "data": {
        SOL_ADDRESS: {
            "address": {
                "balance": 2500000000,
                "transaction_count": 4,
                "first_seen_receiving": "2024-05-20 12:00:00",
                "last_seen_receiving": "2024-05-30 08:15:00",
                "first_seen_spending": None,
                "last_seen_spending": None,
                "tags": [],
            },
            "transactions": [
                "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW",
                {"hash": "sig2", "time": "2024-05-30 08:15:00", "balance_change": -500000000},
            ],
        }
    },
    "context": {"code": 200},
}
BLOCKCHAIR_STATS = {"data": {"blocks": 840000, "transactions": 990000000}, "context": {"code": 200}}


class FakeClock:
    """Monotonic clock stand-in; advance() steps time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """async sleep stand-in: records durations and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


Responder = Callable[[httpx.Request], httpx.Response]


class UpstreamRouter:
    """
    httpx.MockTransport handler. The first route whose marker is a substring of
    the request URL answers; unmatched requests get a 404. Requests are recorded.
    """

    def __init__(self) -> None:
        self.routes: list[tuple[str, Responder]] = []
        self.requests: list[httpx.Request] = []

    def add(
        self,
        marker: str,
        json: Any = None,
        status_code: int = 200,
        *,
        responder: Responder | None = None,
        first: bool = False,
    ) -> None:
        if responder is None:
            body = copy.deepcopy(json)

            def responder(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status_code, json=copy.deepcopy(body))

        route = (marker, responder)
        if first:
            self.routes.insert(0, route)
        else:
            self.routes.append(route)

    def count(self, marker: str) -> int:
        return sum(1 for r in self.requests if marker in str(r.url))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for marker, responder in self.routes:
            if marker in url:
                return responder(request)
        return httpx.Response(404, json={"error": "no route"})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock) -> TTLCache:
    return TTLCache(default_ttl_sec=300, clock=fake_clock)


@pytest.fixture
def router() -> UpstreamRouter:
    """Router preloaded with a happy-path answer for every upstream."""
    r = UpstreamRouter()
    r.add("api.blockcypher.com/v1/btc/main/addrs/", BLOCKCYPHER_ADDRESS)
    r.add("action=balance", ETHERSCAN_BALANCE)
    r.add("action=txlist", ETHERSCAN_TXLIST)
    r.add("action=tokentx", ETHERSCAN_TOKENTX)
    r.add("api.blockchair.com/solana/dashboards/address/", BLOCKCHAIR_SOLANA)
    r.add("api.blockchair.com/bitcoin/stats", BLOCKCHAIR_STATS)
    r.add(f"contract_addresses={USDT_CONTRACT}", {USDT_CONTRACT: {"usd": 1.0}})
    r.add("simple/token_price", {})
    r.add("ids=bitcoin", {"bitcoin": {"usd": BTC_PRICE}})
    r.add("ids=ethereum", {"ethereum": {"usd": ETH_PRICE}})
    r.add("ids=solana", {"solana": {"usd": SOL_PRICE}})
    return r


@pytest.fixture
def settings() -> Settings:
    """Defaults with the Etherscan throttle disabled so tests never wait."""
    return replace(Settings(), etherscan_min_interval_sec=0.0)


@pytest.fixture
def make_service(router, settings, cache) -> Callable[..., WalletInfoService]:
    """Factory: WalletInfoService on the mock router with a fixed clock."""

    def _make(**kwargs: Any) -> WalletInfoService:
        s = kwargs.pop("settings", settings)
        kwargs.setdefault("clock", lambda: NOW)
        return build_wallet_info_service(s, router.http_client(), kwargs.pop("cache", cache), **kwargs)

    return _make


@pytest.fixture
def service(make_service) -> WalletInfoService:
    return make_service()


@pytest.fixture
def client(settings, service):
    """FastAPI TestClient over the mocked service (lifespan runs inside the with-block)."""
    from fastapi.testclient import TestClient

    from backend_amlcheck.api_server.server import create_app

    app = create_app(settings, service=service)
    with TestClient(app) as c:
        yield c
