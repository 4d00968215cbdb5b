"""
API tests: validate, wallet info, error mapping, rate limit, health.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from backend_amlcheck.api_server.server import create_app

from tests.conftest import BLOCKCHAIR_STATS, BTC_ADDRESS, ETH_ADDRESS, ETH_BURN_ADDRESS, SOL_ADDRESS

UNKNOWN_ADDRESS = "hello-world-this-is-not-an-address"


@pytest.mark.parametrize("path", ["/api/wallet/validate", "/wallet/check"])
def test_validate_ethereum(client, path):
    r = client.post(path, json={"address": ETH_BURN_ADDRESS})
    assert r.status_code == 200
    assert r.json() == {"network": "ethereum", "isValid": True, "icon": "ethereum", "title": "Ethereum"}


def test_validate_bitcoin_bad_checksum_is_200_invalid(client):
    r = client.post("/api/wallet/validate", json={"address": BTC_ADDRESS[:-1] + "b"})
    assert r.status_code == 200
    assert r.json()["network"] == "bitcoin"
    assert r.json()["isValid"] is False


def test_validate_strips_whitespace(client):
    r = client.post("/api/wallet/validate", json={"address": f"  {SOL_ADDRESS}\n"})
    assert r.status_code == 200
    assert r.json()["network"] == "solana"


def test_validate_unknown_network(client):
    r = client.post("/api/wallet/validate", json={"address": UNKNOWN_ADDRESS})
    assert r.status_code == 400
    assert r.json() == {"detail": "Unknown network", "code": "unknown_network"}


@pytest.mark.parametrize("body", [{"address": "short"}, {"address": "x" * 101}, {}, {"address": 12345}])
def test_validate_bad_body(client, body):
    r = client.post("/api/wallet/validate", json=body)
    assert r.status_code == 400
    assert r.json()["code"] == "bad_request"


def test_wallet_info_bitcoin(client):
    r = client.post("/api/wallet/info", json={"address": BTC_ADDRESS, "network": "bitcoin"})
    assert r.status_code == 200
    body = r.json()
    assert body["address"] == BTC_ADDRESS
    assert body["balance"] == "1.5"
    assert body["balanceUSD"] == "60000.00"
    assert body["txCount"] == 3
    assert body["riskScore"] == 10
    assert body["riskFlags"] == ["low_activity"]
    assert body["recentTransactions"][0] == {
        "hash": "bb02",
        "timestamp": "2024-02-03T11:30:00Z",
        "type": "outgoing",
        "amount": "0.25",
        "amountUSD": "10000.00",
    }
    assert "tokens" not in body


def test_wallet_info_network_detected_when_omitted(client):
    r = client.post("/api/wallet/info", json={"address": ETH_ADDRESS})
    assert r.status_code == 200
    body = r.json()
    assert body["network"] == "ethereum"
    assert body["tokenCount"] == 2
    assert body["tokens"][0]["symbol"] == "USDT"


def test_wallet_info_unsupported_network_tag(client):
    r = client.post("/api/wallet/info", json={"address": BTC_ADDRESS, "network": "dogecoin"})
    assert r.status_code == 400
    assert r.json()["code"] == "bad_request"


def test_wallet_info_invalid_address(client):
    r = client.post("/api/wallet/info", json={"address": BTC_ADDRESS[:-1] + "b"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_address"


def test_wallet_info_not_found(client, router):
    router.add("blockcypher", {"error": "Address not found"}, status_code=404, first=True)
    r = client.post("/api/wallet/info", json={"address": BTC_ADDRESS})
    assert r.status_code == 404
    assert r.json() == {"detail": "Account not found", "code": "not_found"}


def test_wallet_info_upstream_down_is_502(client, router):
    def down(request):
        raise httpx.ConnectError("connection refused", request=request)

    router.add("blockchair", responder=down, first=True)
    r = client.post("/api/wallet/info", json={"address": SOL_ADDRESS})
    assert r.status_code == 502
    assert r.json()["code"] == "network_error"


def test_wallet_info_upstream_rate_limited_is_429(client, router):
    router.add("blockcypher", {"error": "Limits reached."}, status_code=429, first=True)
    r = client.post("/api/wallet/info", json={"address": BTC_ADDRESS})
    assert r.status_code == 429
    assert r.json()["code"] == "rate_limited"


def test_wallet_info_disabled_network_is_501(settings, make_service):
    s = replace(settings, enabled_networks=("bitcoin",))
    app = create_app(s, service=make_service(settings=s))
    with TestClient(app) as c:
        r = c.post("/api/wallet/info", json={"address": ETH_ADDRESS})
    assert r.status_code == 501
    assert r.json()["code"] == "unsupported_network"


def test_blockchair_stats(client):
    r = client.get("/api/blockchair/stats")
    assert r.status_code == 200
    assert r.json() == BLOCKCHAIR_STATS


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["timestamp"].endswith("Z")
    assert body["uptime"] >= 0


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json()["code"] == "http_error"


def test_rate_limit(settings, service):
    app = create_app(replace(settings, rate_limit_max=2), service=service)
    with TestClient(app) as c:
        first = c.post("/api/wallet/validate", json={"address": ETH_BURN_ADDRESS})
        assert first.headers["RateLimit-Limit"] == "2"
        assert first.headers["RateLimit-Remaining"] == "1"
        assert c.post("/api/wallet/validate", json={"address": ETH_BURN_ADDRESS}).status_code == 200
        r = c.post("/api/wallet/validate", json={"address": ETH_BURN_ADDRESS})
        assert r.status_code == 429
        assert r.json() == {"detail": "Too many requests, please try again later.", "code": "rate_limited"}
        assert "Retry-After" in r.headers
        # health is exempt
        assert c.get("/health").status_code == 200


def test_internal_error_hidden_in_production(settings):
    service = MagicMock()
    service.get_wallet_info = AsyncMock(side_effect=RuntimeError("secret connection string"))
    app = create_app(replace(settings, app_env="production"), service=service)
    with TestClient(app, raise_server_exceptions=False) as c:
        r = c.post("/api/wallet/info", json={"address": BTC_ADDRESS})
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error", "code": "internal_error"}
