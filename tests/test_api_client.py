"""
Tests for the HTTP API client (requests.Session mocked) and the copy-text summary.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from backend_amlcheck.api_client import AMLCheckClient, AMLCheckClientError, copy_text

from tests.conftest import BTC_ADDRESS


def _response(status_code, body=None, text=""):
    r = MagicMock()
    r.status_code = status_code
    r.text = text
    r.reason = "Error"
    if body is None:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = body
    return r


def test_get_wallet_info_posts_address_and_network():
    session = MagicMock()
    session.request.return_value = _response(200, {"address": BTC_ADDRESS, "network": "bitcoin"})
    client = AMLCheckClient("http://api.test/", timeout=5, session=session)

    assert client.get_wallet_info(BTC_ADDRESS, "bitcoin")["network"] == "bitcoin"
    session.request.assert_called_once_with(
        "POST",
        "http://api.test/api/wallet/info",
        json={"address": BTC_ADDRESS, "network": "bitcoin"},
        timeout=5,
    )


def test_get_wallet_info_without_network_omits_it():
    session = MagicMock()
    session.request.return_value = _response(200, {})
    AMLCheckClient("http://api.test", session=session).get_wallet_info(BTC_ADDRESS)
    assert session.request.call_args.kwargs["json"] == {"address": BTC_ADDRESS}


def test_check_address_uses_mobile_path():
    session = MagicMock()
    session.request.return_value = _response(200, {"network": "bitcoin", "isValid": True})
    AMLCheckClient("http://api.test", session=session).check_address(BTC_ADDRESS)
    assert session.request.call_args.args[1] == "http://api.test/wallet/check"


def test_error_carries_status_and_code():
    session = MagicMock()
    session.request.return_value = _response(400, {"detail": "Unknown network", "code": "unknown_network"})
    client = AMLCheckClient("http://api.test", session=session)

    with pytest.raises(AMLCheckClientError) as ei:
        client.validate_address("garbage")
    assert ei.value.status_code == 400
    assert ei.value.code == "unknown_network"
    assert ei.value.detail == "Unknown network"


def test_error_without_json_body():
    session = MagicMock()
    session.request.return_value = _response(502, None, text="Bad Gateway")
    with pytest.raises(AMLCheckClientError) as ei:
        AMLCheckClient("http://api.test", session=session).health()
    assert ei.value.code is None
    assert ei.value.detail == "Bad Gateway"


def test_copy_text():
    info = {
        "address": BTC_ADDRESS,
        "network": "bitcoin",
        "balance": "1.5",
        "balanceUSD": "60000.00",
        "txCount": 3,
        "firstTxTimestamp": "2023-12-01T08:00:00Z",
        "lastTxTimestamp": "2024-02-03T11:30:00Z",
        "riskScore": 45,
        "riskFlags": ["new_wallet", "low_activity"],
        "labels": [],
        "tags": [],
        "notes": ["Recently created wallet"],
        "recentTransactions": [],
    }
    text = copy_text(info)
    lines = text.splitlines()
    assert lines[0] == f"Address: {BTC_ADDRESS}"
    assert "Balance: 1.5 ($60000.00)" in lines
    assert "Risk score: 45 (MEDIUM)" in lines
    assert "Risk flags: new_wallet, low_activity" in lines
    assert "Note: Recently created wallet" in lines
    assert not any(line.startswith("Labels:") for line in lines)
    assert not any(line.startswith("Tokens:") for line in lines)


def test_copy_text_without_usd():
    text = copy_text({"address": "a", "network": "solana", "balance": "2", "txCount": 0, "riskScore": 0})
    assert "Balance: 2" in text.splitlines()
    assert "Risk score: 0 (MINIMAL)" in text
