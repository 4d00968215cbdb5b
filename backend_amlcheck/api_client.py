"""
Python client for the AML Check HTTP API.

Usage:
    client = AMLCheckClient("http://127.0.0.1:3000")
    address = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
    check = client.validate_address(address)
    info = client.get_wallet_info(address, check["network"])
    print(copy_text(info))
"""

from __future__ import annotations

from typing import Any

import requests

from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.analytics.risk_scorer import risk_level

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:3000"
DEFAULT_TIMEOUT_SEC = 30.0


class AMLCheckClientError(Exception):
    """Non-2xx answer from the API. code is the server's error code when the body carried one."""

    def __init__(self, status_code: int, detail: str, code: str | None = None):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.code = code


class AMLCheckClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        r = self.session.request(method, url, json=json, timeout=self.timeout)
        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = {}
            detail = body.get("detail") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            logger.debug("api_client_error", path=path, status_code=r.status_code, code=code)
            raise AMLCheckClientError(r.status_code, str(detail or r.text or r.reason), code)
        return r.json()

    def validate_address(self, address: str) -> dict[str, Any]:
        return self._request("POST", "/api/wallet/validate", {"address": address})

    def check_address(self, address: str) -> dict[str, Any]:
        """Same as validate_address, through the mobile app's /wallet/check path."""
        return self._request("POST", "/wallet/check", {"address": address})

    def get_wallet_info(self, address: str, network: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"address": address}
        if network:
            body["network"] = network
        return self._request("POST", "/api/wallet/info", body)

    def blockchair_stats(self) -> dict[str, Any]:
        return self._request("GET", "/api/blockchair/stats")

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")


def copy_text(info: dict[str, Any]) -> str:
    """Plain-text summary of a wallet-info response, one "label: value" per line."""
    balance = f"{info.get('balance', '0')}"
    if info.get("balanceUSD") is not None:
        balance += f" (${info['balanceUSD']})"
    score = int(info.get("riskScore") or 0)

    lines = [
        f"Address: {info.get('address', '')}",
        f"Network: {info.get('network', '')}",
        f"Balance: {balance}",
        f"Transactions: {info.get('txCount', 0)}",
    ]
    if info.get("tokenCount") is not None:
        lines.append(f"Tokens: {info['tokenCount']}")
    if info.get("firstTxTimestamp"):
        lines.append(f"First transaction: {info['firstTxTimestamp']}")
    if info.get("lastTxTimestamp"):
        lines.append(f"Last transaction: {info['lastTxTimestamp']}")
    lines.append(f"Risk score: {score} ({risk_level(score)})")
    for label, key in (("Risk flags", "riskFlags"), ("Labels", "labels"), ("Tags", "tags")):
        if info.get(key):
            lines.append(f"{label}: {', '.join(info[key])}")
    for note in info.get("notes") or []:
        lines.append(f"Note: {note}")
    return "\n".join(lines)
