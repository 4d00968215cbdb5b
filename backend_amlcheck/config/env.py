"""
Environment variable loading for AML Check.

- APP_ENV: development | production (default: development)
- BLOCKCYPHER_TOKEN / BLOCKCYPHER_URL: Bitcoin explorer
- ETHERSCAN_API_KEY (or ETHERSCAN_TOKEN) / ETHERSCAN_URL / ETHERSCAN_CHAIN_ID: Ethereum explorer
- BLOCKCHAIR_API_KEY / BLOCKCHAIR_URL: Solana explorer and chain stats
- COINGECKO_API_KEY / COINGECKO_URL: spot prices
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_amlcheck/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_BLOCKCYPHER_URL = "https://api.blockcypher.com/v1"
DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/v2/api"
DEFAULT_BLOCKCHAIR_URL = "https://api.blockchair.com"
DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"

SUPPORTED_NETWORKS = ("bitcoin", "ethereum", "solana")


def load_amlcheck_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env vars win."""
    load_dotenv(_ENV_PATH)


def env_str(name: str, default: str = "") -> str:
    """Return a stripped env value, or default when unset/blank."""
    return (os.getenv(name) or "").strip() or default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_app_env() -> str:
    """Return APP_ENV (development | production). Default: development."""
    load_amlcheck_env()
    raw = env_str("APP_ENV", "development").lower()
    return "production" if raw in ("production", "prod") else "development"


def get_etherscan_api_key() -> str:
    """ETHERSCAN_API_KEY, falling back to the legacy ETHERSCAN_TOKEN name."""
    load_amlcheck_env()
    return env_str("ETHERSCAN_API_KEY") or env_str("ETHERSCAN_TOKEN")


def get_enabled_networks() -> tuple[str, ...]:
    """
    Return ENABLED_NETWORKS (comma-separated) filtered to supported tags.
    Default: all supported networks.
    """
    load_amlcheck_env()
    raw = env_str("ENABLED_NETWORKS")
    if not raw:
        return SUPPORTED_NETWORKS
    wanted = [n.strip().lower() for n in raw.split(",") if n.strip()]
    return tuple(n for n in SUPPORTED_NETWORKS if n in wanted)
