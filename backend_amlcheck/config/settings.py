"""
Application settings.

Responsibilities:
- Load configuration from environment variables and the project .env file.
- Provide defaults for everything optional (all API keys are optional; the
  public explorers work without them at lower rate limits).
- Expose one typed, immutable Settings object for the API server, the
  service factory and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_amlcheck.config.env import (
    DEFAULT_BLOCKCHAIR_URL,
    DEFAULT_BLOCKCYPHER_URL,
    DEFAULT_COINGECKO_URL,
    DEFAULT_ETHERSCAN_URL,
    env_float,
    env_int,
    env_str,
    get_app_env,
    get_enabled_networks,
    get_etherscan_api_key,
    load_amlcheck_env,
)


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Build with get_settings(); override fields in tests with dataclasses.replace."""

    app_env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    log_level: str = "INFO"

    blockcypher_url: str = DEFAULT_BLOCKCYPHER_URL
    blockcypher_token: str = ""
    etherscan_url: str = DEFAULT_ETHERSCAN_URL
    etherscan_api_key: str = ""
    etherscan_chain_id: int = 1
    etherscan_min_interval_sec: float = 0.5
    blockchair_url: str = DEFAULT_BLOCKCHAIR_URL
    blockchair_api_key: str = ""
    coingecko_url: str = DEFAULT_COINGECKO_URL
    coingecko_api_key: str = ""

    upstream_timeout_sec: float = 5.0
    cache_ttl_sec: float = 300.0
    price_cache_ttl_sec: float = 60.0
    cache_sweep_interval_sec: float = 60.0

    cors_origin: str = "*"
    rate_limit_window_sec: float = 900.0
    rate_limit_max: int = 100

    enabled_networks: tuple[str, ...] = ("bitcoin", "ethereum", "solana")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


def get_settings() -> Settings:
    """
    Return the current application settings, read from the environment.

    Returns:
        Settings with API host/port, explorer URLs and keys, timeouts,
        cache TTLs, CORS and rate-limit configuration.
    """
    load_amlcheck_env()
    return Settings(
        app_env=get_app_env(),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 3000),
        log_level=env_str("LOG_LEVEL", "INFO").upper(),
        blockcypher_url=env_str("BLOCKCYPHER_URL", DEFAULT_BLOCKCYPHER_URL).rstrip("/"),
        blockcypher_token=env_str("BLOCKCYPHER_TOKEN"),
        etherscan_url=env_str("ETHERSCAN_URL", DEFAULT_ETHERSCAN_URL),
        etherscan_api_key=get_etherscan_api_key(),
        etherscan_chain_id=env_int("ETHERSCAN_CHAIN_ID", 1),
        etherscan_min_interval_sec=env_float("ETHERSCAN_MIN_INTERVAL_SEC", 0.5),
        blockchair_url=env_str("BLOCKCHAIR_URL", DEFAULT_BLOCKCHAIR_URL).rstrip("/"),
        blockchair_api_key=env_str("BLOCKCHAIR_API_KEY"),
        coingecko_url=env_str("COINGECKO_URL", DEFAULT_COINGECKO_URL).rstrip("/"),
        coingecko_api_key=env_str("COINGECKO_API_KEY"),
        upstream_timeout_sec=env_float("UPSTREAM_TIMEOUT_SEC", 5.0),
        cache_ttl_sec=env_float("CACHE_TTL_SEC", 300.0),
        price_cache_ttl_sec=env_float("PRICE_CACHE_TTL_SEC", 60.0),
        cache_sweep_interval_sec=env_float("CACHE_SWEEP_INTERVAL_SEC", 60.0),
        cors_origin=env_str("CORS_ORIGIN", "*"),
        rate_limit_window_sec=env_float("RATE_LIMIT_WINDOW_SEC", 900.0),
        rate_limit_max=env_int("RATE_LIMIT_MAX", 100),
        enabled_networks=get_enabled_networks(),
    )
