"""
Pytest tests for environment-driven settings.
"""

from __future__ import annotations

import pytest

from backend_amlcheck.config import env
from backend_amlcheck.config.settings import get_settings


@pytest.mark.parametrize(
    "raw,expected",
    [("production", "production"), ("PROD", "production"), ("staging", "development"), ("", "development")],
)
def test_app_env_normalized(monkeypatch, raw, expected):
    monkeypatch.setenv("APP_ENV", raw)
    assert env.get_app_env() == expected
    assert get_settings().is_production is (expected == "production")


def test_production_switch_lives_on_settings_only():
    """Callers read settings.is_production; the env module exposes no second switch."""
    assert not hasattr(env, "is_production")


def test_enabled_networks_filtered(monkeypatch):
    monkeypatch.setenv("ENABLED_NETWORKS", "Solana, dogecoin ,bitcoin")
    assert env.get_enabled_networks() == ("bitcoin", "solana")


def test_etherscan_legacy_key_name(monkeypatch):
    monkeypatch.delenv("ETHERSCAN_API_KEY", raising=False)
    monkeypatch.setenv("ETHERSCAN_TOKEN", "legacy")
    assert env.get_etherscan_api_key() == "legacy"
