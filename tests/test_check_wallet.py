"""
Tests for the check_wallet CLI (validate-only mode needs no network).
"""

from __future__ import annotations

import json

from backend_amlcheck.tools.check_wallet import main

from tests.conftest import BTC_ADDRESS, ETH_BURN_ADDRESS


def test_validate_only_valid_address(capsys):
    assert main([ETH_BURN_ADDRESS, "--validate-only"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["network"] == "ethereum"
    assert out["isValid"] is True


def test_validate_only_bad_checksum(capsys):
    assert main([BTC_ADDRESS[:-1] + "b", "--validate-only"]) == 1
    assert json.loads(capsys.readouterr().out)["isValid"] is False


def test_validate_only_unknown_network(capsys):
    assert main(["not-an-address", "--validate-only"]) == 1
    assert "unknown_network" in capsys.readouterr().err
