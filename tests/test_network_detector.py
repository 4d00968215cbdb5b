"""
Pytest tests for network detection and per-chain address validation.
"""

from __future__ import annotations

import pytest

from backend_amlcheck.chains.adapters import ADAPTERS, BitcoinAdapter, EthereumAdapter, SolanaAdapter
from backend_amlcheck.chains.detector import NetworkDetector
from backend_amlcheck.core.exceptions import UnknownNetworkError
from backend_amlcheck.core.models import Chain

from tests.conftest import (
    BTC_ADDRESS,
    BTC_BECH32_ADDRESS,
    BTC_P2SH_ADDRESS,
    ETH_BURN_ADDRESS,
    SOL_ADDRESS,
)


def test_detect_bitcoin_forms():
    """P2PKH, P2SH and bech32 addresses are all bitcoin."""
    assert NetworkDetector.detect(BTC_ADDRESS) is Chain.BITCOIN
    assert NetworkDetector.detect(BTC_P2SH_ADDRESS) is Chain.BITCOIN
    assert NetworkDetector.detect(BTC_BECH32_ADDRESS) is Chain.BITCOIN
    assert NetworkDetector.detect(BTC_BECH32_ADDRESS.upper()) is Chain.BITCOIN


def test_detect_ethereum_and_solana():
    assert NetworkDetector.detect(ETH_BURN_ADDRESS) is Chain.ETHEREUM
    assert NetworkDetector.detect(SOL_ADDRESS) is Chain.SOLANA


def test_detect_priority_bitcoin_before_solana():
    """A base58 P2PKH address also fits the Solana shape; bitcoin is checked first."""
    assert len(BTC_ADDRESS) >= 32
    assert NetworkDetector.detect(BTC_ADDRESS) is Chain.BITCOIN


@pytest.mark.parametrize("value", ["", "hello", "0x1234", "x" * 60, None, 12345])
def test_detect_unknown_never_raises(value):
    assert NetworkDetector.detect(value) is None


def test_validate_and_identify_valid_ethereum():
    """The canonical burn address is a valid, checksummed Ethereum address."""
    check = NetworkDetector().validate_and_identify(ETH_BURN_ADDRESS)
    assert check.to_dict() == {
        "network": "ethereum",
        "isValid": True,
        "icon": "ethereum",
        "title": "Ethereum",
    }


def test_validate_and_identify_bad_checksum_is_invalid_not_error():
    """Mixed case that fails EIP-55: right shape, wrong checksum -> isValid false."""
    check = NetworkDetector().validate_and_identify("0x000000000000000000000000000000000000DeAd")
    assert check.network == "ethereum"
    assert check.is_valid is False


def test_validate_and_identify_unknown_raises():
    with pytest.raises(UnknownNetworkError) as ei:
        NetworkDetector().validate_and_identify("hello")
    assert ei.value.code == "unknown_network"


def test_validate_and_identify_corrupt_bitcoin_checksum():
    check = NetworkDetector().validate_and_identify(BTC_ADDRESS[:-1] + "b")
    assert check.network == "bitcoin"
    assert check.is_valid is False


def test_bitcoin_adapter():
    adapter = BitcoinAdapter()
    assert adapter.validate_address(BTC_ADDRESS) is True
    assert adapter.validate_address(BTC_P2SH_ADDRESS) is True
    assert adapter.validate_address(BTC_BECH32_ADDRESS) is True
    assert adapter.validate_address(BTC_BECH32_ADDRESS.upper()) is True
    # mixed-case bech32 is never valid
    assert adapter.validate_address("bc1Qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq") is False
    assert adapter.validate_address(BTC_BECH32_ADDRESS[:-1] + "x") is False
    assert adapter.validate_address("") is False


def test_ethereum_adapter():
    adapter = EthereumAdapter()
    assert adapter.validate_address(ETH_BURN_ADDRESS) is True
    assert adapter.validate_address(ETH_BURN_ADDRESS.lower()) is True
    assert adapter.validate_address("0x" + ETH_BURN_ADDRESS[2:].upper()) is True
    assert adapter.validate_address(ETH_BURN_ADDRESS[:-1]) is False
    assert adapter.validate_address("0x" + "g" * 40) is False


@pytest.mark.parametrize(
    "address,valid",
    [
        ("0x742d35Cc6634C0532925a3b844Bc454e4438f44e", True),
        ("0x742d35cC6634C0532925a3b844Bc454e4438f44e", False),
        ("0x000000000000000000000000000000000000DeAd", False),
        ("0x742D35CC6634C0532925A3B844BC454E4438F44E", True),
        ("0x742d35cc6634c0532925a3b844bc454e4438f44e", True),
    ],
)
def test_ethereum_adapter_mixed_case_needs_checksum(address, valid):
    """Single-case hex is accepted as is; mixed case must be the exact EIP-55 form."""
    assert EthereumAdapter().validate_address(address) is valid


def test_solana_adapter():
    adapter = SolanaAdapter()
    assert adapter.validate_address(SOL_ADDRESS) is True
    # base58 but not 32 bytes
    assert adapter.validate_address(SOL_ADDRESS[:40]) is False
    assert adapter.validate_address("0OIl" * 10) is False


def test_adapters_cover_every_chain():
    assert set(ADAPTERS) == set(Chain)
    for chain, adapter in ADAPTERS.items():
        assert adapter.network == chain.value
        assert adapter.title and adapter.icon
