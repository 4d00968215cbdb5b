"""
Static table of publicly attributed addresses (exchanges, sanctioned mixers).

Lookups are case-insensitive for Ethereum hex addresses and exact otherwise
(base58 is case-sensitive; bech32 is always stored lowercase).
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_amlcheck.core.models import Chain

ENTITY_EXCHANGE = "exchange"
ENTITY_MIXER = "mixer"


@dataclass(frozen=True)
class KnownAddress:
    name: str
    type: str
    risk: int
    description: str


_ETHEREUM = {
    "0x742d35Cc6634C0532925a3b844Bc454e4438f44e": KnownAddress(
        "Bitfinex", ENTITY_EXCHANGE, 20, "Bitfinex Hot Wallet"
    ),
    "0x3f5CE5FBFe3E9af3971dD833D26bA9b5C936f0bE": KnownAddress(
        "Binance", ENTITY_EXCHANGE, 20, "Binance Hot Wallet"
    ),
    "0x8484Ef722627bf18ca5Ae6BcF031c23E6e922B30": KnownAddress(
        "Tornado Cash", ENTITY_MIXER, 90, "Sanctioned cryptocurrency mixer"
    ),
}

_BITCOIN = {
    "34xp4vRoCGJym3xR7yCVPFHoCNxv4Twseo": KnownAddress(
        "Binance", ENTITY_EXCHANGE, 20, "Binance Cold Wallet"
    ),
}

KNOWN_ADDRESSES: dict[Chain, dict[str, KnownAddress]] = {
    Chain.BITCOIN: _BITCOIN,
    Chain.ETHEREUM: {k.lower(): v for k, v in _ETHEREUM.items()},
    Chain.SOLANA: {},
}


def lookup_known_address(chain: Chain, address: str) -> KnownAddress | None:
    """Return the attributed entity for address on chain, or None."""
    table = KNOWN_ADDRESSES[chain]
    if chain is Chain.ETHEREUM:
        return table.get((address or "").lower())
    return table.get(address)
