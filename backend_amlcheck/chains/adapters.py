"""
Chain adapters: structural address validation plus display metadata.

Each adapter answers one question, "is this string a well-formed address on my
chain?", without any network I/O and without raising. Bitcoin decodes the
base58check / bech32 payload, Ethereum checks hex length and the EIP-55
checksum when the address is mixed-case, Solana decodes a 32-byte public key.
"""

from __future__ import annotations

import re

import base58
import bech32
from solders.pubkey import Pubkey
from web3 import Web3

from backend_amlcheck.core.models import Chain

# Mainnet base58check version bytes
BTC_P2PKH_VERSION = 0x00
BTC_P2SH_VERSION = 0x05
BTC_BASE58_PAYLOAD_LEN = 21
BTC_SEGWIT_HRP = "bc"

_ETH_HEX_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class ChainAdapter:
    """Base adapter. Subclasses set network/title/icon and implement validate_address."""

    chain: Chain
    title: str
    icon: str

    @property
    def network(self) -> str:
        return self.chain.value

    def validate_address(self, address: str) -> bool:
        raise NotImplementedError


class BitcoinAdapter(ChainAdapter):
    chain = Chain.BITCOIN
    title = "Bitcoin"
    icon = "bitcoin"

    def validate_address(self, address: str) -> bool:
        if not isinstance(address, str) or not address:
            return False
        if address[:3].lower() == "bc1":
            return self._validate_segwit(address)
        return self._validate_base58(address)

    @staticmethod
    def _validate_base58(address: str) -> bool:
        try:
            payload = base58.b58decode_check(address)
        except ValueError:
            return False
        return len(payload) == BTC_BASE58_PAYLOAD_LEN and payload[0] in (
            BTC_P2PKH_VERSION,
            BTC_P2SH_VERSION,
        )

    @staticmethod
    def _validate_segwit(address: str) -> bool:
        # bech32 forbids mixed case; decode() expects one case
        if address != address.lower() and address != address.upper():
            return False
        witver, witprog = bech32.decode(BTC_SEGWIT_HRP, address.lower())
        return witver is not None and witprog is not None


class EthereumAdapter(ChainAdapter):
    chain = Chain.ETHEREUM
    title = "Ethereum"
    icon = "ethereum"

    def validate_address(self, address: str) -> bool:
        if not isinstance(address, str) or not _ETH_HEX_RE.match(address):
            return False
        digits = address[2:]
        if digits == digits.lower() or digits == digits.upper():
            return True
        # mixed case must match the EIP-55 checksum
        return bool(Web3.is_checksum_address(address))


class SolanaAdapter(ChainAdapter):
    chain = Chain.SOLANA
    title = "Solana"
    icon = "solana"

    def validate_address(self, address: str) -> bool:
        if not isinstance(address, str) or not address:
            return False
        try:
            Pubkey.from_string(address)
            return True
        except Exception:
            return False


ADAPTERS: dict[Chain, ChainAdapter] = {
    Chain.BITCOIN: BitcoinAdapter(),
    Chain.ETHEREUM: EthereumAdapter(),
    Chain.SOLANA: SolanaAdapter(),
}


def get_adapter(chain: Chain) -> ChainAdapter:
    """Return the adapter for chain. ADAPTERS covers every Chain member."""
    return ADAPTERS[chain]
