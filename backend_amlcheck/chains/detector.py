"""
Network detection: guess an address's chain from its shape, then confirm with the adapter.

Patterns are checked in a fixed priority order (bitcoin, ethereum, solana) so
an ambiguous string always resolves the same way. detect() is pure and total.
"""

from __future__ import annotations

import re

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.chains.adapters import ADAPTERS, ChainAdapter
from backend_amlcheck.core.exceptions import UnknownNetworkError
from backend_amlcheck.core.models import AddressCheck, Chain

logger = get_logger(__name__)

BASE58_CHARS = "1-9A-HJ-NP-Za-km-z"

DETECTION_PATTERNS: tuple[tuple[Chain, re.Pattern[str]], ...] = (
    (
        Chain.BITCOIN,
        re.compile(rf"^[13][{BASE58_CHARS}]{{25,34}}$|^bc1[ac-hj-np-z02-9]{{11,71}}$"),
    ),
    (Chain.ETHEREUM, re.compile(r"^0x[0-9a-fA-F]{40}$")),
    (Chain.SOLANA, re.compile(rf"^[{BASE58_CHARS}]{{32,44}}$")),
)

_BECH32_UPPER_RE = re.compile(r"^BC1[AC-HJ-NP-Z02-9]{11,71}$")


class NetworkDetector:
    """Maps an address to a Chain and delegates confirmation to that chain's adapter."""

    def __init__(self, adapters: dict[Chain, ChainAdapter] | None = None):
        self._adapters = dict(adapters or ADAPTERS)

    @staticmethod
    def detect(address: str) -> Chain | None:
        """
        Return the first chain whose pattern matches, or None.

        Order: bitcoin, ethereum, solana. Never raises.
        """
        if not isinstance(address, str):
            return None
        for chain, pattern in DETECTION_PATTERNS:
            if pattern.match(address):
                return chain
        # bech32 is case-insensitive; an all-uppercase segwit address is still bitcoin
        if _BECH32_UPPER_RE.match(address):
            return Chain.BITCOIN
        return None

    def adapter_for(self, chain: Chain) -> ChainAdapter:
        return self._adapters[chain]

    def validate_and_identify(self, address: str) -> AddressCheck:
        """
        Detect the chain and run its adapter.

        Raises UnknownNetworkError when no pattern matches. An address that
        matches a pattern but fails deep validation returns is_valid=False.
        """
        chain = self.detect(address)
        if chain is None:
            logger.info("network_detect_unknown", address=short_address(str(address)))
            raise UnknownNetworkError(str(address))

        adapter = self.adapter_for(chain)
        is_valid = adapter.validate_address(address)
        logger.debug(
            "network_detected",
            address=short_address(address),
            network=chain.value,
            is_valid=is_valid,
        )
        return AddressCheck(
            network=chain.value,
            is_valid=is_valid,
            title=adapter.title,
            icon=adapter.icon,
        )
