"""
Wallet type classification for Ethereum wallets.

Each pattern scores the wallet's stats out of 100; the best score of at least
MIN_PATTERN_SCORE wins and ties keep the earlier pattern. The winner's label, type and description
are merged into the record so the client can show "Exchange Wallet" etc.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.analytics.risk_scorer import WalletStats

logger = get_logger(__name__)

WALLET_TYPE_EXCHANGE = "exchange"
WALLET_TYPE_SMART_CONTRACT = "smart_contract"
WALLET_TYPE_WHALE = "whale"
WALLET_TYPE_ACTIVE_TRADER = "active_trader"

# out of 100; below this the weak default signals (few txs, few peers) dominate
MIN_PATTERN_SCORE = 50


@dataclass(frozen=True)
class WalletPattern:
    type: str
    label: str
    description: str
    score: Callable[[WalletStats], int]


def _exchange_score(s: WalletStats) -> int:
    points = 0
    if s.unique_counterparties > 1000:
        points += 40
    if s.tx_count > 1000:
        points += 30
    if s.incoming_count > 100 and s.outgoing_count > 100:
        points += 20
    if s.balance > 1000:
        points += 10
    return points


def _smart_contract_score(s: WalletStats) -> int:
    points = 0
    if s.contract_interactions > 100:
        points += 40
    if s.has_token_transfers:
        points += 30
    if s.tx_count > 500:
        points += 20
    if s.unique_counterparties > 100:
        points += 10
    return points


def _whale_score(s: WalletStats) -> int:
    points = 0
    if s.balance > 10000:
        points += 40
    if s.avg_tx_value > 1000:
        points += 30
    if s.tx_count < 100:
        points += 20
    if s.unique_counterparties < 50:
        points += 10
    return points


def _active_trader_score(s: WalletStats) -> int:
    points = 0
    if 100 < s.tx_count < 1000:
        points += 40
    if 50 < s.unique_counterparties < 500:
        points += 30
    if 10 < s.balance < 1000:
        points += 20
    # roughly balanced flow
    if abs(s.incoming_count - s.outgoing_count) < 20:
        points += 10
    return points


WALLET_PATTERNS: tuple[WalletPattern, ...] = (
    WalletPattern(
        WALLET_TYPE_EXCHANGE,
        "Exchange Wallet",
        "High volume of transactions with many unique addresses",
        _exchange_score,
    ),
    WalletPattern(
        WALLET_TYPE_SMART_CONTRACT,
        "Smart Contract",
        "Frequent contract interactions and token transfers",
        _smart_contract_score,
    ),
    WalletPattern(
        WALLET_TYPE_WHALE,
        "Whale Wallet",
        "Large balance with high value transactions",
        _whale_score,
    ),
    WalletPattern(
        WALLET_TYPE_ACTIVE_TRADER,
        "Active Trader",
        "Regular trading activity with moderate volume",
        _active_trader_score,
    ),
)


def classify_wallet(stats: WalletStats, min_score: int = MIN_PATTERN_SCORE) -> WalletPattern | None:
    """Return the best matching pattern, or None when no pattern reaches min_score."""
    best: WalletPattern | None = None
    best_score = 0
    for pattern in WALLET_PATTERNS:
        points = pattern.score(stats)
        if points >= min_score and points > best_score:
            best, best_score = pattern, points
    logger.debug(
        "wallet_classified",
        wallet_type=best.type if best else None,
        pattern_score=best_score,
    )
    return best
