"""
Data models for wallet checks.

Chain tag, the normalized wallet record (WalletInfo with its Token and
Transaction parts), the address validation result, and the Lookup type used
for best-effort values such as prices. WalletInfo is built fresh per request
and serialized with the camelCase field names the mobile client reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from backend_amlcheck.core.exceptions import UnsupportedNetworkError

MAX_RECENT_TRANSACTIONS = 10

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


class Chain(str, Enum):
    """Supported blockchain networks."""

    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"
    SOLANA = "solana"

    @classmethod
    def parse(cls, tag: str) -> "Chain":
        """Case-insensitive tag -> Chain; raises UnsupportedNetworkError for anything else."""
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            raise UnsupportedNetworkError(str(tag)) from None


@dataclass(frozen=True)
class Lookup:
    """
    Result of a best-effort lookup: either a value or the reason it is unavailable.

    Used for prices, which never fail a request: an unavailable price leaves
    the dependent USD fields unset.
    """

    value: float | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.value is not None

    @classmethod
    def of(cls, value: float) -> "Lookup":
        return cls(value=float(value))

    @classmethod
    def unavailable(cls, reason: str) -> "Lookup":
        return cls(value=None, error=reason)


@dataclass(frozen=True)
class AddressCheck:
    """Network detection + validation result for one address."""

    network: str
    is_valid: bool
    title: str
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "network": self.network,
            "isValid": self.is_valid,
            "icon": self.icon,
            "title": self.title,
        }


@dataclass
class Transaction:
    """One recent transaction summary, from the wallet's point of view."""

    hash: str
    timestamp: str
    direction: str
    amount: str
    amount_usd: str | None = None
    token_symbol: str | None = None
    token_address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "hash": self.hash,
            "timestamp": self.timestamp,
            "type": self.direction,
            "amount": self.amount,
        }
        if self.amount_usd is not None:
            out["amountUSD"] = self.amount_usd
        if self.token_symbol is not None:
            out["tokenSymbol"] = self.token_symbol
        if self.token_address is not None:
            out["tokenAddress"] = self.token_address
        return out


@dataclass
class Token:
    """Net token balance derived from the wallet's token transfers."""

    address: str
    symbol: str
    name: str
    balance: str
    transfer_count: int
    balance_usd: str | None = None
    last_transfer_timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "balance": self.balance,
            "transferCount": self.transfer_count,
        }
        if self.balance_usd is not None:
            out["balanceUSD"] = self.balance_usd
        if self.last_transfer_timestamp is not None:
            out["lastTransferTimestamp"] = self.last_transfer_timestamp
        return out


@dataclass
class WalletInfo:
    """
    Canonical wallet record returned to callers.

    address/network are identity; balance and amounts are decimal strings in
    display units; risk_score/risk_flags are computed, never taken from an
    upstream. labels/tags/notes accumulate across enrichment steps.
    """

    address: str
    network: str
    balance: str
    tx_count: int
    balance_usd: str | None = None
    token_count: int | None = None
    first_tx_timestamp: str | None = None
    last_tx_timestamp: str | None = None
    risk_score: int = 0
    risk_flags: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    tokens: list[Token] | None = None
    recent_transactions: list[Transaction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "network": self.network,
            "balance": self.balance,
        }
        if self.balance_usd is not None:
            out["balanceUSD"] = self.balance_usd
        out["txCount"] = self.tx_count
        if self.token_count is not None:
            out["tokenCount"] = self.token_count
        if self.first_tx_timestamp is not None:
            out["firstTxTimestamp"] = self.first_tx_timestamp
        if self.last_tx_timestamp is not None:
            out["lastTxTimestamp"] = self.last_tx_timestamp
        out["riskScore"] = self.risk_score
        out["riskFlags"] = list(self.risk_flags)
        out["labels"] = list(self.labels)
        out["tags"] = list(self.tags)
        out["notes"] = list(self.notes)
        if self.tokens is not None:
            out["tokens"] = [t.to_dict() for t in self.tokens]
        out["recentTransactions"] = [tx.to_dict() for tx in self.recent_transactions]
        return out


def merge_unique(existing: list[str], new: list[str] | tuple[str, ...]) -> list[str]:
    """Append items from new that are not already present; order of first insertion kept."""
    out = list(existing)
    for item in new:
        if item and item not in out:
            out.append(item)
    return out
