"""
Enrichment steps over a normalized WalletInfo.

Every function is pure: it returns a new record and never mutates its input.
Prices arrive as Lookup values, so a missing price leaves the USD fields unset
instead of failing the request.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from backend_amlcheck.analytics.known_addresses import lookup_known_address
from backend_amlcheck.analytics.normalizer import format_decimal, scale_units, to_iso_utc
from backend_amlcheck.analytics.risk_scorer import RiskAssessment
from backend_amlcheck.analytics.wallet_classifier import WalletPattern
from backend_amlcheck.core.models import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    MAX_RECENT_TRANSACTIONS,
    Chain,
    Lookup,
    Token,
    Transaction,
    WalletInfo,
    merge_unique,
)

WETH_CONTRACT = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USD_QUANTUM = Decimal("0.01")


def to_usd(amount: str, price: float) -> str:
    """amount x price, rounded half-up to cents: ("1.5", 40000) -> "60000.00"."""
    value = (Decimal(amount) * Decimal(str(price))).quantize(USD_QUANTUM, rounding=ROUND_HALF_UP)
    return format(value, "f")


def with_usd_values(info: WalletInfo, price: Lookup) -> WalletInfo:
    """Fill balance_usd and amount_usd of native transactions. Token transactions keep theirs unset."""
    if not price.available:
        return info
    txs = [
        tx if tx.token_address is not None else replace(tx, amount_usd=to_usd(tx.amount, price.value))
        for tx in info.recent_transactions
    ]
    return replace(info, balance_usd=to_usd(info.balance, price.value), recent_transactions=txs)


def with_known_address_info(info: WalletInfo, address: str) -> WalletInfo:
    """Merge label / entity type / description of a publicly attributed address."""
    entry = lookup_known_address(Chain(info.network), address)
    if entry is None:
        return info
    return replace(
        info,
        labels=merge_unique(info.labels, [entry.name]),
        tags=merge_unique(info.tags, [entry.type]),
        notes=merge_unique(info.notes, [entry.description]),
    )


def with_wallet_type(info: WalletInfo, pattern: WalletPattern | None) -> WalletInfo:
    if pattern is None:
        return info
    return replace(
        info,
        labels=merge_unique(info.labels, [pattern.label]),
        tags=merge_unique(info.tags, [pattern.type]),
        notes=merge_unique(info.notes, [pattern.description]),
    )


def with_risk(info: WalletInfo, assessment: RiskAssessment) -> WalletInfo:
    return replace(
        info,
        risk_score=assessment.risk_score,
        risk_flags=merge_unique(info.risk_flags, assessment.risk_flags),
        notes=merge_unique(info.notes, assessment.notes),
    )


def token_contracts(token_transfers: list[dict[str, Any]]) -> list[str]:
    """Distinct lowercased contract addresses, in first-seen order."""
    seen: dict[str, None] = {}
    for t in token_transfers:
        contract = str(t.get("contractAddress") or "").lower()
        if contract:
            seen.setdefault(contract, None)
    return list(seen)


@dataclass
class _TokenTally:
    symbol: str
    name: str
    balance: Decimal = Decimal(0)
    transfer_count: int = 0
    last_transfer: str | None = None


def _decimals(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _timestamp(value: Any) -> str | None:
    try:
        return to_iso_utc(value)
    except (ValueError, OverflowError, OSError):
        return None


def with_token_analysis(
    info: WalletInfo,
    token_transfers: list[dict[str, Any]],
    eth_price: Lookup,
    token_prices: dict[str, Lookup],
) -> WalletInfo:
    """
    Net ERC-20 balances from the wallet's transfer events.

    Per contract: + value when the wallet receives, - value when it sends,
    scaled by tokenDecimal. USD value from token_prices (WETH falls back to
    the ETH price). Tokens are ordered by transfer count, most active first;
    transfers also join recent_transactions.
    """
    me = info.address.lower()
    tallies: dict[str, _TokenTally] = {}
    token_txs: list[Transaction] = []

    for t in token_transfers:
        contract = str(t.get("contractAddress") or "").lower()
        if not contract:
            continue
        amount = scale_units(t.get("value", 0), _decimals(t.get("tokenDecimal")))
        sender = str(t.get("from") or "").lower()
        receiver = str(t.get("to") or "").lower()

        tally = tallies.setdefault(
            contract,
            _TokenTally(symbol=str(t.get("tokenSymbol") or ""), name=str(t.get("tokenName") or "")),
        )
        if receiver == me:
            tally.balance += amount
        if sender == me:
            tally.balance -= amount
        tally.transfer_count += 1

        ts = _timestamp(t.get("timeStamp"))
        if ts is None:
            continue
        if tally.last_transfer is None or ts > tally.last_transfer:
            tally.last_transfer = ts
        if t.get("hash"):
            token_txs.append(
                Transaction(
                    hash=str(t["hash"]),
                    timestamp=ts,
                    direction=DIRECTION_OUTGOING if sender == me else DIRECTION_INCOMING,
                    amount=format_decimal(amount),
                    token_symbol=tally.symbol or None,
                    token_address=contract,
                )
            )

    tokens: list[Token] = []
    for contract, tally in tallies.items():
        price = token_prices.get(contract) or Lookup.unavailable("not requested")
        if not price.available and contract == WETH_CONTRACT:
            price = eth_price
        balance = format_decimal(tally.balance)
        tokens.append(
            Token(
                address=contract,
                symbol=tally.symbol,
                name=tally.name,
                balance=balance,
                transfer_count=tally.transfer_count,
                balance_usd=to_usd(balance, price.value) if price.available else None,
                last_transfer_timestamp=tally.last_transfer,
            )
        )
    tokens.sort(key=lambda tok: tok.transfer_count, reverse=True)

    recent = sorted(
        list(info.recent_transactions) + token_txs,
        key=lambda tx: tx.timestamp,
        reverse=True,
    )[:MAX_RECENT_TRANSACTIONS]
    return replace(info, tokens=tokens, token_count=len(tokens), recent_transactions=recent)
