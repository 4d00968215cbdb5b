"""
Heuristic risk scoring: WalletStats -> 0..100 score, flags and notes.

Two rulesets share one weights object. Ethereum has the richer per-transaction
stats (counterparties, contract calls, average value); Bitcoin and Solana use
the generic ruleset over what the normalized record carries. A known entity is
applied last: its risk adds to the score, except a mixer, which lifts the score
to at least mixer_floor. The result is always capped at max_score.

Signals are independent and additive; the score is a heuristic, not a verdict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.analytics.known_addresses import ENTITY_MIXER
from backend_amlcheck.core.models import DIRECTION_INCOMING, DIRECTION_OUTGOING, Chain, WalletInfo

logger = get_logger(__name__)

FLAG_VERY_HIGH_VALUE_TX = "very_high_value_tx"
FLAG_HIGH_VALUE_TX = "high_value_tx"
FLAG_NEW_WALLET = "new_wallet"
FLAG_SUSPICIOUS_PATTERN = "suspicious_pattern"
FLAG_LIMITED_COUNTERPARTIES = "limited_counterparties"
FLAG_HIGH_CONTRACT_USAGE = "high_contract_usage"
FLAG_LOW_ACTIVITY = "low_activity"
FLAG_LARGE_BALANCE = "large_balance"
FLAG_SANCTIONED_MIXER = "sanctioned_mixer"

RISK_MINIMAL = "MINIMAL"
RISK_LOW = "LOW"
RISK_MEDIUM = "MEDIUM"
RISK_HIGH = "HIGH"
RISK_VERY_HIGH = "VERY_HIGH"

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class RiskWeights:
    """Score contributions and the thresholds that trigger them."""

    # ethereum
    per_flag: int = 20
    high_value_bonus: int = 20
    new_wallet_bonus: int = 20
    few_counterparties_bonus: int = 20
    very_high_avg_value: float = 10_000
    high_avg_value: float = 1_000
    outgoing_only_min_tx: int = 10
    min_counterparties: int = 3
    counterparty_min_tx: int = 10
    contract_usage_threshold: int = 50

    # generic
    new_account: int = 20
    low_tx_count: int = 10
    large_balance: int = 15
    low_tx_count_threshold: int = 10
    large_balance_threshold: float = 100

    # shared
    new_wallet_days: float = 30
    mixer_floor: int = 90
    max_score: int = 100


DEFAULT_WEIGHTS = RiskWeights()


@dataclass(frozen=True)
class WalletStats:
    """
    Inputs to scoring. age_days is None when the first transaction is unknown.

    known_type / known_risk come from the known-address table, if attributed.
    """

    balance: float = 0.0
    tx_count: int = 0
    avg_tx_value: float = 0.0
    unique_counterparties: int = 0
    incoming_count: int = 0
    outgoing_count: int = 0
    contract_interactions: int = 0
    has_token_transfers: bool = False
    age_days: float | None = None
    known_type: str | None = None
    known_risk: int | None = None


@dataclass
class RiskAssessment:
    risk_score: int
    risk_flags: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def _to_float(value: Any) -> float:
    try:
        return float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return 0.0


def _age_days(first_seen: datetime | None, now: datetime) -> float | None:
    if first_seen is None:
        return None
    return max(0.0, (now - first_seen).total_seconds() / SECONDS_PER_DAY)


def _parse_iso(ts: str | None) -> datetime | None:
    if not ts:
        return None
    return datetime.strptime(ts, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)


def ethereum_stats(
    address: str,
    transactions: list[dict[str, Any]],
    token_transfers: list[dict[str, Any]],
    balance: str,
    now: datetime,
) -> WalletStats:
    """
    Stats from raw Etherscan txlist / tokentx entries.

    avg_tx_value is in ether. A wallet with no transactions has age 0 (new).
    """
    me = address.lower()
    total = Decimal(0)
    counterparties: set[str] = set()
    incoming = outgoing = contract_calls = 0
    first_ts: int | None = None

    for tx in transactions:
        sender = str(tx.get("from") or "").lower()
        receiver = str(tx.get("to") or "").lower()
        try:
            total += Decimal(int(tx.get("value") or 0)).scaleb(-18)
        except (ValueError, InvalidOperation):
            pass
        if sender == me:
            outgoing += 1
            if receiver:
                counterparties.add(receiver)
            # only calls the wallet makes count as contract interactions
            data = str(tx.get("input") or "")
            if data and data != "0x":
                contract_calls += 1
        else:
            incoming += 1
            if sender:
                counterparties.add(sender)
        try:
            ts = int(tx.get("timeStamp"))
        except (TypeError, ValueError):
            continue
        first_ts = ts if first_ts is None else min(first_ts, ts)
    counterparties.discard(me)

    if first_ts is None:
        age = 0.0
    else:
        age = _age_days(datetime.fromtimestamp(first_ts, tz=timezone.utc), now)

    tx_count = len(transactions)
    return WalletStats(
        balance=_to_float(balance),
        tx_count=tx_count,
        avg_tx_value=float(total / tx_count) if tx_count else 0.0,
        unique_counterparties=len(counterparties),
        incoming_count=incoming,
        outgoing_count=outgoing,
        contract_interactions=contract_calls,
        has_token_transfers=bool(token_transfers),
        age_days=age,
    )


def generic_stats(info: WalletInfo, now: datetime) -> WalletStats:
    """Stats from a normalized record (Bitcoin, Solana)."""
    directions = [tx.direction for tx in info.recent_transactions]
    return WalletStats(
        balance=_to_float(info.balance),
        tx_count=info.tx_count,
        incoming_count=directions.count(DIRECTION_INCOMING),
        outgoing_count=directions.count(DIRECTION_OUTGOING),
        age_days=_age_days(_parse_iso(info.first_tx_timestamp), now),
    )


def _score_ethereum(stats: WalletStats, w: RiskWeights) -> RiskAssessment:
    flags: list[str] = []
    notes: list[str] = []
    new_wallet = stats.age_days is not None and stats.age_days < w.new_wallet_days

    if stats.avg_tx_value > w.very_high_avg_value:
        flags.append(FLAG_VERY_HIGH_VALUE_TX)
        notes.append("Very high average transaction value")
    elif stats.avg_tx_value > w.high_avg_value:
        flags.append(FLAG_HIGH_VALUE_TX)
        notes.append("High average transaction value")

    if new_wallet:
        flags.append(FLAG_NEW_WALLET)
        notes.append("Recently created wallet")

    if stats.incoming_count == 0 and stats.outgoing_count > w.outgoing_only_min_tx:
        flags.append(FLAG_SUSPICIOUS_PATTERN)
        notes.append("Only outgoing transactions")

    few_counterparties = stats.unique_counterparties < w.min_counterparties
    if few_counterparties and stats.tx_count > w.counterparty_min_tx:
        flags.append(FLAG_LIMITED_COUNTERPARTIES)
        notes.append("Limited number of counterparties")

    if stats.contract_interactions > w.contract_usage_threshold:
        flags.append(FLAG_HIGH_CONTRACT_USAGE)
        notes.append("High smart contract interaction")

    score = len(flags) * w.per_flag
    if stats.avg_tx_value > w.high_avg_value:
        score += w.high_value_bonus
    if new_wallet:
        score += w.new_wallet_bonus
    if few_counterparties:
        score += w.few_counterparties_bonus
    return RiskAssessment(risk_score=score, risk_flags=flags, notes=notes)


def _score_generic(stats: WalletStats, w: RiskWeights) -> RiskAssessment:
    out = RiskAssessment(risk_score=0)
    if stats.age_days is not None and stats.age_days < w.new_wallet_days:
        out.risk_score += w.new_account
        out.risk_flags.append(FLAG_NEW_WALLET)
        out.notes.append("Recently created wallet")
    if stats.tx_count < w.low_tx_count_threshold:
        out.risk_score += w.low_tx_count
        out.risk_flags.append(FLAG_LOW_ACTIVITY)
        out.notes.append("Low transaction count")
    if stats.balance > w.large_balance_threshold:
        out.risk_score += w.large_balance
        out.risk_flags.append(FLAG_LARGE_BALANCE)
        out.notes.append("Large balance")
    return out


RULESETS: dict[Chain, Callable[[WalletStats, RiskWeights], RiskAssessment]] = {
    Chain.BITCOIN: _score_generic,
    Chain.ETHEREUM: _score_ethereum,
    Chain.SOLANA: _score_generic,
}


def score(chain: Chain, stats: WalletStats, weights: RiskWeights = DEFAULT_WEIGHTS) -> RiskAssessment:
    """Apply the chain's ruleset, then the known-entity adjustment; clamp to [0, max_score]."""
    result = RULESETS[chain](stats, weights)

    if stats.known_type == ENTITY_MIXER:
        result.risk_flags.append(FLAG_SANCTIONED_MIXER)
        result.notes.append("Interacts with a sanctioned mixer")
        result.risk_score = max(result.risk_score, weights.mixer_floor)
    elif stats.known_type and stats.known_risk:
        result.risk_flags.append(f"known_{stats.known_type}")
        result.risk_score += stats.known_risk

    result.risk_score = max(0, min(int(result.risk_score), weights.max_score))
    logger.debug(
        "risk_scored",
        network=chain.value,
        risk_score=result.risk_score,
        flags=result.risk_flags,
        risk_level=risk_level(result.risk_score),
    )
    return result


def risk_level(risk_score: int) -> str:
    if risk_score >= 80:
        return RISK_VERY_HIGH
    if risk_score >= 60:
        return RISK_HIGH
    if risk_score >= 40:
        return RISK_MEDIUM
    if risk_score >= 20:
        return RISK_LOW
    return RISK_MINIMAL
