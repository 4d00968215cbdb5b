"""
Raw explorer payload -> WalletInfo.

One normalizer per chain, dispatched through NORMALIZERS (exhaustive over
Chain). Amounts are converted from base units (satoshi, lamport, wei) into
plain decimal strings with no trailing zeros; timestamps into
YYYY-MM-DDTHH:MM:SSZ. recent_transactions keeps the 10 most recent entries,
newest first.

Normalization is deterministic: the same payload always yields the same record.
risk_score is left at 0 here; scoring happens after enrichment.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from web3 import Web3

from backend_amlcheck.amlcheck_logging import get_logger, short_address
from backend_amlcheck.core.exceptions import UpstreamError, UpstreamErrorKind
from backend_amlcheck.core.models import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    MAX_RECENT_TRANSACTIONS,
    Chain,
    Transaction,
    WalletInfo,
)

logger = get_logger(__name__)

SATOSHI_DECIMALS = 8
LAMPORT_DECIMALS = 9

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
ISO_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")
_FRACTION_RE = re.compile(r"\.\d+")
_DIRECTIONS = (DIRECTION_INCOMING, DIRECTION_OUTGOING)


def _invalid(field: str) -> UpstreamError:
    return UpstreamError(UpstreamErrorKind.INVALID_RESPONSE, field)


# -----------------------------------------------------------------------------
# Units and timestamps
# -----------------------------------------------------------------------------


def format_decimal(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros: Decimal("1.50") -> "1.5"."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def scale_units(raw: Any, decimals: int) -> Decimal:
    """Integer base units -> Decimal display units (exact)."""
    try:
        return Decimal(int(str(raw).strip())).scaleb(-decimals)
    except (TypeError, ValueError, InvalidOperation) as e:
        raise _invalid("amount") from e


def wei_to_ether(wei: Any) -> Decimal:
    try:
        return Decimal(Web3.from_wei(int(str(wei).strip()), "ether"))
    except (TypeError, ValueError, InvalidOperation) as e:
        raise _invalid("amount") from e


def to_iso_utc(value: Any) -> str | None:
    """
    Normalize a timestamp to YYYY-MM-DDTHH:MM:SSZ.

    Accepts unix seconds (int or digit string), ISO 8601 with or without
    fractional seconds / offset, and "YYYY-MM-DD HH:MM:SS" (assumed UTC).
    Empty values give None; anything unparsable raises ValueError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(int(value), tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.isdigit():
            dt = datetime.fromtimestamp(int(text), tz=timezone.utc)
        else:
            text = _FRACTION_RE.sub("", text.replace(" ", "T", 1))
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            dt = datetime.fromisoformat(text)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(ISO_FORMAT)


def _iso_or_invalid(value: Any, field: str) -> str | None:
    try:
        return to_iso_utc(value)
    except (ValueError, OverflowError, OSError) as e:
        raise _invalid(field) from e


def _as_int(value: Any, field: str, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise _invalid(field) from e


def _recent(transactions: list[Transaction]) -> list[Transaction]:
    ordered = sorted(transactions, key=lambda tx: tx.timestamp, reverse=True)
    return ordered[:MAX_RECENT_TRANSACTIONS]


def _span(timestamps: list[str]) -> tuple[str | None, str | None]:
    if not timestamps:
        return None, None
    return min(timestamps), max(timestamps)


# -----------------------------------------------------------------------------
# Bitcoin (BlockCypher)
# -----------------------------------------------------------------------------


def _blockcypher_txrefs(raw: dict[str, Any]) -> list[Transaction]:
    out: list[Transaction] = []
    for ref in raw.get("txrefs") or []:
        ts = _iso_or_invalid(ref.get("confirmed") or ref.get("received"), "timestamp")
        if not ts or not ref.get("tx_hash"):
            continue
        outgoing = _as_int(ref.get("tx_input_n"), "tx_input_n", default=-1) >= 0
        out.append(
            Transaction(
                hash=str(ref["tx_hash"]),
                timestamp=ts,
                direction=DIRECTION_OUTGOING if outgoing else DIRECTION_INCOMING,
                amount=format_decimal(abs(scale_units(ref.get("value", 0), SATOSHI_DECIMALS))),
            )
        )
    return out


def _blockcypher_txs(raw: dict[str, Any], address: str) -> list[Transaction]:
    """The /full form: each tx lists inputs and outputs with their addresses."""
    out: list[Transaction] = []
    for tx in raw.get("txs") or []:
        ts = _iso_or_invalid(tx.get("confirmed") or tx.get("received"), "timestamp")
        if not ts or not tx.get("hash"):
            continue
        outgoing = any(address in (i.get("addresses") or []) for i in tx.get("inputs") or [])
        satoshi = 0
        for o in tx.get("outputs") or []:
            mine = address in (o.get("addresses") or [])
            # outgoing: what left to others; incoming: what arrived here
            if mine != outgoing:
                satoshi += _as_int(o.get("value"), "value")
        out.append(
            Transaction(
                hash=str(tx["hash"]),
                timestamp=ts,
                direction=DIRECTION_OUTGOING if outgoing else DIRECTION_INCOMING,
                amount=format_decimal(scale_units(satoshi, SATOSHI_DECIMALS)),
            )
        )
    return out


def _from_blockcypher(raw: dict[str, Any]) -> WalletInfo:
    address = raw.get("address")
    if not address:
        raise _invalid("address")
    balance = raw.get("final_balance", raw.get("balance"))
    if balance is None:
        raise _invalid("balance")

    if raw.get("txrefs") is not None:
        transactions = _blockcypher_txrefs(raw)
    else:
        transactions = _blockcypher_txs(raw, address)
    first, last = _span([tx.timestamp for tx in transactions])

    return WalletInfo(
        address=address,
        network=Chain.BITCOIN.value,
        balance=format_decimal(scale_units(balance, SATOSHI_DECIMALS)),
        tx_count=_as_int(raw.get("final_n_tx", raw.get("n_tx")), "txCount"),
        first_tx_timestamp=first,
        last_tx_timestamp=last,
        recent_transactions=_recent(transactions),
    )


# -----------------------------------------------------------------------------
# Ethereum (Etherscan)
# -----------------------------------------------------------------------------


def etherscan_direction(tx: dict[str, Any], address: str) -> str:
    sender = str(tx.get("from") or "").lower()
    return DIRECTION_OUTGOING if sender == address.lower() else DIRECTION_INCOMING


def _from_etherscan(raw: dict[str, Any]) -> WalletInfo:
    address = raw.get("address")
    if not address:
        raise _invalid("address")
    balance = raw.get("balance")
    if balance is None or balance == "":
        raise _invalid("balance")

    txs = raw.get("transactions") or []
    transactions: list[Transaction] = []
    for tx in txs:
        ts = _iso_or_invalid(tx.get("timeStamp"), "timestamp")
        if not ts or not tx.get("hash"):
            continue
        transactions.append(
            Transaction(
                hash=str(tx["hash"]),
                timestamp=ts,
                direction=etherscan_direction(tx, address),
                amount=format_decimal(wei_to_ether(tx.get("value", 0))),
            )
        )
    first, last = _span([tx.timestamp for tx in transactions])

    return WalletInfo(
        address=address,
        network=Chain.ETHEREUM.value,
        balance=format_decimal(wei_to_ether(balance)),
        tx_count=len(txs),
        first_tx_timestamp=first,
        last_tx_timestamp=last,
        recent_transactions=_recent(transactions),
    )


# -----------------------------------------------------------------------------
# Solana (Blockchair dashboard)
# -----------------------------------------------------------------------------


def _blockchair_entry(raw: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    data = raw.get("data")
    if not isinstance(data, dict) or not data:
        raise _invalid("address")
    address, entry = next(iter(data.items()))
    if not address or not isinstance(entry, dict):
        raise _invalid("address")
    return address, entry


def _blockchair_transactions(entries: list[Any]) -> list[Transaction]:
    out: list[Transaction] = []
    for item in entries:
        # bare signatures carry no time or amount
        if not isinstance(item, dict):
            continue
        tx_hash = item.get("hash") or item.get("signature") or item.get("transaction_hash")
        ts = _iso_or_invalid(item.get("time") or item.get("block_time"), "timestamp")
        if not tx_hash or not ts:
            continue
        change = _as_int(item.get("balance_change", item.get("change")), "balance_change")
        out.append(
            Transaction(
                hash=str(tx_hash),
                timestamp=ts,
                direction=DIRECTION_OUTGOING if change < 0 else DIRECTION_INCOMING,
                amount=format_decimal(abs(scale_units(change, LAMPORT_DECIMALS))),
            )
        )
    return out


def _from_blockchair(raw: dict[str, Any]) -> WalletInfo:
    address, entry = _blockchair_entry(raw)
    account = entry.get("address")
    if not isinstance(account, dict) or account.get("balance") is None:
        raise _invalid("balance")

    transactions = _blockchair_transactions(entry.get("transactions") or [])
    seen = [
        ts
        for ts in (
            _iso_or_invalid(account.get(k), "timestamp")
            for k in ("first_seen_receiving", "first_seen_spending", "last_seen_receiving", "last_seen_spending")
        )
        if ts
    ]
    first, last = _span(seen + [tx.timestamp for tx in transactions])
    tags = [str(t) for t in account.get("tags") or [] if t]

    return WalletInfo(
        address=address,
        network=Chain.SOLANA.value,
        balance=format_decimal(scale_units(account["balance"], LAMPORT_DECIMALS)),
        tx_count=_as_int(account.get("transaction_count"), "txCount", default=len(transactions)),
        first_tx_timestamp=first,
        last_tx_timestamp=last,
        tags=list(dict.fromkeys(tags)),
        recent_transactions=_recent(transactions),
    )


NORMALIZERS: dict[Chain, Callable[[dict[str, Any]], WalletInfo]] = {
    Chain.BITCOIN: _from_blockcypher,
    Chain.ETHEREUM: _from_etherscan,
    Chain.SOLANA: _from_blockchair,
}


def from_raw(chain: Chain, raw: dict[str, Any]) -> WalletInfo:
    """Build the canonical record from a chain's raw payload. Raises UpstreamError(INVALID_RESPONSE)."""
    if not isinstance(raw, dict):
        raise _invalid("payload")
    info = NORMALIZERS[chain](raw)
    logger.debug(
        "wallet_normalized",
        network=chain.value,
        address=short_address(info.address),
        tx_count=info.tx_count,
        recent=len(info.recent_transactions),
    )
    return info


def _is_decimal(text: Any) -> bool:
    try:
        Decimal(str(text))
        return text not in (None, "")
    except InvalidOperation:
        return False


def validate(info: WalletInfo) -> WalletInfo:
    """
    Re-check the record's invariants before it leaves the service.

    Raises UpstreamError(INVALID_RESPONSE, detail=<field>) on the first violation.
    """
    if not info.address:
        raise _invalid("address")
    if info.network not in {c.value for c in Chain}:
        raise _invalid("network")
    if not _is_decimal(info.balance):
        raise _invalid("balance")
    if info.balance_usd is not None and not _is_decimal(info.balance_usd):
        raise _invalid("balanceUSD")
    if not isinstance(info.tx_count, int) or info.tx_count < 0:
        raise _invalid("txCount")
    if not isinstance(info.risk_score, int) or not 0 <= info.risk_score <= 100:
        raise _invalid("riskScore")
    for field, ts in (("firstTxTimestamp", info.first_tx_timestamp), ("lastTxTimestamp", info.last_tx_timestamp)):
        if ts is not None and not ISO_TIMESTAMP_RE.match(ts):
            raise _invalid(field)
    if len(info.recent_transactions) > MAX_RECENT_TRANSACTIONS:
        raise _invalid("recentTransactions")
    for tx in info.recent_transactions:
        if not ISO_TIMESTAMP_RE.match(tx.timestamp):
            raise _invalid("recentTransactions.timestamp")
        if tx.direction not in _DIRECTIONS:
            raise _invalid("recentTransactions.type")
    for name, values in (("riskFlags", info.risk_flags), ("labels", info.labels), ("tags", info.tags)):
        if len(set(values)) != len(values):
            raise _invalid(name)
    return info
