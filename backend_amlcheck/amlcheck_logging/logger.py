"""
Structured logging: timestamp, level, event_type, address/network context.

structlog with ISO timestamps and consistent keys so request traces can be
followed through detection, upstream fetches, enrichment and scoring. All
modules use get_logger(__name__) and log snake_case event types with keyword
context. API keys and tokens are masked before rendering.

Uses only Python stdlib logging and structlog; no backend_amlcheck imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output for production (LOG_FORMAT=json); human-readable for local
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

SECRET_KEYS = ("apikey", "api_key", "token", "x-cg-demo-api-key")
_SECRET_QUERY_RE = re.compile(r"((?:apikey|api_key|token|key)=)[^&\s]+", re.IGNORECASE)


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601, UTC)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def mask_secret(value: str) -> str:
    """Keep the first 4 characters of a secret, mask the rest."""
    if not value:
        return value
    return value[:4] + "***"


def _mask_secrets(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask secret-looking keys and api keys embedded in URLs / params."""
    for k, v in list(event_dict.items()):
        if k.lower() in SECRET_KEYS and isinstance(v, str):
            event_dict[k] = mask_secret(v)
        elif isinstance(v, str) and "=" in v:
            event_dict[k] = _SECRET_QUERY_RE.sub(r"\1***", v)
        elif isinstance(v, dict):
            event_dict[k] = {
                pk: (mask_secret(pv) if pk.lower() in SECRET_KEYS and isinstance(pv, str) else pv)
                for pk, pv in v.items()
            }
    return event_dict


def configure_structlog() -> None:
    """Configure structlog once at import: JSON, timestamp, level, event_type."""
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _mask_secrets,
    ]
    if LOG_FORMAT == "json":
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

    Log with event_type (first arg) and keyword context:
        logger = get_logger(__name__)
        logger.info("wallet_info_done", address=addr, network="ethereum", risk_score=40)
    Output (JSON): {"event_type": "wallet_info_done", "address": "...", "network": "ethereum",
    "risk_score": 40, "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)


def short_address(address: str) -> str:
    """Shorten an address for log lines."""
    address = address or ""
    return address if len(address) <= 16 else address[:16] + "..."


def bind_address(address: str, network: str | None = None) -> structlog.BoundLogger:
    """Return a logger with address (and network, when known) bound to all subsequent calls."""
    log = get_logger("backend_amlcheck").bind(address=short_address(address))
    if network:
        log = log.bind(network=network)
    return log
