"""
Test that amlcheck_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from amlcheck_logging and use the logger."""
    from backend_amlcheck.amlcheck_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_secrets_are_masked():
    from backend_amlcheck.amlcheck_logging.logger import _mask_secrets, mask_secret

    event = {
        "event_type": "upstream_request_failed",
        "apikey": "ABCDEF123456",
        "url": "https://api.etherscan.io/v2/api?module=account&apikey=ABCDEF123456&action=balance",
    }
    out = _mask_secrets(None, "info", dict(event))
    assert "ABCDEF123456" not in out["apikey"]
    assert "ABCDEF123456" not in out["url"]
    assert "action=balance" in out["url"]
    assert "ABCDEF123456" not in mask_secret("ABCDEF123456")


def test_short_address_and_bind_address():
    from backend_amlcheck.amlcheck_logging import bind_address, short_address

    assert short_address("abc") == "abc"
    assert short_address("0x1111111111111111111111111111111111111111") == "0x11111111111111..."
    log = bind_address("0x1111111111111111111111111111111111111111", "ethereum")
    log.info("wallet_info_state", state="done")
