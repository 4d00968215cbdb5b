"""
Structured logging for Backend AML Check.

JSON logs with timestamp, event_type, address and network context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_amlcheck.amlcheck_logging.logger import bind_address, get_logger, short_address

__all__ = ["get_logger", "bind_address", "short_address"]
