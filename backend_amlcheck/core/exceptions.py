"""
Application-level exceptions.

Every failure the service can surface is a WalletCheckError subclass carrying
a stable `code`, so the API layer maps it to one HTTP status without string
matching. An address that is merely invalid is not an exception at the adapter
level (it is an is_valid=False result); InvalidAddressError is raised only by
the wallet-info pipeline, which cannot proceed without a valid address.
"""

from __future__ import annotations

from enum import Enum


class UpstreamErrorKind(str, Enum):
    """Failure categories for explorer / price API calls."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    INVALID_RESPONSE = "invalid_response"


UPSTREAM_MESSAGES = {
    UpstreamErrorKind.NOT_FOUND: "Account not found",
    UpstreamErrorKind.RATE_LIMITED: "API rate limit exceeded",
    UpstreamErrorKind.NETWORK_ERROR: "Network error",
    UpstreamErrorKind.INVALID_RESPONSE: "Invalid API response",
}


class WalletCheckError(Exception):
    """Base class for all AML Check domain errors."""

    code = "error"

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class UnknownNetworkError(WalletCheckError):
    """Address matches no supported chain pattern."""

    code = "unknown_network"

    def __init__(self, address: str = ""):
        super().__init__("Unknown network")
        self.address = address


class InvalidAddressError(WalletCheckError):
    """Address matches a chain pattern but fails that chain's deep validation."""

    code = "invalid_address"

    def __init__(self, address: str, network: str):
        super().__init__(f"Invalid {network} address")
        self.address = address
        self.network = network


class UnsupportedNetworkError(WalletCheckError):
    """Chain tag is unknown or has no wallet-info implementation enabled."""

    code = "unsupported_network"

    def __init__(self, network: str):
        super().__init__(f"Network not supported: {network}")
        self.network = network


class UpstreamError(WalletCheckError):
    """Explorer or price API failure, categorised by kind."""

    def __init__(self, kind: UpstreamErrorKind, detail: str | None = None):
        super().__init__(UPSTREAM_MESSAGES[kind], detail)
        self.kind = kind

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.kind.value

    def __repr__(self) -> str:
        return f"UpstreamError({self.kind.value!r}, detail={self.detail!r})"
