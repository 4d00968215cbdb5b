"""
FastAPI server for wallet checks.

POST /api/wallet/validate (also POST /wallet/check, the path the mobile app uses)
    -> {network, isValid, icon, title}
POST /api/wallet/info -> WalletInfo JSON
GET  /api/blockchair/stats -> Blockchair Bitcoin stats passthrough
GET  /health -> {status, timestamp, uptime}

Errors are always {"detail": <message>, "code": <kind>}. Config via env (see
config.settings). The lifespan owns the shared httpx.AsyncClient, the cache and
its sweeper thread.
"""

from __future__ import annotations

import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend_amlcheck import __version__
from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.api_server.middleware import RateLimitMiddleware, RequestLoggingMiddleware
from backend_amlcheck.config.env import SUPPORTED_NETWORKS
from backend_amlcheck.config.settings import Settings, get_settings
from backend_amlcheck.core.exceptions import WalletCheckError
from backend_amlcheck.services.cache import SHUTDOWN_JOIN_TIMEOUT_SEC, TTLCache, run_cache_sweeper
from backend_amlcheck.services.wallet_info import WalletInfoService, build_wallet_info_service

logger = get_logger(__name__)

ADDRESS_MIN_LEN = 26
ADDRESS_MAX_LEN = 100

STATUS_BY_CODE = {
    "bad_request": 400,
    "unknown_network": 400,
    "invalid_address": 400,
    "not_found": 404,
    "rate_limited": 429,
    "unsupported_network": 501,
    "network_error": 502,
    "invalid_response": 502,
}
INTERNAL_ERROR_MESSAGE = "Internal server error"


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class WalletCheckRequest(BaseModel):
    """POST /api/wallet/validate body."""

    address: str = Field(..., min_length=ADDRESS_MIN_LEN, max_length=ADDRESS_MAX_LEN, description="Wallet address")

    @field_validator("address", mode="before")
    @classmethod
    def _strip_address(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class WalletInfoRequest(WalletCheckRequest):
    """POST /api/wallet/info body. network is optional; when absent it is detected from the address."""

    network: str | None = Field(None, description="bitcoin | ethereum | solana (case-insensitive)")

    @field_validator("network")
    @classmethod
    def _check_network(cls, v: str | None) -> str | None:
        if v is None:
            return None
        tag = v.strip().lower()
        if tag not in SUPPORTED_NETWORKS:
            raise ValueError(f"network must be one of {', '.join(SUPPORTED_NETWORKS)}")
        return tag


class AddressCheckResponse(BaseModel):
    network: str
    isValid: bool
    icon: str
    title: str


class TransactionResponse(BaseModel):
    hash: str
    timestamp: str = Field(..., description="YYYY-MM-DDTHH:MM:SSZ")
    type: str = Field(..., description="incoming | outgoing")
    amount: str
    amountUSD: str | None = None
    tokenSymbol: str | None = None
    tokenAddress: str | None = None


class TokenResponse(BaseModel):
    address: str
    symbol: str
    name: str
    balance: str
    transferCount: int
    balanceUSD: str | None = None
    lastTransferTimestamp: str | None = None


class WalletInfoResponse(BaseModel):
    """POST /api/wallet/info response. Optional fields are omitted when unknown."""

    address: str
    network: str
    balance: str = Field(..., description="Decimal string in display units (BTC, ETH, SOL)")
    balanceUSD: str | None = None
    txCount: int = Field(..., ge=0)
    tokenCount: int | None = None
    firstTxTimestamp: str | None = None
    lastTxTimestamp: str | None = None
    riskScore: int = Field(..., ge=0, le=100)
    riskFlags: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    tokens: list[TokenResponse] | None = None
    recentTransactions: list[TransactionResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float = Field(..., description="Seconds since startup")


class ErrorResponse(BaseModel):
    detail: str
    code: str


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse} for status in (400, 404, 429, 500, 501, 502)
}


# -----------------------------------------------------------------------------
# Lifespan and dependencies
# -----------------------------------------------------------------------------


def get_service(request: Request) -> WalletInfoService:
    return request.app.state.service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the HTTP client, cache and service (unless injected); run the cache sweeper thread."""
    settings: Settings = app.state.settings
    cache: TTLCache = app.state.cache
    http: httpx.AsyncClient | None = None
    if getattr(app.state, "service", None) is None:
        http = httpx.AsyncClient(timeout=settings.upstream_timeout_sec, follow_redirects=True)
        app.state.service = build_wallet_info_service(settings, http, cache)

    stop_event = threading.Event()
    sweeper = threading.Thread(
        target=run_cache_sweeper,
        args=(cache, stop_event, settings.cache_sweep_interval_sec),
        name="cache-sweeper",
        daemon=True,
    )
    sweeper.start()
    app.state.started_at = time.monotonic()
    logger.info(
        "api_started",
        app_env=settings.app_env,
        enabled_networks=list(settings.enabled_networks),
    )

    yield

    stop_event.set()
    sweeper.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
    if sweeper.is_alive():
        logger.warning("cache_sweeper_shutdown_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
    if http is not None:
        await http.aclose()
        app.state.service = None
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# Error handlers
# -----------------------------------------------------------------------------


def _error(status_code: int, detail: str, code: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code}, headers=headers)


def wallet_check_error_handler(request: Request, exc: WalletCheckError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 500)
    logger.info("api_request_failed", path=request.url.path, code=exc.code, status_code=status)
    return _error(status, exc.message, exc.code)


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{field}: {first.get('msg', 'invalid value')}" if field else str(first.get("msg"))
    else:
        detail = "Invalid request"
    return _error(400, detail, "bad_request")


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return _error(exc.status_code, str(exc.detail), "http_error", headers=getattr(exc, "headers", None))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api_unhandled_error", path=request.url.path, error=str(exc))
    settings: Settings = request.app.state.settings
    detail = INTERNAL_ERROR_MESSAGE if settings.is_production else str(exc) or INTERNAL_ERROR_MESSAGE
    return _error(500, detail, "internal_error")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    *,
    service: WalletInfoService | None = None,
    cache: TTLCache | None = None,
) -> FastAPI:
    """
    Build the ASGI app. Tests pass a service built on mocked upstream clients;
    otherwise the lifespan builds one from settings.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Backend AML Check API",
        description="Wallet validation, balances, activity and heuristic risk score for Bitcoin, Ethereum and Solana.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = cache or TTLCache(default_ttl_sec=settings.cache_ttl_sec)
    app.state.service = service
    app.state.started_at = time.monotonic()

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max,
        window_sec=settings.rate_limit_window_sec,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origin.split(",") if o.strip()] or ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(WalletCheckError, wallet_check_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.post("/api/wallet/validate", response_model=AddressCheckResponse, responses=ERROR_RESPONSES)
    @app.post("/wallet/check", response_model=AddressCheckResponse, responses=ERROR_RESPONSES)
    def validate_wallet(
        body: WalletCheckRequest,
        service: WalletInfoService = Depends(get_service),
    ) -> JSONResponse:
        """Detect the address's network and validate it. Unknown formats are a 400 with code unknown_network."""
        check = service.validate_address(body.address)
        return JSONResponse(content=check.to_dict())

    @app.post("/api/wallet/info", response_model=WalletInfoResponse, responses=ERROR_RESPONSES)
    async def wallet_info(
        body: WalletInfoRequest,
        service: WalletInfoService = Depends(get_service),
    ) -> JSONResponse:
        """Balance, activity, tokens, labels and risk score for one address."""
        info = await service.get_wallet_info(body.address, body.network)
        return JSONResponse(content=info.to_dict())

    @app.get("/api/blockchair/stats", responses=ERROR_RESPONSES)
    async def blockchair_stats(service: WalletInfoService = Depends(get_service)) -> JSONResponse:
        """Blockchair Bitcoin network stats, passed through (cached 60s)."""
        return JSONResponse(content=await service.chain_stats())

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        """Liveness probe: API is up."""
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
        )
