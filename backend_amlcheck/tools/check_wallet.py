"""
Check one wallet from the command line, without the HTTP server.

Usage:
  python -m backend_amlcheck.tools.check_wallet ADDRESS [--network ethereum] [--validate-only]

Prints the validation result, or the wallet info JSON followed by a risk level
line. Exit code 1 on any error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import httpx

from backend_amlcheck.amlcheck_logging import get_logger
from backend_amlcheck.analytics.risk_scorer import risk_level
from backend_amlcheck.config.env import SUPPORTED_NETWORKS
from backend_amlcheck.config.settings import Settings, get_settings
from backend_amlcheck.core.exceptions import WalletCheckError
from backend_amlcheck.services.cache import TTLCache
from backend_amlcheck.services.wallet_info import WalletInfoService, build_wallet_info_service

logger = get_logger(__name__)


async def run(address: str, network: str | None, settings: Settings) -> dict:
    async with httpx.AsyncClient(timeout=settings.upstream_timeout_sec, follow_redirects=True) as http:
        service = build_wallet_info_service(settings, http, TTLCache(settings.cache_ttl_sec))
        info = await service.get_wallet_info(address, network)
    return info.to_dict()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate a Bitcoin / Ethereum / Solana address and print its wallet info and risk score.",
    )
    parser.add_argument("address", help="Wallet address")
    parser.add_argument("--network", choices=SUPPORTED_NETWORKS, help="Skip detection and use this network")
    parser.add_argument("--validate-only", action="store_true", help="Only detect the network and validate")
    args = parser.parse_args(argv)

    settings = get_settings()
    try:
        if args.validate_only:
            check = WalletInfoService({}, enabled_networks=settings.enabled_networks).validate_address(args.address)
            print(json.dumps(check.to_dict(), indent=2))
            return 0 if check.is_valid else 1
        result = asyncio.run(run(args.address, args.network, settings))
    except WalletCheckError as e:
        print(f"[check_wallet] ERROR ({e.code}): {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    print(f"[check_wallet] risk level: {risk_level(result['riskScore'])} ({result['riskScore']}/100)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
