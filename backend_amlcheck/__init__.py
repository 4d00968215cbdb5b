"""
Backend AML Check: wallet info and risk scoring service.

Takes a wallet address, detects its chain (Bitcoin, Ethereum, Solana),
validates it, pulls balance and transaction data from public explorers and
returns a normalized wallet record with a heuristic risk score. Modular
layout: chains, upstream clients, analytics, services, API server.
"""

__version__ = "0.1.0"
