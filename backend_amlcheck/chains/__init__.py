"""
Chain detection and address validation (Bitcoin, Ethereum, Solana).
"""

from backend_amlcheck.chains.adapters import ADAPTERS, ChainAdapter, get_adapter
from backend_amlcheck.chains.detector import NetworkDetector

__all__ = ["ADAPTERS", "ChainAdapter", "get_adapter", "NetworkDetector"]
