"""
AML Check analytics.

Turns raw explorer payloads into a scored WalletInfo.
Modules: normalizer, enricher, known_addresses, wallet_classifier, risk_scorer.
"""

from backend_amlcheck.analytics.normalizer import from_raw, validate
from backend_amlcheck.analytics.risk_scorer import DEFAULT_WEIGHTS, RiskWeights, risk_level, score
from backend_amlcheck.analytics.wallet_classifier import classify_wallet

__all__ = [
    "from_raw",
    "validate",
    "score",
    "risk_level",
    "RiskWeights",
    "DEFAULT_WEIGHTS",
    "classify_wallet",
]
