"""Explorer and price API clients. All failures surface as core.exceptions.UpstreamError."""

from backend_amlcheck.upstream.base import UpstreamClient, get_json
from backend_amlcheck.upstream.bitcoin import BlockCypherClient
from backend_amlcheck.upstream.ethereum import EtherscanClient
from backend_amlcheck.upstream.prices import CoinGeckoPriceClient, best_effort
from backend_amlcheck.upstream.solana import BlockchairClient

__all__ = [
    "BlockCypherClient",
    "BlockchairClient",
    "CoinGeckoPriceClient",
    "EtherscanClient",
    "UpstreamClient",
    "best_effort",
    "get_json",
]
