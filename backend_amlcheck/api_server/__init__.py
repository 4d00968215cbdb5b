"""
API server package: HTTP interface for address validation and wallet info.

Delegates to services.wallet_info; maps domain errors to JSON error responses.
"""
