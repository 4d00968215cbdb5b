"""
Core types shared across chains, upstream clients, analytics and the API:
the Chain tag, the WalletInfo record and the error taxonomy.
"""
