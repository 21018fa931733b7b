"""Timber Ledger - log inventory allocation and valuation engine."""

__version__ = "0.1.0"
