"""Utilities package for the timber-ledger application."""
