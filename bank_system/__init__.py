"""
Bank System

A ledger-backed banking service: customers, accounts and an append-only
transaction history, with deposit, withdraw and transfer operations that keep
balances non-negative and transfers atomic.
"""

__version__ = "1.0.0"
