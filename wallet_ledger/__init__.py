"""
Wallet Ledger - Source Package

The ledger state engine behind a personal wallet: named accounts with
balances, income/expense transactions against them, and a running
balance history.

DESIGN PRINCIPLES:
1. Balances are maintained incrementally and always reconcile
2. The engine owns the collections; callers go through operations
3. Local storage is the source of truth for the session
4. The remote mirror is best-effort and never blocks a local write
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Wallet Ledger Team"
