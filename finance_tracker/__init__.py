"""
Finance Tracker - Source Package

A personal finance tracker: income, expenses and investments are recorded
as transactions, savings goals accumulate linked investments, and every
dashboard figure is derived from the transaction log.

DESIGN PRINCIPLES:
1. The transaction log is the source of truth; summaries are never stored
2. Goal balances follow their linked investments exactly once
3. Storage and AI failures never corrupt ledger state
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
