"""Household budgeting ledger.

Keeps account balances, balance history and savings-goal progress consistent
as ledger events occur, and computes budget summaries on demand.
"""

__version__ = "1.0.0"
