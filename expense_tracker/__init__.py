"""
Expense Tracker - Source Package

A personal expense tracker: record income and expenses, then
review balances, category breakdowns and monthly trends.

DESIGN PRINCIPLES:
1. Reports are pure functions of the transaction list
2. Validate at the ingestion boundary, not inside reports
3. Transactions are append-only
4. Every step must be auditable
5. Storage and sign-in are swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
