"""
extrack - Personal Expense Tracker Package

Records income and expense transactions, monthly budgets, recurring
bills and saving goals for individual users.

DESIGN PRINCIPLES:
1. The database is the single source of truth
2. Every query is scoped to the owning user
3. Month-scoped data is addressed by "YYYY-MM" keys
4. Every mutation is auditable
5. The data-access handle is injected, never global
"""

__version__ = "1.0.0"
__author__ = "extrack Team"
