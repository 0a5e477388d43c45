"""
Finance Tracker - Aggregation and Projection Engine

Backend core for a personal-finance tracker: users record income and
expense transactions, group them into categories, define budgets made of
per-category allowances, and ask for totals, net balance and a simple
forward projection.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Empty sets sum to zero, missing records fail loudly
3. Identity is passed in explicitly, never read from ambient state
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
