"""
Loan Engine

Loan amortization and payment engine for a personal-finance tracker:
installment math, frequency conversion, overdue catch-up amounts,
payment splitting and the loan lifecycle, with Decimal precision throughout.
"""

__version__ = "1.0.0"
