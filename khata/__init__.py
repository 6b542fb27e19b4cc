"""
Khata - Kirana Credit Ledger

Tracks udhaar (credit given) and jama (payments received) for the
customers of a small grocery shop.

DESIGN PRINCIPLES:
1. Balances are derived from transactions, never typed in
2. No silent corrections
3. Every mutation is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Khata Team"
