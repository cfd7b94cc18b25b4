"""
Supply Kernel - unit budget & stock consistency core

Ledgers and coordination primitives shared by every workflow:
- Budget ledger with atomic check-and-debit per unit and period
- Stock ledger that never lets a quantity go negative
- Transfer coordinator moving stock between locations as one unit of work
- Immutable movement and financial transaction records
"""

__version__ = "0.1.0"
