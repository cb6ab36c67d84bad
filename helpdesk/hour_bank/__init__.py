"""
Hour Bank Module
================

Bounded Context for prepaid support hours.

Responsibilities:
- Track purchased and consumed hours per customer bank
- Derive balance, usage, value and expiry status
- Record time entries against tickets and debit the chosen bank
"""

__version__ = "1.0.0"
