"""
Hour Bank Interfaces Layer
==========================

Contains:
- Controllers: FastAPI route handlers for hour banks and time entries

This layer handles HTTP concerns and delegates to application services.
"""

from helpdesk.hour_bank.interfaces.controllers import hour_banks_router, time_entries_router

__all__ = ["hour_banks_router", "time_entries_router"]
