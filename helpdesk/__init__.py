"""
Helpdesk Service
================

Multi-tenant helpdesk backend: SLA deadline tracking and alerting, and
prepaid hour banks debited by time entries.
"""

__version__ = "1.0.0"
