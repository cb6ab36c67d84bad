"""
SLA Module
==========

Bounded Context for Service Level Agreement tracking.

Responsibilities:
- Manage per-tenant SLA configurations (by priority and category)
- Compute business-hours deadlines for first response and resolution
- Classify each deadline and raise idempotent at-risk/breach alerts
- Aggregate compliance reports over a period
"""

__version__ = "1.0.0"
