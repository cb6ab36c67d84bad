"""
Shared Kernel Module
====================

Shared infrastructure used by both bounded contexts (SLA and Hour Bank).

Architecture Pattern: Modular Monolith
- Each module (sla, hour_bank) is a bounded context
- Shared kernel contains only generic infrastructure and display helpers

DO NOT add SLA or hour bank business rules to the shared kernel.
"""
