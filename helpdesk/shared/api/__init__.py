"""
Shared API Layer
================

Middleware, exception handlers and request-context dependencies shared by
every router.
"""
