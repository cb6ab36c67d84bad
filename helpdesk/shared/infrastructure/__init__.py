"""
Infrastructure Layer
=====================

Low-level technical concerns shared across modules (structured logging).
"""
