"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    code = "application_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    code = "domain_error"


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""

    code = "repository_error"


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    code = "validation_error"


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    code = "not_found"

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConflictException(ApplicationException):
    """Exception when a write collides with existing state."""

    code = "conflict"


class ConfigurationException(ApplicationException):
    """Exception for configuration errors (including unusable SLA business hours)."""

    code = "configuration_error"


class HourBankDebitRejected(DomainException):
    """Raised when the debit policy refuses to charge a bank."""

    code = "debit_rejected"

    def __init__(
        self,
        hour_bank_id: str,
        reason: str,
        details: Optional[dict] = None
    ):
        self.hour_bank_id = hour_bank_id
        self.reason = reason
        super().__init__(
            f"Debit against hour bank {hour_bank_id} rejected: {reason}",
            details or {"hour_bank_id": hour_bank_id, "reason": reason}
        )
