"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA ==========
    default_timezone: str = Field(
        default="Africa/Luanda",
        description="Timezone used for new SLA configurations when none is given"
    )
    sla_risk_threshold_percent: float = Field(
        default=20.0,
        description="A deadline is at risk once this share of its budget or less remains",
        gt=0,
        lt=100
    )

    # ========== Hour Bank ==========
    hour_bank_low_balance_percent: float = Field(
        default=80.0,
        description="Usage percentage above which a bank is running low",
        gt=0,
        le=100
    )
    hour_bank_expiring_soon_days: int = Field(
        default=30,
        description="Days before expiry at which a bank is expiring soon",
        ge=0
    )
    hour_bank_allow_overdraft: bool = Field(
        default=True,
        description="Allow debits that push consumed hours past total hours"
    )
    hour_bank_block_inactive_debits: bool = Field(
        default=False,
        description="Reject debits against inactive or expired banks"
    )

    # ========== Localization ==========
    default_locale: str = Field(default="pt-AO", description="Locale for formatted values")

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the default timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v

    @field_validator("default_locale")
    @classmethod
    def validate_locale(cls, v: str) -> str:
        if v not in SUPPORTED_LOCALES:
            raise ValueError(f"default_locale must be one of {SUPPORTED_LOCALES}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

SUPPORTED_LOCALES = ["pt-AO", "pt-BR", "en-US"]


class Priority:
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketStatus:
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_CUSTOMER = "waiting_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SLAType:
    """The two independent clocks tracked per ticket."""
    FIRST_RESPONSE = "first_response"
    RESOLUTION = "resolution"


class SLAState:
    """Per-deadline states."""
    PENDING = "pending"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"
    MET_LATE = "met_late"


class AlertType:
    """SLA alert types."""
    FIRST_RESPONSE_AT_RISK = "first_response_at_risk"
    RESOLUTION_AT_RISK = "resolution_at_risk"
    FIRST_RESPONSE_BREACHED = "first_response_breached"
    RESOLUTION_BREACHED = "resolution_breached"

    @staticmethod
    def for_state(sla_type: str, state: str) -> str:
        """Alert type raised by ``sla_type`` entering ``state``."""
        suffix = "at_risk" if state == SLAState.AT_RISK else "breached"
        return f"{sla_type}_{suffix}"


class SLALogAction:
    """Kinds of entries in the SLA audit trail."""
    CREATED = "created"
    UPDATED = "updated"
    DEACTIVATED = "deactivated"
    VIOLATION = "violation"
    RESOLUTION = "resolution"


class HourBankStatus:
    """Display status of an hour bank (first match wins)."""
    EXPIRED = "Expired"
    INACTIVE = "Inactive"
    EXPIRING_SOON = "Expiring Soon"
    LOW_BALANCE = "Low Balance"
    ACTIVE = "Active"


class HourBankWarning:
    """Flags that may co-occur on a single bank."""
    EXPIRED = "expired"
    INACTIVE = "inactive"
    EXPIRING_SOON = "expiring_soon"
    RUNNING_LOW = "running_low"


class Role:
    """Roles supplied by the upstream auth layer."""
    GLOBAL_ADMIN = "global_admin"
    TENANT_ADMIN = "tenant_admin"
    AGENT = "agent"
    CUSTOMER = "customer"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    Priority.CRITICAL, Priority.HIGH,
    Priority.MEDIUM, Priority.LOW
]
OPEN_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.WAITING_CUSTOMER
]
VALID_STATUSES = OPEN_STATUSES + [TicketStatus.RESOLVED, TicketStatus.CLOSED]
VALID_SLA_TYPES = [SLAType.FIRST_RESPONSE, SLAType.RESOLUTION]
VALID_ALERT_TYPES = [
    AlertType.FIRST_RESPONSE_AT_RISK, AlertType.RESOLUTION_AT_RISK,
    AlertType.FIRST_RESPONSE_BREACHED, AlertType.RESOLUTION_BREACHED
]
VALID_LOG_ACTIONS = [
    SLALogAction.CREATED, SLALogAction.UPDATED, SLALogAction.DEACTIVATED,
    SLALogAction.VIOLATION, SLALogAction.RESOLUTION
]
ADMIN_ROLES = [Role.GLOBAL_ADMIN, Role.TENANT_ADMIN]


# Global settings instance
settings = get_settings()
