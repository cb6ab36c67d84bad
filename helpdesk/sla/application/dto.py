"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Request bodies reject unknown fields.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional, Literal
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from helpdesk.shared.timeutils import as_utc


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
TicketStatusStr = Literal["open", "in_progress", "waiting_customer", "resolved", "closed"]
SLATypeStr = Literal["first_response", "resolution"]
SLAStateStr = Literal["pending", "at_risk", "breached", "met", "met_late"]
AlertTypeStr = Literal[
    "first_response_at_risk", "resolution_at_risk",
    "first_response_breached", "resolution_breached"
]

SLALogActionStr = Literal["created", "updated", "deactivated", "violation", "resolution"]

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _check_business_days(days: Optional[List[int]]) -> Optional[List[int]]:
    if days is None:
        return days
    if not days:
        raise ValueError("at least one business day is required")
    if any(d < 0 or d > 6 for d in days):
        raise ValueError("business days must be between 0 (Sunday) and 6 (Saturday)")
    return sorted(set(days))


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown timezone: {value}")
    return value


# ========== Request DTOs ==========

class SLAConfigCreateDTO(BaseModel):
    """DTO for creating an SLA configuration."""
    model_config = ConfigDict(extra="forbid")

    priority: PriorityStr = Field(..., description="Ticket priority the config applies to")
    category_id: Optional[str] = Field(None, description="Restrict to one ticket category")
    first_response_minutes: int = Field(..., gt=0, description="First response budget in business minutes")
    resolution_minutes: int = Field(..., gt=0, description="Resolution budget in business minutes")
    business_hours_start: str = Field("09:00", pattern=HHMM_PATTERN, description="Opening time, HH:MM")
    business_hours_end: str = Field("18:00", pattern=HHMM_PATTERN, description="Closing time, HH:MM")
    business_days: List[int] = Field(
        default_factory=lambda: [1, 2, 3, 4, 5],
        description="Weekday indices, 0 = Sunday ... 6 = Saturday"
    )
    timezone: Optional[str] = Field(None, description="IANA timezone, defaults to the service default")
    is_active: bool = Field(True, description="Whether the config is in effect")

    @field_validator("business_days")
    @classmethod
    def validate_business_days(cls, v: List[int]) -> List[int]:
        return _check_business_days(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)

    @model_validator(mode="after")
    def validate_window(self) -> "SLAConfigCreateDTO":
        """Ensure the business day has a positive length."""
        if self.business_hours_start >= self.business_hours_end:
            raise ValueError("business_hours_start must be before business_hours_end")
        return self


class SLAConfigUpdateDTO(BaseModel):
    """DTO for partially updating an SLA configuration."""
    model_config = ConfigDict(extra="forbid")

    first_response_minutes: Optional[int] = Field(None, gt=0)
    resolution_minutes: Optional[int] = Field(None, gt=0)
    business_hours_start: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    business_hours_end: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    business_days: Optional[List[int]] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        """Fields may be left out of a partial update, never cleared."""
        if isinstance(data, dict):
            cleared = sorted(name for name, value in data.items() if value is None)
            if cleared:
                raise ValueError(f"fields cannot be null: {', '.join(cleared)}")
        return data

    @field_validator("business_days")
    @classmethod
    def validate_business_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_business_days(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)


class TicketIngestRequest(BaseModel):
    """Request model for ticket ingestion."""
    model_config = ConfigDict(extra="forbid")

    tickets: List["TicketCreateDTO"] = Field(
        ...,
        description="List of tickets to ingest"
    )


class TicketCreateDTO(BaseModel):
    """DTO for creating or updating a single ticket, keyed by its external ID."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="External ticket ID")
    priority: PriorityStr = Field(..., description="Ticket priority")
    category_id: Optional[str] = Field(None, description="Ticket category")
    status: TicketStatusStr = Field(default="open", description="Ticket status")
    subject: str = Field(..., min_length=1, description="Ticket subject")
    created_at: datetime = Field(..., description="Ticket creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    first_response_at: Optional[datetime] = Field(None, description="First response time")
    resolved_at: Optional[datetime] = Field(None, description="Resolution time")
    closed_at: Optional[datetime] = Field(None, description="Close time")

    @field_validator("created_at", "updated_at", "first_response_at", "resolved_at", "closed_at")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Timestamps without an offset are taken as UTC."""
        return as_utc(v) if v is not None else v

    @field_validator("updated_at")
    @classmethod
    def validate_updated_at(cls, v: datetime, info) -> datetime:
        """Ensure updated_at is not before created_at."""
        if "created_at" in info.data and v < info.data["created_at"]:
            raise ValueError("updated_at cannot be before created_at")
        return v


# ========== Response DTOs ==========

class SLAConfigResponse(BaseModel):
    """Response model for an SLA configuration."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    priority: PriorityStr
    category_id: Optional[str] = None
    first_response_minutes: int
    resolution_minutes: int
    business_hours_start: str
    business_hours_end: str
    business_days: List[int]
    timezone: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeadlineStatusResponse(BaseModel):
    """Response model for one SLA clock."""
    model_config = ConfigDict(from_attributes=True)

    sla_type: SLATypeStr
    due_at: datetime = Field(..., description="Deadline (UTC)")
    budget_minutes: int = Field(..., description="Business minutes allowed")
    state: SLAStateStr
    event_at: Optional[datetime] = Field(None, description="When the response/resolution happened")
    remaining_minutes: Optional[float] = Field(None, description="Business minutes left")
    elapsed_minutes: Optional[float] = Field(None, description="Business minutes taken")
    is_compliant: Optional[bool] = Field(None, description="None while undetermined")


class TicketSLAResponse(BaseModel):
    """Response model for ticket SLA information."""
    ticket_id: str = Field(..., description="Internal ticket UUID")
    external_id: str = Field(..., description="External ticket ID")
    priority: PriorityStr
    category_id: Optional[str] = None
    status: TicketStatusStr
    created_at: datetime
    updated_at: datetime

    sla_applicable: bool = Field(..., description="False when no active SLA config matches")
    config_id: Optional[str] = None
    first_response: Optional[DeadlineStatusResponse] = None
    resolution: Optional[DeadlineStatusResponse] = None
    is_compliant: Optional[bool] = Field(None, description="Both deadlines met")
    is_breached: Optional[bool] = Field(None, description="Either deadline breached or met late")


class AlertResponse(BaseModel):
    """Response model for SLA alert."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Alert ID")
    ticket_id: str = Field(..., description="Ticket UUID")
    alert_type: AlertTypeStr
    severity: PriorityStr = Field(..., description="Mirrors the ticket priority")
    message: str
    due_at: datetime
    created_at: datetime
    resolved_at: Optional[datetime] = None


class AlertListResponse(BaseModel):
    """Unresolved alerts after evaluating the tenant's open tickets."""
    alerts: List[AlertResponse]
    total: int
    new_alerts: int = Field(..., description="Alerts raised by this evaluation")


class SLALogResponse(BaseModel):
    """Response model for one audit trail entry."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: SLALogActionStr
    event_type: str = Field(..., description="e.g. config_created, resolution_breach")
    description: str
    ticket_id: Optional[str] = None
    config_id: Optional[str] = None
    user_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    elapsed_minutes: Optional[float] = Field(None, description="Business minutes taken, for ticket events")
    created_at: datetime


class SLALogListResponse(BaseModel):
    """Audit trail entries, newest first."""
    logs: List[SLALogResponse]
    total: int


class ComplianceSummary(BaseModel):
    """Compliance counters for a set of tickets."""
    total_tickets: int
    compliant_tickets: int
    breached_tickets: int
    at_risk_tickets: int
    compliance_rate: float = Field(..., ge=0, le=100, description="Percentage of compliant tickets")
    average_response_minutes: Optional[float] = Field(None, description="Business minutes to first response")
    average_resolution_minutes: Optional[float] = Field(None, description="Business minutes to resolution")


class SLAReportResponse(ComplianceSummary):
    """Response model for the SLA compliance report."""
    period_start: datetime
    period_end: datetime
    by_priority: Dict[str, ComplianceSummary] = Field(default_factory=dict)


class IngestResponse(BaseModel):
    """Response model for ticket ingestion."""
    created: int = Field(..., description="Number of new tickets created")
    updated: int = Field(..., description="Number of existing tickets updated")
    failed: int = Field(default=0, description="Number of failed ingestions")
    errors: List[str] = Field(default_factory=list, description="Error messages")


# Forward references
TicketIngestRequest.model_rebuild()
