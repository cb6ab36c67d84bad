"""
Hour Bank Application DTOs
===========================

Request and response models for hour banks and time entries.

Hours and money are ``Decimal`` end to end and serialize as strings, so no
precision is lost between the database and the client.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.shared.timeutils import as_utc

HourBankStatusStr = Literal["Expired", "Inactive", "Expiring Soon", "Low Balance", "Active"]
HourBankWarningStr = Literal["expired", "inactive", "expiring_soon", "running_low"]
FinishActionStr = Literal["stop", "pause"]
LocaleStr = Literal["pt-AO", "pt-BR", "en-US"]


# ========== Request DTOs ==========

class HourBankCreateDTO(BaseModel):
    """DTO for creating an hour bank. Consumed hours always start at zero."""
    model_config = ConfigDict(extra="forbid")

    customer_id: str = Field(..., min_length=1, description="Customer owning the bank")
    total_hours: Decimal = Field(..., ge=0, max_digits=8, decimal_places=2, description="Purchased hours")
    hourly_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2, description="Price per hour")
    expires_at: Optional[datetime] = Field(None, description="Expiry instant; never expires when omitted")
    is_active: bool = Field(True)

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v


class HourBankUpdateDTO(BaseModel):
    """
    DTO for updating an hour bank (top-up, rate, expiry, activation).

    ``consumed_hours`` is not accepted here: it only changes through debits.
    """
    model_config = ConfigDict(extra="forbid")

    total_hours: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    hourly_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v


class TimeEntryCreateDTO(BaseModel):
    """
    DTO for starting a timer or recording a manual entry.

    With ``duration`` the entry is manual: it is finalised immediately and
    debits the bank. Without it a timer starts at ``start_time`` (now by
    default).
    """
    model_config = ConfigDict(extra="forbid")

    ticket_id: str = Field(..., min_length=1, description="Internal ticket UUID")
    hour_bank_id: Optional[str] = Field(None, description="Bank to debit; untracked work when omitted")
    start_time: Optional[datetime] = None
    duration: Optional[Decimal] = Field(None, gt=0, max_digits=8, decimal_places=2, description="Hours, manual entries only")
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("start_time")
    @classmethod
    def normalize_start(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v

    @property
    def is_manual(self) -> bool:
        return self.duration is not None


class TimeEntryUpdateDTO(BaseModel):
    """
    DTO for stopping or pausing a running entry.

    ``end_time`` defaults to now and ``duration`` to the elapsed time in
    hours; both are only needed when the client wants to record its own.
    """
    model_config = ConfigDict(extra="forbid")

    action: FinishActionStr = Field("stop")
    end_time: Optional[datetime] = None
    duration: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    hour_bank_id: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("end_time")
    @classmethod
    def normalize_end(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v


# ========== Response DTOs ==========

class HourBankDisplay(BaseModel):
    """Locale-formatted values, ready for display."""
    locale: LocaleStr
    total_hours: str
    consumed_hours: str
    remaining_hours: str
    usage_percentage: str
    hourly_rate: Optional[str] = None
    total_value: Optional[str] = None


class HourBankResponse(BaseModel):
    """Response model for an hour bank with its derived balance."""
    id: str
    tenant_id: str
    customer_id: str
    total_hours: Decimal
    consumed_hours: Decimal
    remaining_hours: Decimal = Field(..., description="Negative when overdrawn")
    usage_percentage: float = Field(..., description="0 when the bank has no hours")
    hourly_rate: Optional[Decimal] = None
    total_value: Optional[Decimal] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    status: HourBankStatusStr
    warnings: List[HourBankWarningStr] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    display: Optional[HourBankDisplay] = None


class TimeEntryResponse(BaseModel):
    """Response model for a time entry."""
    id: str
    tenant_id: str
    ticket_id: str
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[Decimal] = None
    hour_bank_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    is_running: bool
    elapsed_seconds: int = Field(..., description="Recomputed from start_time for running entries")
    elapsed: str = Field(..., description="Elapsed time as HH:MM:SS or MM:SS")


class TimeEntryListResponse(BaseModel):
    time_entries: List[TimeEntryResponse]
    total_duration: Decimal = Field(..., description="Sum of finalised durations, hours")

