"""
Hour Bank Infrastructure Models
================================

SQLAlchemy ORM models for hour banks and time entries.

Hours use NUMERIC(8, 2) and money NUMERIC(10, 2), so balances never pick up
binary floating point error.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base
from helpdesk.shared.timeutils import utcnow


class HourBankModel(Base):
    """
    Database model for HourBank entity.

    Maps to the 'hour_banks' table.
    """
    __tablename__ = "hour_banks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    # Only ever changed by the relative debit update
    consumed_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class TimeEntryModel(Base):
    """
    Database model for TimeEntry entity.

    Maps to the 'time_entries' table.
    """
    __tablename__ = "time_entries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ticket_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    hour_bank_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("hour_banks.id"), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
