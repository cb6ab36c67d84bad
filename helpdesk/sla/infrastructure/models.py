"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base
from helpdesk.config import Priority, TicketStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SLAConfigModel(Base):
    """
    Database model for SLA configuration.

    Maps to the 'sla_configs' table.
    """
    __tablename__ = "sla_configs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    priority: Mapped[str] = mapped_column(String(50), nullable=False)

    # Budgets in business minutes
    first_response_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    # Business hours, "HH:MM" in the config's timezone
    business_hours_start: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    business_hours_end: Mapped[str] = mapped_column(String(5), nullable=False, default="18:00")
    business_days: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5])
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_sla_configs_lookup", "tenant_id", "priority", "category_id", "is_active"),
    )


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Business identifier (external ticket ID)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # SLA attributes
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketStatus.OPEN)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # SLA tracking
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_tickets_tenant_external_id"),
    )


class SLAAlertModel(Base):
    """
    Database model for SLA Alert entity.

    Maps to the 'sla_alerts' table. The unique constraint keeps at most one
    alert per ticket and type, whatever the number of concurrent evaluations.
    """
    __tablename__ = "sla_alerts"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Ticket reference
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)

    # Alert details
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("ticket_id", "alert_type", name="uq_sla_alerts_ticket_type"),
    )


class SLALogModel(Base):
    """
    Database model for the SLA audit trail.

    Maps to the 'sla_logs' table. Rows are only ever inserted.
    """
    __tablename__ = "sla_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Subject of the entry
    ticket_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=True, index=True)
    config_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("sla_configs.id"), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    old_values: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    elapsed_minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_sla_logs_tenant_created", "tenant_id", "created_at"),
    )
