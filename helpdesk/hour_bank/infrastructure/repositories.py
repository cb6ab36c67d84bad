"""
Hour Bank Infrastructure Repositories
======================================

SQLAlchemy implementations of the hour bank and time entry repositories.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Update, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core import RepositoryException
from helpdesk.hour_bank.application import IHourBankRepository, ITimeEntryRepository
from helpdesk.hour_bank.domain import HourBank, TimeEntry
from helpdesk.hour_bank.infrastructure.models import HourBankModel, TimeEntryModel
from helpdesk.shared.timeutils import utcnow


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def build_debit_statement(
    tenant_id: str,
    hour_bank_id: UUID,
    hours: Decimal,
    allow_overdraft: bool = True,
    now: Optional[datetime] = None
) -> Update:
    """
    ``UPDATE hour_banks SET consumed_hours = consumed_hours + :hours``.

    The increment is computed by the database, so concurrent debits never
    lose each other's writes. Without overdraft the balance check is part of
    the same statement and a refused debit simply matches no row.
    """
    stmt = (
        update(HourBankModel)
        .where(HourBankModel.id == hour_bank_id, HourBankModel.tenant_id == tenant_id)
        .values(
            consumed_hours=HourBankModel.consumed_hours + hours,
            updated_at=now or utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if not allow_overdraft:
        stmt = stmt.where(HourBankModel.consumed_hours + hours <= HourBankModel.total_hours)
    return stmt


class SQLAlchemyHourBankRepository(IHourBankRepository):
    """
    SQLAlchemy implementation of hour bank repository.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, tenant_id: str, hour_bank_id: str) -> Optional[HourBank]:
        model = await self._get_model(tenant_id, hour_bank_id)
        return self._to_entity(model) if model else None

    async def list(self, tenant_id: str, customer_id: Optional[str] = None) -> List[HourBank]:
        stmt = select(HourBankModel).where(HourBankModel.tenant_id == tenant_id)
        if customer_id is not None:
            stmt = stmt.where(HourBankModel.customer_id == customer_id)
        stmt = stmt.order_by(HourBankModel.created_at.desc())

        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, bank: HourBank) -> HourBank:
        model = HourBankModel(
            id=uuid4(),
            tenant_id=bank.tenant_id,
            customer_id=bank.customer_id,
            total_hours=bank.total_hours,
            consumed_hours=bank.consumed_hours,
            hourly_rate=bank.hourly_rate,
            expires_at=bank.expires_at,
            is_active=bank.is_active,
            created_at=bank.created_at,
            updated_at=bank.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def update(self, bank: HourBank) -> HourBank:
        model = await self._get_model(bank.tenant_id, bank.id)
        if model is None:
            raise RepositoryException(f"Hour bank {bank.id} not found")

        model.total_hours = bank.total_hours
        model.hourly_rate = bank.hourly_rate
        model.expires_at = bank.expires_at
        model.is_active = bank.is_active
        model.updated_at = bank.updated_at

        await self._session.flush()
        return self._to_entity(model)

    async def debit(
        self,
        tenant_id: str,
        hour_bank_id: str,
        hours: Decimal,
        allow_overdraft: bool = True
    ) -> bool:
        bank_uuid = _parse_uuid(hour_bank_id)
        if bank_uuid is None:
            return False

        result = await self._session.execute(
            build_debit_statement(tenant_id, bank_uuid, hours, allow_overdraft)
        )
        return result.rowcount == 1

    async def _get_model(self, tenant_id: str, hour_bank_id: Optional[str]) -> Optional[HourBankModel]:
        bank_uuid = _parse_uuid(hour_bank_id)
        if bank_uuid is None:
            return None

        stmt = select(HourBankModel).where(
            HourBankModel.id == bank_uuid,
            HourBankModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_entity(model: HourBankModel) -> HourBank:
        return HourBank(
            id=str(model.id),
            tenant_id=model.tenant_id,
            customer_id=model.customer_id,
            total_hours=model.total_hours,
            consumed_hours=model.consumed_hours,
            hourly_rate=model.hourly_rate,
            expires_at=model.expires_at,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class SQLAlchemyTimeEntryRepository(ITimeEntryRepository):
    """
    SQLAlchemy implementation of time entry repository.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, tenant_id: str, entry_id: str) -> Optional[TimeEntry]:
        model = await self._get_model(tenant_id, entry_id)
        return self._to_entity(model) if model else None

    async def find_running(self, tenant_id: str, ticket_id: str, user_id: str) -> Optional[TimeEntry]:
        stmt = (
            select(TimeEntryModel)
            .where(
                TimeEntryModel.tenant_id == tenant_id,
                TimeEntryModel.ticket_id == ticket_id,
                TimeEntryModel.user_id == user_id,
                TimeEntryModel.end_time.is_(None),
            )
            .order_by(TimeEntryModel.start_time.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_for_ticket(self, tenant_id: str, ticket_id: str) -> List[TimeEntry]:
        stmt = (
            select(TimeEntryModel)
            .where(TimeEntryModel.tenant_id == tenant_id, TimeEntryModel.ticket_id == ticket_id)
            .order_by(TimeEntryModel.start_time.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, entry: TimeEntry) -> TimeEntry:
        model = TimeEntryModel(
            id=uuid4(),
            tenant_id=entry.tenant_id,
            ticket_id=entry.ticket_id,
            user_id=entry.user_id,
            start_time=entry.start_time,
            end_time=entry.end_time,
            duration=entry.duration,
            hour_bank_id=_parse_uuid(entry.hour_bank_id),
            description=entry.description,
            created_at=entry.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def update(self, entry: TimeEntry) -> TimeEntry:
        model = await self._get_model(entry.tenant_id, entry.id)
        if model is None:
            raise RepositoryException(f"Time entry {entry.id} not found")

        model.end_time = entry.end_time
        model.duration = entry.duration
        model.hour_bank_id = _parse_uuid(entry.hour_bank_id)
        model.description = entry.description

        await self._session.flush()
        return self._to_entity(model)

    async def _get_model(self, tenant_id: str, entry_id: Optional[str]) -> Optional[TimeEntryModel]:
        entry_uuid = _parse_uuid(entry_id)
        if entry_uuid is None:
            return None

        stmt = select(TimeEntryModel).where(
            TimeEntryModel.id == entry_uuid,
            TimeEntryModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_entity(model: TimeEntryModel) -> TimeEntry:
        return TimeEntry(
            id=str(model.id),
            tenant_id=model.tenant_id,
            ticket_id=model.ticket_id,
            user_id=model.user_id,
            start_time=model.start_time,
            end_time=model.end_time,
            duration=model.duration,
            hour_bank_id=str(model.hour_bank_id) if model.hour_bank_id else None,
            description=model.description,
            created_at=model.created_at,
        )
