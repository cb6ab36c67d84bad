"""
Hour Bank Controllers (API Routes)
===================================

FastAPI routes for hour banks and time entries.

Controllers are thin - they delegate to application services.
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.hour_bank.application import (
    HourBankCreateDTO,
    HourBankDisplay,
    HourBankResponse,
    HourBankService,
    HourBankUpdateDTO,
    IHourBankRepository,
    ITimeEntryRepository,
    TimeEntryCreateDTO,
    TimeEntryListResponse,
    TimeEntryResponse,
    TimeEntryService,
    TimeEntryUpdateDTO,
)
from helpdesk.hour_bank.application.dto import LocaleStr
from helpdesk.hour_bank.domain import HourBank, TimeEntry, format_elapsed
from helpdesk.hour_bank.infrastructure import (
    SQLAlchemyHourBankRepository,
    SQLAlchemyTimeEntryRepository,
)
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.api.context import RequestContext, get_request_context, require_user
from helpdesk.shared.formatting import format_currency, format_hours, format_percentage
from helpdesk.shared.infrastructure.logging import get_logger, log_latency
from helpdesk.shared.timeutils import utcnow
from helpdesk.sla.application import ITicketRepository
from helpdesk.sla.interfaces.controllers import get_ticket_repository

logger = get_logger(__name__)
hour_banks_router = APIRouter(prefix="/hour-banks", tags=["Hour Banks"])
time_entries_router = APIRouter(prefix="/time-entries", tags=["Time Entries"])


# ========== Example payloads for Swagger ==========

HOUR_BANK_RESPONSE_EXAMPLE = {
    "id": "5f0c2a9e-8f43-4d7e-b3a1-2d9c1e6f7a10",
    "tenant_id": "tenant-1",
    "customer_id": "customer-42",
    "total_hours": "10.00",
    "consumed_hours": "9.00",
    "remaining_hours": "1.00",
    "usage_percentage": 90.0,
    "hourly_rate": "15000.00",
    "total_value": "150000.0000",
    "expires_at": None,
    "is_active": True,
    "status": "Low Balance",
    "warnings": ["running_low"],
    "created_at": "2024-01-02T09:00:00Z",
    "updated_at": "2024-03-01T17:10:00Z",
    "display": {
        "locale": "pt-AO",
        "total_hours": "10,0h",
        "consumed_hours": "9,0h",
        "remaining_hours": "1,0h",
        "usage_percentage": "90%",
        "hourly_rate": "15.000,00 Kz",
        "total_value": "150.000,00 Kz"
    }
}


# ========== Dependencies ==========

async def get_hour_bank_repository(
    session: AsyncSession = Depends(get_session)
) -> IHourBankRepository:
    return SQLAlchemyHourBankRepository(session)


async def get_time_entry_repository(
    session: AsyncSession = Depends(get_session)
) -> ITimeEntryRepository:
    return SQLAlchemyTimeEntryRepository(session)


async def get_hour_bank_service(
    bank_repo: IHourBankRepository = Depends(get_hour_bank_repository)
) -> HourBankService:
    """Get hour bank service instance."""
    return HourBankService(bank_repo)


async def get_time_entry_service(
    entry_repo: ITimeEntryRepository = Depends(get_time_entry_repository),
    bank_repo: IHourBankRepository = Depends(get_hour_bank_repository),
    ticket_repo: ITicketRepository = Depends(get_ticket_repository)
) -> TimeEntryService:
    """Get time entry service instance, with the configured debit policy."""
    return TimeEntryService(entry_repo, bank_repo, ticket_repo)


# ========== Response mapping ==========

def _display(bank: HourBank, locale: str) -> HourBankDisplay:
    return HourBankDisplay(
        locale=locale,
        total_hours=format_hours(bank.total_hours, locale),
        consumed_hours=format_hours(bank.consumed_hours, locale),
        remaining_hours=format_hours(bank.remaining_hours, locale),
        usage_percentage=format_percentage(bank.usage_percentage, locale, max_fraction_digits=0),
        hourly_rate=format_currency(bank.hourly_rate, locale) if bank.hourly_rate is not None else None,
        total_value=format_currency(bank.total_value, locale) if bank.total_value is not None else None,
    )


def _bank_response(bank: HourBank, locale: Optional[str] = None) -> HourBankResponse:
    now = utcnow()
    thresholds = {
        "expiring_soon_days": settings.hour_bank_expiring_soon_days,
        "low_balance_percent": settings.hour_bank_low_balance_percent,
    }
    return HourBankResponse(
        id=bank.id,
        tenant_id=bank.tenant_id,
        customer_id=bank.customer_id,
        total_hours=bank.total_hours,
        consumed_hours=bank.consumed_hours,
        remaining_hours=bank.remaining_hours,
        usage_percentage=round(bank.usage_percentage, 2),
        hourly_rate=bank.hourly_rate,
        total_value=bank.total_value,
        expires_at=bank.expires_at,
        is_active=bank.is_active,
        status=bank.status(now, **thresholds),
        warnings=bank.warnings(now, **thresholds),
        created_at=bank.created_at,
        updated_at=bank.updated_at,
        display=_display(bank, locale) if locale else None,
    )


def _entry_response(entry: TimeEntry) -> TimeEntryResponse:
    elapsed = entry.elapsed_seconds(utcnow())
    return TimeEntryResponse(
        id=entry.id,
        tenant_id=entry.tenant_id,
        ticket_id=entry.ticket_id,
        user_id=entry.user_id,
        start_time=entry.start_time,
        end_time=entry.end_time,
        duration=entry.duration,
        hour_bank_id=entry.hour_bank_id,
        description=entry.description,
        created_at=entry.created_at,
        is_running=entry.is_running,
        elapsed_seconds=elapsed,
        elapsed=format_elapsed(elapsed),
    )


# ========== Hour banks ==========

@hour_banks_router.get(
    "",
    response_model=List[HourBankResponse],
    summary="List hour banks",
    description="""
    Hour banks of the tenant with their derived balance.

    **Status** (first match wins): `Expired`, `Inactive`, `Expiring Soon`,
    `Low Balance`, `Active`. `warnings` lists every condition that applies.

    Pass `locale` (`pt-AO`, `pt-BR`, `en-US`) to get formatted values in `display`.
    """
)
async def list_hour_banks(
    customer_id: Optional[str] = Query(None, description="Only this customer's banks"),
    locale: Optional[LocaleStr] = Query(None, description="Locale for the display block"),
    context: RequestContext = Depends(get_request_context),
    service: HourBankService = Depends(get_hour_bank_service)
):
    with log_latency(logger, "hour_bank_list", tenant_id=context.tenant_id):
        banks = await service.list_banks(context.tenant_id, customer_id)
    return [_bank_response(b, locale) for b in banks]


@hour_banks_router.post(
    "",
    response_model=HourBankResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an hour bank"
)
async def create_hour_bank(
    request: HourBankCreateDTO,
    locale: Optional[LocaleStr] = Query(None),
    context: RequestContext = Depends(get_request_context),
    service: HourBankService = Depends(get_hour_bank_service)
):
    bank = await service.create_bank(context.tenant_id, request)
    return _bank_response(bank, locale)


@hour_banks_router.get(
    "/{hour_bank_id}",
    response_model=HourBankResponse,
    summary="Get an hour bank",
    responses={
        200: {"content": {"application/json": {"example": HOUR_BANK_RESPONSE_EXAMPLE}}},
        404: {"description": "Hour bank not found"}
    }
)
async def get_hour_bank(
    hour_bank_id: str,
    locale: Optional[LocaleStr] = Query(None),
    context: RequestContext = Depends(get_request_context),
    service: HourBankService = Depends(get_hour_bank_service)
):
    bank = await service.get_bank(context.tenant_id, hour_bank_id)
    return _bank_response(bank, locale)


@hour_banks_router.patch(
    "/{hour_bank_id}",
    response_model=HourBankResponse,
    summary="Update an hour bank",
    description="Top up total hours or change rate, expiry or active flag. Consumed hours only change through time entries."
)
async def update_hour_bank(
    hour_bank_id: str,
    request: HourBankUpdateDTO,
    locale: Optional[LocaleStr] = Query(None),
    context: RequestContext = Depends(get_request_context),
    service: HourBankService = Depends(get_hour_bank_service)
):
    bank = await service.update_bank(context.tenant_id, hour_bank_id, request)
    return _bank_response(bank, locale)


# ========== Time entries ==========

@time_entries_router.post(
    "",
    response_model=TimeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a timer or record a manual entry",
    description="""
    Without `duration` a timer starts on the ticket. With `duration` (hours)
    the entry is recorded as manual work and the hour bank is debited
    immediately.
    """,
    responses={
        404: {"description": "Ticket or hour bank not found"},
        409: {"description": "Timer already running, or debit rejected"}
    }
)
async def create_time_entry(
    request: TimeEntryCreateDTO,
    context: RequestContext = Depends(require_user),
    service: TimeEntryService = Depends(get_time_entry_service)
):
    entry = await service.create_entry(context.tenant_id, context.user_id, request)
    return _entry_response(entry)


@time_entries_router.patch(
    "/{entry_id}",
    response_model=TimeEntryResponse,
    summary="Stop or pause a timer",
    description="Finalises the entry, derives its duration and debits the hour bank.",
    responses={
        404: {"description": "Time entry or hour bank not found"},
        409: {"description": "Entry already finalised, or debit rejected"}
    }
)
async def finish_time_entry(
    entry_id: str,
    request: TimeEntryUpdateDTO,
    context: RequestContext = Depends(get_request_context),
    service: TimeEntryService = Depends(get_time_entry_service)
):
    entry = await service.finish_entry(context.tenant_id, entry_id, request)
    return _entry_response(entry)


@time_entries_router.get(
    "",
    response_model=TimeEntryListResponse,
    summary="List a ticket's time entries"
)
async def list_time_entries(
    ticket_id: str = Query(..., description="Ticket whose entries to list"),
    context: RequestContext = Depends(get_request_context),
    service: TimeEntryService = Depends(get_time_entry_service)
):
    entries = await service.list_for_ticket(context.tenant_id, ticket_id)
    total = sum((e.duration for e in entries if e.duration is not None), Decimal("0"))
    return TimeEntryListResponse(
        time_entries=[_entry_response(e) for e in entries],
        total_duration=total,
    )
