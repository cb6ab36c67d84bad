"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA configuration, ticket SLA status, alerts,
compliance reports and the audit trail.

Controllers are thin - they delegate to application services.
"""

from datetime import date, datetime, time, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import get_session
from helpdesk.shared.api.context import RequestContext, get_request_context, require_admin
from helpdesk.shared.infrastructure.logging import get_logger, log_latency
from helpdesk.sla.application import (
    AlertListResponse,
    AlertResponse,
    ComplianceSummary,
    DeadlineStatusResponse,
    IngestResponse,
    ISLAAlertRepository,
    ISLAConfigRepository,
    ISLALogRepository,
    ITicketRepository,
    SLAAlertService,
    SLAConfigCreateDTO,
    SLAConfigResponse,
    SLAConfigService,
    SLAConfigUpdateDTO,
    SLALogListResponse,
    SLALogResponse,
    SLALogService,
    SLAReportResponse,
    SLAReportService,
    SLAService,
    TicketIngestRequest,
    TicketSLAResponse,
)
from helpdesk.sla.application.dto import PriorityStr, SLALogActionStr
from helpdesk.sla.domain import (
    ComplianceTally,
    DeadlineStatus,
    SLAAlert,
    SLAConfig,
    SLALog,
    SLANotApplicable,
    SLAReport,
)
from helpdesk.sla.infrastructure import (
    SQLAlchemyAlertRepository,
    SQLAlchemySLAConfigRepository,
    SQLAlchemySLALogRepository,
    SQLAlchemyTicketRepository,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

SLA_CONFIG_CREATE_EXAMPLE = {
    "priority": "high",
    "first_response_minutes": 60,
    "resolution_minutes": 480,
    "business_hours_start": "08:00",
    "business_hours_end": "17:00",
    "business_days": [1, 2, 3, 4, 5],
    "timezone": "Africa/Luanda"
}

TICKET_SLA_RESPONSE_EXAMPLE = {
    "ticket_id": "123e4567-e89b-12d3-a456-426614174000",
    "external_id": "TICKET-001",
    "priority": "high",
    "category_id": None,
    "status": "open",
    "created_at": "2024-01-12T16:30:00Z",
    "updated_at": "2024-01-12T16:30:00Z",
    "sla_applicable": True,
    "config_id": "7d4f0c6e-2b1a-4f61-9a57-0f0a8e8b5d11",
    "first_response": {
        "sla_type": "first_response",
        "due_at": "2024-01-15T08:30:00Z",
        "budget_minutes": 60,
        "state": "pending",
        "event_at": None,
        "remaining_minutes": 45.0,
        "elapsed_minutes": None,
        "is_compliant": None
    },
    "resolution": {
        "sla_type": "resolution",
        "due_at": "2024-01-15T15:30:00Z",
        "budget_minutes": 480,
        "state": "pending",
        "event_at": None,
        "remaining_minutes": 465.0,
        "elapsed_minutes": None,
        "is_compliant": None
    },
    "is_compliant": False,
    "is_breached": False
}

SLA_REPORT_EXAMPLE = {
    "period_start": "2024-01-01T00:00:00Z",
    "period_end": "2024-01-31T23:59:59.999999Z",
    "total_tickets": 40,
    "compliant_tickets": 34,
    "breached_tickets": 4,
    "at_risk_tickets": 1,
    "compliance_rate": 85.0,
    "average_response_minutes": 38.5,
    "average_resolution_minutes": 301.25,
    "by_priority": {}
}


# ========== Dependencies ==========

async def get_config_repository(
    session: AsyncSession = Depends(get_session)
) -> ISLAConfigRepository:
    return SQLAlchemySLAConfigRepository(session)


async def get_ticket_repository(
    session: AsyncSession = Depends(get_session)
) -> ITicketRepository:
    return SQLAlchemyTicketRepository(session)


async def get_alert_repository(
    session: AsyncSession = Depends(get_session)
) -> ISLAAlertRepository:
    return SQLAlchemyAlertRepository(session)


async def get_log_repository(
    session: AsyncSession = Depends(get_session)
) -> ISLALogRepository:
    return SQLAlchemySLALogRepository(session)


async def get_config_service(
    config_repo: ISLAConfigRepository = Depends(get_config_repository),
    log_repo: ISLALogRepository = Depends(get_log_repository)
) -> SLAConfigService:
    """Get SLA config service instance."""
    return SLAConfigService(config_repo, log_repo)


async def get_sla_service(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    config_repo: ISLAConfigRepository = Depends(get_config_repository)
) -> SLAService:
    """Get SLA service instance."""
    return SLAService(ticket_repo, config_repo)


async def get_alert_service(
    sla_service: SLAService = Depends(get_sla_service),
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    alert_repo: ISLAAlertRepository = Depends(get_alert_repository),
    log_repo: ISLALogRepository = Depends(get_log_repository)
) -> SLAAlertService:
    """Get SLA alert service instance."""
    return SLAAlertService(sla_service, ticket_repo, alert_repo, log_repo)


async def get_report_service(
    sla_service: SLAService = Depends(get_sla_service),
    ticket_repo: ITicketRepository = Depends(get_ticket_repository)
) -> SLAReportService:
    return SLAReportService(sla_service, ticket_repo)


async def get_log_service(
    log_repo: ISLALogRepository = Depends(get_log_repository)
) -> SLALogService:
    return SLALogService(log_repo)


# ========== Response mapping ==========

def _config_response(config: SLAConfig) -> SLAConfigResponse:
    return SLAConfigResponse.model_validate(config)


def _deadline_response(deadline: DeadlineStatus) -> DeadlineStatusResponse:
    return DeadlineStatusResponse(
        sla_type=deadline.sla_type,
        due_at=deadline.due_at,
        budget_minutes=deadline.budget_minutes,
        state=deadline.state,
        event_at=deadline.event_at,
        remaining_minutes=deadline.remaining_minutes,
        elapsed_minutes=deadline.elapsed_minutes,
        is_compliant=deadline.is_compliant,
    )


def _alert_response(alert: SLAAlert) -> AlertResponse:
    return AlertResponse.model_validate(alert)


def _log_response(log: SLALog) -> SLALogResponse:
    return SLALogResponse.model_validate(log)


def _summary(tally: ComplianceTally) -> dict:
    return {
        "total_tickets": tally.total_tickets,
        "compliant_tickets": tally.compliant_tickets,
        "breached_tickets": tally.breached_tickets,
        "at_risk_tickets": tally.at_risk_tickets,
        "compliance_rate": tally.compliance_rate,
        "average_response_minutes": tally.average_response_minutes,
        "average_resolution_minutes": tally.average_resolution_minutes,
    }


def _report_response(report: SLAReport) -> SLAReportResponse:
    return SLAReportResponse(
        period_start=report.period_start,
        period_end=report.period_end,
        by_priority={
            priority: ComplianceSummary(**_summary(tally))
            for priority, tally in report.by_priority.items()
        },
        **_summary(report.overall),
    )


# ========== SLA configuration ==========

@router.get(
    "/configs",
    response_model=List[SLAConfigResponse],
    summary="List SLA configurations"
)
async def list_configs(
    priority: Optional[PriorityStr] = Query(None, description="Filter by priority"),
    category_id: Optional[str] = Query(None, description="Filter by category"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    context: RequestContext = Depends(get_request_context),
    service: SLAConfigService = Depends(get_config_service)
):
    configs = await service.list_configs(context.tenant_id, priority, category_id, is_active)
    return [_config_response(c) for c in configs]


@router.get(
    "/configs/{config_id}",
    response_model=SLAConfigResponse,
    summary="Get an SLA configuration",
    responses={404: {"description": "Config not found"}}
)
async def get_config(
    config_id: str,
    context: RequestContext = Depends(get_request_context),
    service: SLAConfigService = Depends(get_config_service)
):
    return _config_response(await service.get_config(context.tenant_id, config_id))


@router.post(
    "/configs",
    response_model=SLAConfigResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an SLA configuration",
    description="""
    Create the SLA policy for a priority, optionally narrowed to one category.

    **Business days** use 0 = Sunday ... 6 = Saturday (Mon-Fri is `[1, 2, 3, 4, 5]`).

    **Defaults**: 09:00-18:00, Monday to Friday, the service's default timezone.

    Only tenant or global administrators may create configs.
    """,
    responses={
        201: {"description": "Config created"},
        403: {"description": "Caller is not an administrator"},
        409: {"description": "An active config already covers this priority and category"},
        422: {
            "description": "Invalid business hours",
            "content": {"application/json": {"example": SLA_CONFIG_CREATE_EXAMPLE}}
        }
    }
)
async def create_config(
    request: SLAConfigCreateDTO,
    context: RequestContext = Depends(require_admin),
    service: SLAConfigService = Depends(get_config_service)
):
    return _config_response(await service.create_config(context.tenant_id, request, context.user_id))


@router.patch(
    "/configs/{config_id}",
    response_model=SLAConfigResponse,
    summary="Update an SLA configuration",
    responses={404: {"description": "Config not found"}, 409: {"description": "Duplicate active config"}}
)
async def update_config(
    config_id: str,
    request: SLAConfigUpdateDTO,
    context: RequestContext = Depends(require_admin),
    service: SLAConfigService = Depends(get_config_service)
):
    return _config_response(await service.update_config(context.tenant_id, config_id, request, context.user_id))


@router.delete(
    "/configs/{config_id}",
    response_model=SLAConfigResponse,
    summary="Deactivate an SLA configuration",
    description="Configs are never removed; deleting one deactivates it.",
    responses={404: {"description": "Config not found"}}
)
async def deactivate_config(
    config_id: str,
    context: RequestContext = Depends(require_admin),
    service: SLAConfigService = Depends(get_config_service)
):
    return _config_response(await service.deactivate_config(context.tenant_id, config_id, context.user_id))


# ========== Tickets ==========

@router.post(
    "/tickets",
    response_model=IngestResponse,
    summary="Ingest tickets for SLA tracking",
    description="""
    Ingest a batch of tickets for SLA tracking.

    **Idempotent**: Tickets are identified by `id` (external ticket ID). If a ticket
    already exists and the new `updated_at` is newer, the ticket is updated.
    """
)
async def ingest_tickets(
    request: TicketIngestRequest,
    context: RequestContext = Depends(get_request_context),
    sla_service: SLAService = Depends(get_sla_service)
):
    with log_latency(logger, "ticket_ingest", tenant_id=context.tenant_id):
        return await sla_service.ingest_tickets(context.tenant_id, request)


@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAResponse,
    summary="Get ticket SLA status",
    description="""
    Deadlines and per-deadline state of one ticket.

    **States**: `pending`, `at_risk`, `breached`, `met`, `met_late`.
    A ticket with no matching active config reports `sla_applicable: false`.
    """,
    responses={
        200: {
            "description": "Ticket SLA information",
            "content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket_sla(
    ticket_id: str,
    context: RequestContext = Depends(get_request_context),
    sla_service: SLAService = Depends(get_sla_service)
):
    ticket = await sla_service.get_ticket(context.tenant_id, ticket_id)
    result = await sla_service.evaluate(ticket)

    response = TicketSLAResponse(
        ticket_id=ticket.id,
        external_id=ticket.external_id,
        priority=ticket.priority,
        category_id=ticket.category_id,
        status=ticket.status,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        sla_applicable=not isinstance(result, SLANotApplicable),
    )
    if isinstance(result, SLANotApplicable):
        return response

    response.config_id = result.config_id
    response.first_response = _deadline_response(result.first_response)
    response.resolution = _deadline_response(result.resolution)
    response.is_compliant = result.is_compliant
    response.is_breached = result.is_breached
    return response


# ========== Alerts & reports ==========

@router.get(
    "/alerts",
    response_model=AlertListResponse,
    summary="List unresolved SLA alerts",
    description="""
    Evaluates every open ticket of the tenant, raising any new at-risk or
    breach alert, then returns the tenant's unresolved alerts.

    Evaluation is idempotent: a ticket never gets two alerts of the same type.
    """
)
async def list_alerts(
    context: RequestContext = Depends(get_request_context),
    alert_service: SLAAlertService = Depends(get_alert_service)
):
    with log_latency(logger, "sla_alert_evaluation", tenant_id=context.tenant_id):
        new_alerts = await alert_service.evaluate_tenant(context.tenant_id)

    alerts = await alert_service.list_open_alerts(context.tenant_id)
    return AlertListResponse(
        alerts=[_alert_response(a) for a in alerts],
        total=len(alerts),
        new_alerts=len(new_alerts),
    )


@router.get(
    "/reports",
    response_model=SLAReportResponse,
    summary="SLA compliance report",
    description="""
    Compliance over tickets created or resolved between `start_date` and
    `end_date` (both inclusive, UTC days). Tickets without an applicable SLA
    are left out.

    - `compliant_tickets`: both deadlines met
    - `breached_tickets`: either deadline breached or met late
    - `compliance_rate`: compliant / total x 100, 0 when there are no tickets
    - Averages are business minutes from creation to the event
    """,
    responses={
        200: {
            "description": "Compliance report",
            "content": {"application/json": {"example": SLA_REPORT_EXAMPLE}}
        }
    }
)
async def get_report(
    start_date: date = Query(..., description="First day of the period"),
    end_date: date = Query(..., description="Last day of the period"),
    context: RequestContext = Depends(get_request_context),
    report_service: SLAReportService = Depends(get_report_service)
):
    period_start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    period_end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)

    with log_latency(logger, "sla_report", tenant_id=context.tenant_id):
        report = await report_service.generate(context.tenant_id, period_start, period_end)

    return _report_response(report)


@router.get(
    "/logs",
    response_model=SLALogListResponse,
    summary="SLA audit trail",
    description="""
    Config changes (`created`, `updated`, `deactivated`), breaches
    (`violation`) and alerts closed by a recorded response or resolution
    (`resolution`), newest first.

    Filter by `ticket_id` (internal UUID) to see one ticket's history.
    """
)
async def list_logs(
    ticket_id: Optional[str] = Query(None, description="Only entries for this ticket"),
    action: Optional[SLALogActionStr] = Query(None, description="Filter by action"),
    event_type: Optional[str] = Query(None, description="Filter by event type, e.g. resolution_breach"),
    date_from: Optional[date] = Query(None, description="First day, inclusive (UTC)"),
    date_to: Optional[date] = Query(None, description="Last day, inclusive (UTC)"),
    context: RequestContext = Depends(get_request_context),
    log_service: SLALogService = Depends(get_log_service)
):
    logs = await log_service.list_logs(
        context.tenant_id,
        ticket_id=ticket_id,
        action=action,
        event_type=event_type,
        date_from=datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None,
        date_to=datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None,
    )
    return SLALogListResponse(logs=[_log_response(entry) for entry in logs], total=len(logs))


# Export router for inclusion in main app
sla_router = router
