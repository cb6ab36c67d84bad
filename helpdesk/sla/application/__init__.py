"""
SLA Application Layer
======================

Application layer for SLA module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.sla.application.dto import (
    SLAConfigCreateDTO,
    SLAConfigUpdateDTO,
    SLAConfigResponse,
    TicketIngestRequest,
    TicketCreateDTO,
    TicketSLAResponse,
    DeadlineStatusResponse,
    AlertResponse,
    AlertListResponse,
    ComplianceSummary,
    SLAReportResponse,
    SLALogResponse,
    SLALogListResponse,
    IngestResponse,
)
from helpdesk.sla.application.services import (
    SLAConfigService,
    SLAService,
    SLAAlertService,
    SLAReportService,
    SLALogService,
    SLAEvaluation,
    ISLAConfigRepository,
    ITicketRepository,
    ISLAAlertRepository,
    ISLALogRepository,
)

__all__ = [
    # DTOs
    "SLAConfigCreateDTO",
    "SLAConfigUpdateDTO",
    "SLAConfigResponse",
    "TicketIngestRequest",
    "TicketCreateDTO",
    "TicketSLAResponse",
    "DeadlineStatusResponse",
    "AlertResponse",
    "AlertListResponse",
    "ComplianceSummary",
    "SLAReportResponse",
    "SLALogResponse",
    "SLALogListResponse",
    "IngestResponse",
    # Services
    "SLAConfigService",
    "SLAService",
    "SLAAlertService",
    "SLAReportService",
    "SLALogService",
    "SLAEvaluation",
    # Repository Interfaces
    "ISLAConfigRepository",
    "ITicketRepository",
    "ISLAAlertRepository",
    "ISLALogRepository",
]
