"""
Tests for SLA configuration management, ticket ingestion and evaluation.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from helpdesk.config import SLAState
from helpdesk.core import ConfigurationException, ConflictException, ResourceNotFoundException
from helpdesk.sla.application import (
    SLAConfigCreateDTO,
    SLAConfigService,
    SLAConfigUpdateDTO,
    SLAService,
    TicketIngestRequest,
)
from helpdesk.sla.domain import SLANotApplicable, TicketSLAStatus
from tests.conftest import OTHER_TENANT, TENANT

LUANDA = ZoneInfo("Africa/Luanda")


def luanda(*args) -> datetime:
    return datetime(*args, tzinfo=LUANDA)


def ticket_payload(external_id="TICKET-1", **overrides):
    payload = {
        "id": external_id,
        "priority": "high",
        "subject": "Cannot log in",
        "created_at": "2024-01-15T08:00:00Z",
        "updated_at": "2024-01-15T08:00:00Z",
    }
    payload.update(overrides)
    return payload


class TestSLAConfigService:

    @pytest.mark.asyncio
    async def test_create_uses_defaults(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config = await service.create_config(
            TENANT,
            SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480),
        )

        assert config.id is not None
        assert config.business_hours_start == "09:00"
        assert config.business_hours_end == "18:00"
        assert config.business_days == [1, 2, 3, 4, 5]
        assert config.timezone == "Africa/Luanda"

    @pytest.mark.asyncio
    async def test_duplicate_active_config_is_rejected(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        dto = SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
        await service.create_config(TENANT, dto)

        with pytest.raises(ConflictException):
            await service.create_config(TENANT, dto)

    @pytest.mark.asyncio
    async def test_same_priority_allowed_per_category_and_tenant(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        await service.create_config(
            TENANT, SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
        )
        await service.create_config(
            TENANT,
            SLAConfigCreateDTO(
                priority="high", category_id="billing", first_response_minutes=30, resolution_minutes=240
            ),
        )
        await service.create_config(
            OTHER_TENANT, SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
        )

        assert len(await service.list_configs(TENANT)) == 2
        assert len(await service.list_configs(TENANT, category_id="billing")) == 1

    @pytest.mark.asyncio
    async def test_deactivated_config_frees_the_slot(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        dto = SLAConfigCreateDTO(priority="low", first_response_minutes=240, resolution_minutes=2400)
        first = await service.create_config(TENANT, dto)

        deactivated = await service.deactivate_config(TENANT, first.id)
        assert deactivated.is_active is False

        second = await service.create_config(TENANT, dto)
        assert second.is_active

        # Re-activating the old one would now collide
        with pytest.raises(ConflictException):
            await service.update_config(TENANT, first.id, SLAConfigUpdateDTO(is_active=True))

    @pytest.mark.asyncio
    async def test_update_rejects_unusable_window(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config = await service.create_config(
            TENANT, SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
        )

        with pytest.raises(ConfigurationException):
            await service.update_config(
                TENANT, config.id, SLAConfigUpdateDTO(business_hours_start="19:00")
            )

    @pytest.mark.asyncio
    async def test_configs_are_tenant_scoped(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config = await service.create_config(
            TENANT, SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
        )

        with pytest.raises(ResourceNotFoundException):
            await service.get_config(OTHER_TENANT, config.id)


class TestSLAConfigUpdateDTO:

    @pytest.mark.parametrize("field", ["timezone", "business_days", "is_active", "first_response_minutes"])
    def test_explicit_null_is_rejected(self, field):
        with pytest.raises(ValidationError, match="cannot be null"):
            SLAConfigUpdateDTO.model_validate({field: None})

    def test_omitted_fields_stay_unset(self):
        dto = SLAConfigUpdateDTO.model_validate({"resolution_minutes": 600})
        assert dto.model_dump(exclude_unset=True) == {"resolution_minutes": 600}


class TestConfigAuditTrail:

    @pytest.mark.asyncio
    async def test_create_update_and_deactivate_are_logged(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config = await service.create_config(
            TENANT,
            SLAConfigCreateDTO(priority="high", category_id="billing", first_response_minutes=60, resolution_minutes=480),
            user_id="admin-1",
        )
        await service.update_config(
            TENANT, config.id, SLAConfigUpdateDTO(first_response_minutes=30), user_id="admin-1"
        )
        await service.deactivate_config(TENANT, config.id, user_id="admin-2")

        created, updated, deactivated = log_repo.logs
        assert [log.action for log in log_repo.logs] == ["created", "updated", "deactivated"]
        assert all(log.config_id == config.id and log.ticket_id is None for log in log_repo.logs)

        assert created.event_type == "config_created"
        assert created.description == "SLA config created for priority high and category billing"
        assert created.new_values["first_response_minutes"] == 60
        assert created.user_id == "admin-1"

        assert updated.old_values == {"first_response_minutes": 60}
        assert updated.new_values == {"first_response_minutes": 30}

        assert deactivated.old_values["is_active"] is True
        assert deactivated.user_id == "admin-2"

    @pytest.mark.asyncio
    async def test_repeated_deactivation_is_logged_once(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config = config_repo.add(priority="low")

        await service.deactivate_config(TENANT, config.id)
        await service.deactivate_config(TENANT, config.id)

        assert [log.action for log in log_repo.logs] == ["deactivated"]

    @pytest.mark.asyncio
    async def test_rejected_create_writes_nothing(self, config_repo, log_repo):
        service = SLAConfigService(config_repo, log_repo)
        config_repo.add(priority="high")

        with pytest.raises(ConflictException):
            await service.create_config(
                TENANT, SLAConfigCreateDTO(priority="high", first_response_minutes=60, resolution_minutes=480)
            )
        assert log_repo.logs == []


class TestTicketIngestion:

    @pytest.mark.asyncio
    async def test_ingest_is_idempotent(self, ticket_repo, config_repo):
        service = SLAService(ticket_repo, config_repo)
        request = TicketIngestRequest(tickets=[ticket_payload()])

        first = await service.ingest_tickets(TENANT, request)
        second = await service.ingest_tickets(TENANT, request)

        assert (first.created, first.updated) == (1, 0)
        assert (second.created, second.updated) == (0, 0)
        assert len(ticket_repo.tickets) == 1

    @pytest.mark.asyncio
    async def test_only_newer_updates_overwrite(self, ticket_repo, config_repo):
        service = SLAService(ticket_repo, config_repo)
        await service.ingest_tickets(TENANT, TicketIngestRequest(tickets=[
            ticket_payload(updated_at="2024-01-15T10:00:00Z", status="in_progress")
        ]))

        stale = await service.ingest_tickets(TENANT, TicketIngestRequest(tickets=[
            ticket_payload(updated_at="2024-01-15T09:00:00Z", status="open")
        ]))
        assert stale.updated == 0
        assert ticket_repo.by_external_id("TICKET-1").status == "in_progress"

        fresh = await service.ingest_tickets(TENANT, TicketIngestRequest(tickets=[
            ticket_payload(updated_at="2024-01-15T11:00:00Z", status="resolved",
                           resolved_at="2024-01-15T11:00:00Z")
        ]))
        assert fresh.updated == 1
        assert ticket_repo.by_external_id("TICKET-1").status == "resolved"

    @pytest.mark.asyncio
    async def test_invalid_ticket_does_not_fail_the_batch(self, ticket_repo, config_repo):
        service = SLAService(ticket_repo, config_repo)
        result = await service.ingest_tickets(TENANT, TicketIngestRequest(tickets=[
            ticket_payload("GOOD-1"),
            ticket_payload("BAD-1", first_response_at="2024-01-14T08:00:00Z"),
        ]))

        assert result.created == 1
        assert result.failed == 1
        assert "BAD-1" in result.errors[0]

    @pytest.mark.asyncio
    async def test_close_before_creation_is_rejected(self, ticket_repo, config_repo):
        service = SLAService(ticket_repo, config_repo)
        result = await service.ingest_tickets(TENANT, TicketIngestRequest(tickets=[
            ticket_payload("BAD-2", status="closed", closed_at="2024-01-14T08:00:00Z"),
        ]))

        assert result.failed == 1
        assert "closed_at cannot be before created_at" in result.errors[0]
        assert ticket_repo.tickets == {}

    @pytest.mark.asyncio
    async def test_same_external_id_in_two_tenants(self, ticket_repo, config_repo):
        service = SLAService(ticket_repo, config_repo)
        request = TicketIngestRequest(tickets=[ticket_payload()])

        await service.ingest_tickets(TENANT, request)
        result = await service.ingest_tickets(OTHER_TENANT, request)

        assert result.created == 1
        assert len(ticket_repo.tickets) == 2


class TestEvaluation:

    @pytest.mark.asyncio
    async def test_no_config_means_not_applicable(self, ticket_repo, config_repo):
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0), priority="low")
        result = await SLAService(ticket_repo, config_repo).evaluate(ticket, luanda(2024, 1, 15, 10, 0))

        assert isinstance(result, SLANotApplicable)
        assert result.reason == "no_active_config"

    @pytest.mark.asyncio
    async def test_inactive_config_is_ignored(self, ticket_repo, config_repo):
        config_repo.add(priority="high", is_active=False)
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0))

        result = await SLAService(ticket_repo, config_repo).evaluate(ticket)
        assert isinstance(result, SLANotApplicable)

    @pytest.mark.asyncio
    async def test_category_config_takes_precedence(self, ticket_repo, config_repo):
        config_repo.add(priority="high", first_response_minutes=60)
        billing = config_repo.add(priority="high", category_id="billing", first_response_minutes=15)
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0), category_id="billing")

        result = await SLAService(ticket_repo, config_repo).evaluate(ticket, luanda(2024, 1, 15, 9, 5))

        assert isinstance(result, TicketSLAStatus)
        assert result.config_id == billing.id
        assert result.first_response.due_at == luanda(2024, 1, 15, 9, 15)

    @pytest.mark.asyncio
    async def test_other_category_falls_back_to_priority_config(self, ticket_repo, config_repo):
        generic = config_repo.add(priority="high")
        config_repo.add(priority="high", category_id="billing", first_response_minutes=15)
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0), category_id="hardware")

        result = await SLAService(ticket_repo, config_repo).evaluate(ticket)
        assert result.config_id == generic.id

    @pytest.mark.asyncio
    async def test_broken_config_raises(self, ticket_repo, config_repo):
        config_repo.add(priority="high", timezone="Mars/Olympus_Mons")
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0))

        with pytest.raises(ConfigurationException):
            await SLAService(ticket_repo, config_repo).evaluate(ticket)

    @pytest.mark.asyncio
    async def test_closed_without_resolution_uses_close_time(self, ticket_repo, config_repo):
        config_repo.add(priority="high", resolution_minutes=480)
        created = luanda(2024, 1, 15, 9, 0)
        ticket = ticket_repo.add(
            created_at=created,
            updated_at=created + timedelta(hours=2),
            status="closed",
            first_response_at=created + timedelta(minutes=20),
            closed_at=created + timedelta(hours=2),
        )

        result = await SLAService(ticket_repo, config_repo).evaluate(ticket, luanda(2024, 2, 1, 9, 0))

        assert result.first_response.state == SLAState.MET
        assert result.resolution.state == SLAState.MET
        assert result.resolution.elapsed_minutes == 120
        assert result.is_compliant

    @pytest.mark.asyncio
    async def test_risk_threshold_is_configurable(self, ticket_repo, config_repo):
        config_repo.add(priority="high", first_response_minutes=60)
        ticket = ticket_repo.add(created_at=luanda(2024, 1, 15, 9, 0))
        service = SLAService(ticket_repo, config_repo, risk_threshold_percent=50)

        result = await service.evaluate(ticket, luanda(2024, 1, 15, 9, 31))
        assert result.first_response.state == SLAState.AT_RISK
