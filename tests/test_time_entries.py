"""
Tests for time entries and the hour bank debits they cause.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from helpdesk.core import ConflictException, HourBankDebitRejected, ResourceNotFoundException
from helpdesk.hour_bank.application import (
    HourBankCreateDTO,
    HourBankService,
    HourBankUpdateDTO,
    TimeEntryCreateDTO,
    TimeEntryService,
    TimeEntryUpdateDTO,
)
from helpdesk.hour_bank.domain import DebitPolicy
from tests.conftest import OTHER_TENANT, TENANT

T0 = datetime(2024, 5, 6, 14, 0, tzinfo=timezone.utc)
USER = "agent-1"


@pytest.fixture(autouse=True)
def tickets(ticket_repo):
    return [ticket_repo.add(id=ticket_id, created_at=T0 - timedelta(days=1)) for ticket_id in ("T-1", "T-2")]


@pytest.fixture
def service(entry_repo, bank_repo, ticket_repo):
    return TimeEntryService(entry_repo, bank_repo, ticket_repo, DebitPolicy())


class TestTimers:

    @pytest.mark.asyncio
    async def test_start_and_stop_debits_the_bank(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("10"))

        entry = await service.create_entry(
            TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id), now=T0
        )
        assert entry.is_running
        assert bank_repo.banks[bank.id].consumed_hours == 0

        stopped = await service.finish_entry(
            TENANT, entry.id, TimeEntryUpdateDTO(), now=T0 + timedelta(minutes=90)
        )

        assert stopped.end_time == T0 + timedelta(minutes=90)
        assert stopped.duration == Decimal("1.50")
        assert bank_repo.banks[bank.id].consumed_hours == Decimal("1.50")

    @pytest.mark.asyncio
    async def test_second_running_timer_on_same_ticket_conflicts(self, service):
        await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1"), now=T0)

        with pytest.raises(ConflictException):
            await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1"), now=T0)

        # Another ticket, or another user, is fine
        await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-2"), now=T0)
        await service.create_entry(TENANT, "agent-2", TimeEntryCreateDTO(ticket_id="T-1"), now=T0)

    @pytest.mark.asyncio
    async def test_finalising_twice_conflicts_and_debits_once(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("10"))
        entry = await service.create_entry(
            TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id), now=T0
        )
        await service.finish_entry(TENANT, entry.id, TimeEntryUpdateDTO(), now=T0 + timedelta(hours=1))

        with pytest.raises(ConflictException, match="already finalised"):
            await service.finish_entry(TENANT, entry.id, TimeEntryUpdateDTO(), now=T0 + timedelta(hours=2))
        assert bank_repo.debits == [Decimal("1.00")]

    @pytest.mark.asyncio
    async def test_pause_finalises_and_allows_a_new_timer(self, service):
        entry = await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1"), now=T0)
        await service.finish_entry(
            TENANT, entry.id, TimeEntryUpdateDTO(action="pause"), now=T0 + timedelta(minutes=30)
        )

        resumed = await service.create_entry(
            TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1"), now=T0 + timedelta(minutes=40)
        )
        assert resumed.id != entry.id
        assert len(await service.list_for_ticket(TENANT, "T-1")) == 2

    @pytest.mark.asyncio
    async def test_client_supplied_duration_and_bank(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("10"))
        entry = await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1"), now=T0)

        stopped = await service.finish_entry(
            TENANT,
            entry.id,
            TimeEntryUpdateDTO(duration=Decimal("0.75"), hour_bank_id=bank.id, description="Remote session"),
            now=T0 + timedelta(hours=2),
        )

        assert stopped.duration == Decimal("0.75")
        assert stopped.description == "Remote session"
        assert bank_repo.banks[bank.id].consumed_hours == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_unknown_entry(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.finish_entry(TENANT, "missing", TimeEntryUpdateDTO())

    @pytest.mark.asyncio
    async def test_unknown_bank_rejected_at_start(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.create_entry(
                TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id="missing"), now=T0
            )


class TestManualEntries:

    @pytest.mark.asyncio
    async def test_manual_entry_debits_immediately(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("10"))

        entry = await service.create_entry(
            TENANT,
            USER,
            TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("2"), start_time=T0),
        )

        assert not entry.is_running
        assert entry.end_time == T0
        assert bank_repo.banks[bank.id].consumed_hours == Decimal("2")

    @pytest.mark.asyncio
    async def test_overdraft_allowed_by_default(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("1"))

        await service.create_entry(
            TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("2"))
        )

        assert bank_repo.banks[bank.id].remaining_hours == Decimal("-1")

    @pytest.mark.asyncio
    async def test_overdraft_rejected_when_disallowed(self, entry_repo, bank_repo, ticket_repo):
        service = TimeEntryService(entry_repo, bank_repo, ticket_repo, DebitPolicy(allow_overdraft=False))
        bank = bank_repo.add(total_hours=Decimal("1"))

        with pytest.raises(HourBankDebitRejected) as exc_info:
            await service.create_entry(
                TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("2"))
            )

        assert exc_info.value.reason == "insufficient_balance"
        assert exc_info.value.details["remaining_hours"] == "1"
        assert bank_repo.banks[bank.id].consumed_hours == 0
        assert entry_repo.entries == {}

    @pytest.mark.asyncio
    async def test_exact_balance_is_allowed_without_overdraft(self, entry_repo, bank_repo, ticket_repo):
        service = TimeEntryService(entry_repo, bank_repo, ticket_repo, DebitPolicy(allow_overdraft=False))
        bank = bank_repo.add(total_hours=Decimal("2"))

        await service.create_entry(
            TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("2"))
        )
        assert bank_repo.banks[bank.id].remaining_hours == 0

    @pytest.mark.asyncio
    async def test_inactive_bank_blocked_by_policy(self, entry_repo, bank_repo, ticket_repo):
        service = TimeEntryService(entry_repo, bank_repo, ticket_repo, DebitPolicy(block_inactive_debits=True))
        bank = bank_repo.add(total_hours=Decimal("10"), is_active=False)

        with pytest.raises(HourBankDebitRejected) as exc_info:
            await service.create_entry(
                TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("1"))
            )
        assert exc_info.value.reason == "inactive"

    @pytest.mark.asyncio
    async def test_unknown_ticket_is_not_debited(self, service, bank_repo, entry_repo):
        bank = bank_repo.add(total_hours=Decimal("10"))

        with pytest.raises(ResourceNotFoundException, match="Ticket"):
            await service.create_entry(
                TENANT,
                USER,
                TimeEntryCreateDTO(ticket_id="no-such-ticket", hour_bank_id=bank.id, duration=Decimal("1.5")),
            )

        assert bank_repo.debits == []
        assert entry_repo.entries == {}

    @pytest.mark.asyncio
    async def test_other_tenants_ticket_is_invisible(self, service, ticket_repo):
        ticket_repo.add(id="T-9", created_at=T0, tenant_id=OTHER_TENANT)

        with pytest.raises(ResourceNotFoundException):
            await service.create_entry(TENANT, USER, TimeEntryCreateDTO(ticket_id="T-9"), now=T0)

    @pytest.mark.asyncio
    async def test_other_tenants_bank_is_invisible(self, service, bank_repo):
        bank = bank_repo.add(total_hours=Decimal("10"), tenant_id=OTHER_TENANT)

        with pytest.raises(ResourceNotFoundException):
            await service.create_entry(
                TENANT, USER, TimeEntryCreateDTO(ticket_id="T-1", hour_bank_id=bank.id, duration=Decimal("1"))
            )


class TestHourBankService:

    @pytest.mark.asyncio
    async def test_create_starts_with_nothing_consumed(self, bank_repo):
        service = HourBankService(bank_repo)
        bank = await service.create_bank(
            TENANT, HourBankCreateDTO(customer_id="customer-42", total_hours=Decimal("20"))
        )
        assert bank.consumed_hours == 0
        assert bank.remaining_hours == Decimal("20")

    @pytest.mark.asyncio
    async def test_top_up_keeps_consumed_hours(self, bank_repo):
        service = HourBankService(bank_repo)
        bank = bank_repo.add(total_hours=Decimal("10"), consumed_hours=Decimal("9"))

        updated = await service.update_bank(TENANT, bank.id, HourBankUpdateDTO(total_hours=Decimal("30")))

        assert updated.total_hours == Decimal("30")
        assert updated.consumed_hours == Decimal("9")

    @pytest.mark.asyncio
    async def test_expiry_can_be_cleared(self, bank_repo):
        service = HourBankService(bank_repo)
        bank = bank_repo.add(total_hours=Decimal("10"), expires_at=T0)

        updated = await service.update_bank(TENANT, bank.id, HourBankUpdateDTO(expires_at=None))
        assert updated.expires_at is None

    @pytest.mark.asyncio
    async def test_list_by_customer(self, bank_repo):
        bank_repo.add(total_hours=Decimal("10"), customer_id="a")
        bank_repo.add(total_hours=Decimal("10"), customer_id="b")
        bank_repo.add(total_hours=Decimal("10"), customer_id="a", tenant_id=OTHER_TENANT)

        banks = await HourBankService(bank_repo).list_banks(TENANT, customer_id="a")
        assert len(banks) == 1
