"""
Shared fixtures: in-memory repositories and an API client wired to them.

The fakes implement the same repository interfaces as the SQLAlchemy
adapters, so services and routes run unchanged without a database.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from helpdesk.hour_bank.application import IHourBankRepository, ITimeEntryRepository
from helpdesk.hour_bank.domain import HourBank, TimeEntry
from helpdesk.hour_bank.interfaces.controllers import (
    get_hour_bank_repository,
    get_time_entry_repository,
)
from helpdesk.main import app
from helpdesk.sla.application import (
    ISLAAlertRepository,
    ISLAConfigRepository,
    ISLALogRepository,
    ITicketRepository,
)
from helpdesk.sla.domain import SLAAlert, SLAConfig, SLALog, Ticket
from helpdesk.sla.interfaces.controllers import (
    get_alert_repository,
    get_config_repository,
    get_log_repository,
    get_ticket_repository,
)

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"

ADMIN_HEADERS = {"X-Tenant-ID": TENANT, "X-User-ID": "admin-1", "X-User-Role": "tenant_admin"}
AGENT_HEADERS = {"X-Tenant-ID": TENANT, "X-User-ID": "agent-1", "X-User-Role": "agent"}
OTHER_TENANT_HEADERS = {"X-Tenant-ID": OTHER_TENANT, "X-User-ID": "agent-9", "X-User-Role": "agent"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ========== SLA fakes ==========

class InMemorySLAConfigRepository(ISLAConfigRepository):
    def __init__(self):
        self.configs: Dict[str, SLAConfig] = {}

    async def get_by_id(self, tenant_id, config_id):
        config = self.configs.get(config_id)
        if config is None or config.tenant_id != tenant_id:
            return None
        return replace(config)

    async def list(self, tenant_id, filters):
        return [
            replace(c) for c in self.configs.values()
            if c.tenant_id == tenant_id
            and all(getattr(c, name) == value for name, value in filters.items())
        ]

    async def find_active(self, tenant_id, priority, category_id=None):
        active = [
            c for c in self.configs.values()
            if c.tenant_id == tenant_id and c.priority == priority and c.is_active
        ]
        if category_id is not None:
            for config in active:
                if config.category_id == category_id:
                    return replace(config)
        for config in active:
            if config.category_id is None:
                return replace(config)
        return None

    async def exists_active(self, tenant_id, priority, category_id, exclude_id=None):
        return any(
            c.tenant_id == tenant_id
            and c.priority == priority
            and c.category_id == category_id
            and c.is_active
            and c.id != exclude_id
            for c in self.configs.values()
        )

    async def create(self, config):
        config = replace(config, id=str(uuid4()))
        self.configs[config.id] = config
        return replace(config)

    async def update(self, config):
        self.configs[config.id] = replace(config)
        return config

    def add(self, **fields) -> SLAConfig:
        """Seed a config directly, bypassing validation."""
        fields.setdefault("tenant_id", TENANT)
        fields.setdefault("first_response_minutes", 60)
        fields.setdefault("resolution_minutes", 480)
        config = SLAConfig(id=str(uuid4()), **fields)
        self.configs[config.id] = config
        return config


class InMemoryTicketRepository(ITicketRepository):
    def __init__(self):
        self.tickets: Dict[str, Ticket] = {}

    async def get_by_id(self, tenant_id, ticket_id):
        ticket = self.tickets.get(ticket_id)
        if ticket is None or ticket.tenant_id != tenant_id:
            return None
        return replace(ticket)

    async def get_by_external_id(self, tenant_id, external_id):
        ticket = self.by_external_id(external_id, tenant_id)
        return replace(ticket) if ticket else None

    async def create(self, ticket):
        ticket = replace(ticket, id=str(uuid4()))
        self.tickets[ticket.id] = ticket
        return replace(ticket)

    async def update(self, ticket):
        self.tickets[ticket.id] = replace(ticket)
        return ticket

    async def list_open(self, tenant_id):
        return [replace(t) for t in self.tickets.values() if t.tenant_id == tenant_id and t.is_open]

    async def list_in_period(self, tenant_id, start, end):
        def in_period(instant: Optional[datetime]) -> bool:
            return instant is not None and start <= instant <= end

        return [
            replace(t) for t in self.tickets.values()
            if t.tenant_id == tenant_id
            and (in_period(t.created_at) or in_period(t.resolution_event_at))
        ]

    def by_external_id(self, external_id: str, tenant_id: str = TENANT) -> Optional[Ticket]:
        for ticket in self.tickets.values():
            if ticket.tenant_id == tenant_id and ticket.external_id == external_id:
                return ticket
        return None

    def add(self, **fields) -> Ticket:
        fields.setdefault("tenant_id", TENANT)
        fields.setdefault("external_id", f"EXT-{len(self.tickets) + 1}")
        fields.setdefault("priority", "high")
        fields.setdefault("status", "open")
        fields.setdefault("subject", "Printer on fire")
        fields.setdefault("updated_at", fields["created_at"])
        fields.setdefault("id", str(uuid4()))
        ticket = Ticket(**fields)
        self.tickets[ticket.id] = ticket
        return ticket


class InMemoryAlertRepository(ISLAAlertRepository):
    """Enforces one alert per (ticket, alert type), like the unique constraint."""

    def __init__(self):
        self.alerts: Dict[str, SLAAlert] = {}

    async def list_for_ticket(self, ticket_id):
        return [replace(a) for a in self.alerts.values() if a.ticket_id == ticket_id]

    async def list_open(self, tenant_id):
        alerts = [a for a in self.alerts.values() if a.tenant_id == tenant_id and a.is_open]
        return [replace(a) for a in sorted(alerts, key=lambda a: a.created_at)]

    async def create(self, alert):
        if any(
            a.ticket_id == alert.ticket_id and a.alert_type == alert.alert_type
            for a in self.alerts.values()
        ):
            return None
        alert = replace(alert, id=str(uuid4()))
        self.alerts[alert.id] = alert
        return replace(alert)

    async def resolve(self, alert_id, resolved_at):
        self.alerts[alert_id].resolved_at = resolved_at

    def of_type(self, ticket_id: str, alert_type: str) -> Optional[SLAAlert]:
        for alert in self.alerts.values():
            if alert.ticket_id == ticket_id and alert.alert_type == alert_type:
                return alert
        return None


class InMemorySLALogRepository(ISLALogRepository):
    def __init__(self):
        self.logs: List[SLALog] = []

    async def create(self, log):
        log = replace(log, id=str(uuid4()))
        self.logs.append(log)
        return replace(log)

    async def list(self, tenant_id, filters):
        def matches(log: SLALog) -> bool:
            return (
                log.tenant_id == tenant_id
                and filters.get("ticket_id", log.ticket_id) == log.ticket_id
                and filters.get("action", log.action) == log.action
                and filters.get("event_type", log.event_type) == log.event_type
                and filters.get("date_from", log.created_at) <= log.created_at
                and log.created_at <= filters.get("date_to", log.created_at)
            )

        # Stable sort keeps insertion order for entries written in the same instant
        found = [replace(log) for log in reversed(self.logs) if matches(log)]
        return sorted(found, key=lambda log: log.created_at, reverse=True)

    def of_action(self, action: str) -> List[SLALog]:
        return [log for log in self.logs if log.action == action]


# ========== Hour bank fakes ==========

class InMemoryHourBankRepository(IHourBankRepository):
    def __init__(self):
        self.banks: Dict[str, HourBank] = {}
        self.debits: List[Decimal] = []

    async def get_by_id(self, tenant_id, hour_bank_id):
        bank = self.banks.get(hour_bank_id)
        if bank is None or bank.tenant_id != tenant_id:
            return None
        return replace(bank)

    async def list(self, tenant_id, customer_id=None):
        return [
            replace(b) for b in self.banks.values()
            if b.tenant_id == tenant_id and (customer_id is None or b.customer_id == customer_id)
        ]

    async def create(self, bank):
        bank = replace(bank, id=str(uuid4()))
        self.banks[bank.id] = bank
        return replace(bank)

    async def update(self, bank):
        stored = self.banks[bank.id]
        # consumed_hours is never written by update
        self.banks[bank.id] = replace(bank, consumed_hours=stored.consumed_hours)
        return replace(self.banks[bank.id])

    async def debit(self, tenant_id, hour_bank_id, hours, allow_overdraft=True):
        bank = self.banks.get(hour_bank_id)
        if bank is None or bank.tenant_id != tenant_id:
            return False
        if not allow_overdraft and bank.consumed_hours + hours > bank.total_hours:
            return False
        bank.consumed_hours += hours
        self.debits.append(hours)
        return True

    def add(self, **fields) -> HourBank:
        fields.setdefault("tenant_id", TENANT)
        fields.setdefault("customer_id", "customer-42")
        bank = HourBank(id=str(uuid4()), **fields)
        self.banks[bank.id] = bank
        return bank


class InMemoryTimeEntryRepository(ITimeEntryRepository):
    def __init__(self):
        self.entries: Dict[str, TimeEntry] = {}

    async def get_by_id(self, tenant_id, entry_id):
        entry = self.entries.get(entry_id)
        if entry is None or entry.tenant_id != tenant_id:
            return None
        return replace(entry)

    async def find_running(self, tenant_id, ticket_id, user_id):
        for entry in self.entries.values():
            if (entry.tenant_id, entry.ticket_id, entry.user_id) == (tenant_id, ticket_id, user_id) \
                    and entry.is_running:
                return replace(entry)
        return None

    async def list_for_ticket(self, tenant_id, ticket_id):
        entries = [
            e for e in self.entries.values()
            if e.tenant_id == tenant_id and e.ticket_id == ticket_id
        ]
        return [replace(e) for e in sorted(entries, key=lambda e: e.start_time)]

    async def create(self, entry):
        entry = replace(entry, id=str(uuid4()))
        self.entries[entry.id] = entry
        return replace(entry)

    async def update(self, entry):
        self.entries[entry.id] = replace(entry)
        return entry


# ========== Fixtures ==========

@pytest.fixture
def config_repo():
    return InMemorySLAConfigRepository()


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def alert_repo():
    return InMemoryAlertRepository()


@pytest.fixture
def log_repo():
    return InMemorySLALogRepository()


@pytest.fixture
def bank_repo():
    return InMemoryHourBankRepository()


@pytest.fixture
def entry_repo():
    return InMemoryTimeEntryRepository()


@pytest.fixture
def client(config_repo, ticket_repo, alert_repo, log_repo, bank_repo, entry_repo):
    """API client whose repositories are the in-memory fakes."""
    app.dependency_overrides[get_config_repository] = lambda: config_repo
    app.dependency_overrides[get_ticket_repository] = lambda: ticket_repo
    app.dependency_overrides[get_alert_repository] = lambda: alert_repo
    app.dependency_overrides[get_log_repository] = lambda: log_repo
    app.dependency_overrides[get_hour_bank_repository] = lambda: bank_repo
    app.dependency_overrides[get_time_entry_repository] = lambda: entry_repo
    yield TestClient(app)
    app.dependency_overrides.clear()
