"""
Unit tests for deadline calculation and classification.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from helpdesk.config import AlertType, SLAState, SLAType
from helpdesk.sla.domain import BusinessHours, DeadlineStatus, SLACalculator, TicketSLAStatus

LUANDA = ZoneInfo("Africa/Luanda")


def luanda(*args) -> datetime:
    return datetime(*args, tzinfo=LUANDA)


@pytest.fixture
def hours():
    return BusinessHours.from_config("09:00", "18:00", [1, 2, 3, 4, 5], "Africa/Luanda")


def classify(hours, now, created=None, due=None, budget=60, event_at=None, sla_type=SLAType.FIRST_RESPONSE):
    created = created or luanda(2024, 1, 15, 9, 0)
    due = due or hours.add_business_minutes(created, budget)
    return SLACalculator.classify(
        sla_type=sla_type,
        created_at=created,
        due_at=due,
        budget_minutes=budget,
        hours=hours,
        current_time=now,
        event_at=event_at,
        risk_threshold_percent=20.0,
    )


class TestCalculateDeadlines:

    def test_both_deadlines_use_business_time(self, hours):
        first_response_due, resolution_due = SLACalculator.calculate_deadlines(
            luanda(2024, 1, 12, 17, 30), hours, 60, 480
        )
        assert first_response_due == luanda(2024, 1, 15, 9, 30)
        # 30 minutes on Friday, 450 on Monday (09:00 + 7h30)
        assert resolution_due == luanda(2024, 1, 15, 16, 30)


class TestClassify:

    def test_pending_with_plenty_of_time_left(self, hours):
        status = classify(hours, now=luanda(2024, 1, 15, 9, 10))
        assert status.state == SLAState.PENDING
        assert status.remaining_minutes == 50
        assert status.is_compliant is None

    def test_at_risk_once_twenty_percent_remains(self, hours):
        # 12 of 60 minutes left is exactly the threshold
        assert classify(hours, now=luanda(2024, 1, 15, 9, 48)).state == SLAState.AT_RISK
        assert classify(hours, now=luanda(2024, 1, 15, 9, 47)).state == SLAState.PENDING

    def test_breached_at_the_deadline(self, hours):
        status = classify(hours, now=luanda(2024, 1, 15, 10, 0))
        assert status.state == SLAState.BREACHED
        assert status.remaining_minutes == 0
        assert status.is_compliant is False
        assert status.is_breach

    def test_met_before_deadline(self, hours):
        status = classify(
            hours,
            now=luanda(2024, 1, 20, 12, 0),
            event_at=luanda(2024, 1, 15, 9, 59),
        )
        assert status.state == SLAState.MET
        assert status.elapsed_minutes == 59
        assert status.remaining_minutes is None
        assert status.is_compliant is True

    def test_event_after_deadline_is_met_late(self, hours):
        status = classify(
            hours,
            now=luanda(2024, 1, 15, 11, 0),
            event_at=luanda(2024, 1, 15, 10, 30),
        )
        assert status.state == SLAState.MET_LATE
        assert status.elapsed_minutes == 90
        assert status.is_compliant is False
        assert status.is_breach

    def test_event_freezes_state_even_when_now_is_past_due(self, hours):
        status = classify(
            hours,
            now=luanda(2024, 3, 1, 12, 0),
            event_at=luanda(2024, 1, 15, 9, 30),
        )
        assert status.state == SLAState.MET

    def test_remaining_time_ignores_nights_and_weekends(self, hours):
        created = luanda(2024, 1, 12, 17, 30)
        # Friday 17:55: 5 minutes left today plus 30 on Monday
        friday = classify(hours, now=luanda(2024, 1, 12, 17, 55), created=created)
        assert friday.remaining_minutes == 35
        assert friday.state == SLAState.PENDING

        # Saturday: nothing elapses over the weekend
        saturday = classify(hours, now=luanda(2024, 1, 13, 15, 0), created=created)
        assert saturday.remaining_minutes == 30

        monday = classify(hours, now=luanda(2024, 1, 15, 9, 20), created=created)
        assert monday.remaining_minutes == 10
        assert monday.state == SLAState.AT_RISK


class TestCompliance:

    @pytest.mark.parametrize("state,expected", [
        (SLAState.MET, True),
        (SLAState.MET_LATE, False),
        (SLAState.BREACHED, False),
        (SLAState.AT_RISK, None),
        (SLAState.PENDING, None),
    ])
    def test_compliance_by_state(self, state, expected):
        assert SLACalculator.compliance(state) is expected

    def test_ticket_status_aggregates_deadlines(self):
        due = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        status = TicketSLAStatus(
            ticket_id="t-1",
            priority="high",
            config_id="c-1",
            evaluated_at=due,
            first_response=DeadlineStatus(SLAType.FIRST_RESPONSE, due, 60, SLAState.MET),
            resolution=DeadlineStatus(SLAType.RESOLUTION, due, 480, SLAState.AT_RISK),
        )
        assert not status.is_compliant
        assert not status.is_breached
        assert status.is_at_risk


class TestAlertText:

    def test_alert_type_for_state(self):
        assert AlertType.for_state(SLAType.FIRST_RESPONSE, SLAState.AT_RISK) == AlertType.FIRST_RESPONSE_AT_RISK
        assert AlertType.for_state(SLAType.RESOLUTION, SLAState.BREACHED) == AlertType.RESOLUTION_BREACHED

    def test_alert_message(self):
        message = SLACalculator.alert_message(SLAType.RESOLUTION, SLAState.BREACHED, "TICKET-7")
        assert message == "Resolution SLA breached for ticket TICKET-7"
