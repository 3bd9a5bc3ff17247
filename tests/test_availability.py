import datetime as dt
import logging

import pytest

from fakes import DAY, FakeBookingLedger, make_booking, make_request
from provider_match.models.models import BookingStatus
from provider_match.models.settings import AvailabilityFailurePolicy
from provider_match.services.availability import AvailabilityFilter, evaluate, overlaps
from provider_match.utils.exceptions import CollaboratorError


class TestOverlap:
    """Half-open interval overlap against a 10:00-12:00 request"""

    @pytest.mark.parametrize("start,end,conflict", [
        ("09:30", "11:00", True),
        ("10:30", "11:00", True),
        ("09:00", "13:00", True),
        ("11:59", "12:30", True),
        ("08:00", "10:00", False),
        ("12:00", "13:00", False),
        ("07:00", "08:00", False),
    ])
    def test_booking_windows(self, start, end, conflict):
        verdict = evaluate("P1", make_request(), [make_booking("P1", start, end)])

        assert verdict.available is (not conflict)
        assert verdict.conflict_count == 1
        assert (len(verdict.conflicts) == 1) is conflict

    def test_overlaps_is_symmetric(self):
        assert overlaps(600, 720, 570, 660) == overlaps(570, 660, 600, 720)

    def test_request_past_midnight(self):
        request = make_request(time="23:00", duration_minutes=120)

        verdict = evaluate("P1", request, [make_booking("P1", "23:30", "23:45")])

        assert verdict.available is False

    @pytest.mark.parametrize("start,end", [
        ("9am", "11am"),
        (None, "11:00"),
        ("10:00", None),
        ("11:00", "10:00"),
        ("25:00", "26:00"),
    ])
    def test_malformed_times_fail_open(self, start, end, caplog):
        caplog.set_level(logging.WARNING, logger="provider_match.services.availability")

        verdict = evaluate("P1", make_request(), [make_booking("P1", start, end, booking_id="B-bad")])

        assert verdict.available is True
        assert verdict.conflict_count == 1
        assert "B-bad" in caplog.text

    def test_non_occupying_and_other_days_are_ignored(self):
        bookings = [
            make_booking("P1", "10:00", "11:00", status=BookingStatus.CANCELLED),
            make_booking("P1", "10:00", "11:00", status=BookingStatus.COMPLETED),
            make_booking("P1", "10:00", "11:00", scheduled_date=DAY + dt.timedelta(days=1)),
            make_booking("P1", "14:00", "15:00"),
        ]

        verdict = evaluate("P1", make_request(), bookings)

        assert verdict.available is True
        assert verdict.conflict_count == 1


class TestAvailabilityFilter:
    """Concurrent, time-bounded checks"""

    @pytest.mark.asyncio
    async def test_check_many_checks_each_provider_once(self):
        ledger = FakeBookingLedger([make_booking("P2", "09:30", "11:00")])
        availability = AvailabilityFilter(ledger)

        verdicts = await availability.check_many(["P1", "P2", "P1"], make_request())

        assert sorted(ledger.calls) == ["P1", "P2"]
        assert verdicts["P1"].available is True
        assert verdicts["P2"].available is False

    @pytest.mark.asyncio
    async def test_timeout_excludes_candidate(self):
        ledger = FakeBookingLedger(delays={"P1": 0.5})
        availability = AvailabilityFilter(ledger, timeout_seconds=0.05)

        verdicts = await availability.check_many(["P1", "P2"], make_request())

        assert "P1" not in verdicts
        assert verdicts["P2"].available is True

    @pytest.mark.asyncio
    async def test_ledger_failure_excludes_candidate(self):
        availability = AvailabilityFilter(FakeBookingLedger(fail_for=["P1"]))

        verdicts = await availability.check_many(["P1", "P2"], make_request())

        assert list(verdicts) == ["P2"]

    @pytest.mark.asyncio
    async def test_raise_policy_surfaces_failure(self):
        availability = AvailabilityFilter(
            FakeBookingLedger(delays={"P1": 0.5}),
            timeout_seconds=0.05,
            failure_policy=AvailabilityFailurePolicy.RAISE,
        )

        with pytest.raises(CollaboratorError):
            await availability.check_many(["P1"], make_request())

    @pytest.mark.asyncio
    async def test_no_providers(self):
        ledger = FakeBookingLedger()

        assert await AvailabilityFilter(ledger).check_many([], make_request()) == {}
        assert ledger.calls == []
