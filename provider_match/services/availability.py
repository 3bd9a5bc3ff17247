"""
Availability filter: drops providers with an occupying booking that overlaps the
requested window and reports how busy the survivors are that day.
"""
import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from provider_match.models.models import BookingRecord, MatchRequest
from provider_match.models.settings import AvailabilityFailurePolicy
from provider_match.services.ports import BookingLedger
from provider_match.utils.exceptions import CollaboratorError, ProviderMatchBaseException
from provider_match.utils.logging_config import get_logger
from provider_match.utils.utils import parse_hhmm

logger = get_logger(__name__)


class AvailabilityVerdict(BaseModel):
    provider_id: str
    available: bool
    conflict_count: int = 0  # same-day occupying bookings, overlapping or not
    conflicts: List[str] = Field(default_factory=list)  # ids of overlapping bookings


def booking_window(booking: BookingRecord) -> Optional[Tuple[int, int]]:
    start = parse_hhmm(booking.start)
    end = parse_hhmm(booking.end)
    if start is None or end is None or end <= start:
        return None
    return start, end


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open intervals: touching windows do not overlap."""
    return start_a < end_b and end_a > start_b


def evaluate(provider_id: str, request: MatchRequest, bookings: Iterable[BookingRecord]) -> AvailabilityVerdict:
    """Pure overlap check of one provider's bookings against the request window."""
    same_day = [
        b for b in bookings
        if b.is_occupying and (b.scheduled_date is None or b.scheduled_date == request.date)
    ]
    conflicts = []
    for booking in same_day:
        window = booking_window(booking)
        if window is None:
            logger.warning(
                f"Booking {booking.booking_id} for provider {provider_id} has unusable time window "
                f"({booking.start!r}-{booking.end!r}); treating as non-conflicting"
            )
            continue
        if overlaps(request.start_minute, request.end_minute, *window):
            conflicts.append(booking.booking_id or "")

    return AvailabilityVerdict(
        provider_id=provider_id,
        available=not conflicts,
        conflict_count=len(same_day),
        conflicts=conflicts,
    )


class AvailabilityFilter:
    def __init__(self, ledger: BookingLedger, timeout_seconds: float = 2.0,
                 failure_policy: AvailabilityFailurePolicy = AvailabilityFailurePolicy.EXCLUDE):
        self.ledger = ledger
        self.timeout_seconds = timeout_seconds
        self.failure_policy = failure_policy

    async def check(self, provider_id: str, request: MatchRequest) -> AvailabilityVerdict:
        bookings = await self.ledger.find_occupying(provider_id, request.date)
        return evaluate(provider_id, request, bookings)

    async def _bounded_check(self, provider_id: str, request: MatchRequest) -> Optional[AvailabilityVerdict]:
        try:
            return await asyncio.wait_for(self.check(provider_id, request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            failure = CollaboratorError(
                f"Availability check for provider {provider_id} timed out after {self.timeout_seconds}s",
                collaborator="BookingLedger",
                operation="find_occupying",
                cause=e,
            )
        except ProviderMatchBaseException as e:
            failure = e

        if self.failure_policy == AvailabilityFailurePolicy.RAISE:
            raise failure
        logger.warning(f"Excluding provider {provider_id}: {failure.message}")
        return None

    async def check_many(self, provider_ids: Iterable[str], request: MatchRequest) -> Dict[str, AvailabilityVerdict]:
        """Checks each distinct provider once, concurrently.

        Providers whose check failed under the `exclude` policy are absent from
        the result; callers treat absence as "not offered".
        """
        ids = list(dict.fromkeys(provider_ids))
        if not ids:
            return {}
        verdicts = await asyncio.gather(*(self._bounded_check(pid, request) for pid in ids))
        return {v.provider_id: v for v in verdicts if v is not None}
