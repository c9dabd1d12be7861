"""Booking date-range validation.

Bookings occupy closed date intervals: a stay from June 1 to June 5 holds both
the 1st and the 5th, so another stay starting on the 5th conflicts with it.

None of the checks here touch the database. The write path loads the relevant
bookings, calls :func:`ensure_no_conflict` and only then commits.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol

from fastapi import status

from .errors import BookingConflictError, ValidationFailed

logger = logging.getLogger(__name__)

START_DATE_FIELD = "startDate"
END_DATE_FIELD = "endDate"

START_CONFLICT_MESSAGE = "Start date conflicts with an existing booking"
END_CONFLICT_MESSAGE = "End date conflicts with an existing booking"


class BookingLike(Protocol):
    id: int
    spot_id: int
    start_date: date
    end_date: date


@dataclass(frozen=True)
class Candidate:
    spot_id: int
    start_date: date
    end_date: date
    exclude_booking_id: Optional[int] = None


@dataclass(frozen=True)
class Conflict:
    field: str
    message: str
    booking_id: int
    status_code: int = status.HTTP_403_FORBIDDEN

    def to_error(self) -> BookingConflictError:
        return BookingConflictError(self.field, self.message)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and start_b <= end_a


def check_date_range(start: date, end: date, today: Optional[date] = None) -> None:
    """Reject malformed ranges before any overlap check runs."""

    today = today or date.today()
    if end <= start:
        raise ValidationFailed(errors={END_DATE_FIELD: "endDate cannot be on or before startDate"})
    if end < today:
        raise ValidationFailed(errors={END_DATE_FIELD: "endDate cannot be in the past"})


def find_conflict(candidate: Candidate, existing: Iterable[BookingLike]) -> Optional[Conflict]:
    """Return the first booking that collides with ``candidate``, or ``None``.

    A booking holding the candidate's start date is reported against
    ``startDate``. Any other overlap (the end date falls inside a booking, or
    the candidate swallows one whole) is reported against ``endDate``.
    """

    others = [
        booking
        for booking in existing
        if booking.spot_id == candidate.spot_id and booking.id != candidate.exclude_booking_id
    ]
    for booking in others:
        if booking.start_date <= candidate.start_date <= booking.end_date:
            return Conflict(START_DATE_FIELD, START_CONFLICT_MESSAGE, booking.id)
    for booking in others:
        if ranges_overlap(candidate.start_date, candidate.end_date, booking.start_date, booking.end_date):
            return Conflict(END_DATE_FIELD, END_CONFLICT_MESSAGE, booking.id)
    return None


def ensure_no_conflict(candidate: Candidate, existing: Iterable[BookingLike]) -> None:
    conflict = find_conflict(candidate, existing)
    if conflict is not None:
        logger.info(
            "Booking conflict on spot %s: %s..%s collides with booking %s (%s)",
            candidate.spot_id,
            candidate.start_date,
            candidate.end_date,
            conflict.booking_id,
            conflict.field,
        )
        raise conflict.to_error()
