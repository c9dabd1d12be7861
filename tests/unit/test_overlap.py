"""Unit tests for the booking overlap validator."""
from dataclasses import dataclass
from datetime import date, timedelta

import pytest

from staybook.errors import BookingConflictError, ValidationFailed
from staybook.overlap import (
    Candidate,
    check_date_range,
    ensure_no_conflict,
    find_conflict,
    ranges_overlap,
)

TODAY = date(2024, 5, 1)


@dataclass
class StubBooking:
    id: int
    spot_id: int
    start_date: date
    end_date: date


EXISTING = [StubBooking(id=1, spot_id=1, start_date=date(2024, 6, 1), end_date=date(2024, 6, 5))]


class TestRangesOverlap:
    """Closed-interval overlap predicate."""

    @pytest.mark.parametrize(
        "start, end, expected",
        [
            (date(2024, 5, 25), date(2024, 5, 31), False),
            (date(2024, 5, 25), date(2024, 6, 1), True),
            (date(2024, 6, 2), date(2024, 6, 3), True),
            (date(2024, 5, 20), date(2024, 6, 20), True),
            (date(2024, 6, 5), date(2024, 6, 8), True),
            (date(2024, 6, 6), date(2024, 6, 10), False),
        ],
    )
    def test_against_fixed_range(self, start, end, expected):
        assert ranges_overlap(start, end, date(2024, 6, 1), date(2024, 6, 5)) is expected

    def test_is_symmetric(self):
        a = (date(2024, 6, 1), date(2024, 6, 5))
        b = (date(2024, 6, 5), date(2024, 6, 9))
        assert ranges_overlap(*a, *b) == ranges_overlap(*b, *a)


class TestCheckDateRange:
    """Structural checks that run before the overlap scan."""

    def test_valid_range(self):
        check_date_range(date(2024, 6, 1), date(2024, 6, 2), TODAY)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_date_range(date(2024, 6, 5), date(2024, 6, 1), TODAY)
        assert "endDate" in exc_info.value.errors

    def test_zero_length_range_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_date_range(date(2024, 6, 5), date(2024, 6, 5), TODAY)
        assert exc_info.value.errors == {"endDate": "endDate cannot be on or before startDate"}

    def test_end_in_past_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_date_range(date(2024, 4, 1), date(2024, 4, 10), TODAY)
        assert exc_info.value.errors == {"endDate": "endDate cannot be in the past"}
        assert exc_info.value.status_code == 400

    def test_end_today_allowed(self):
        check_date_range(date(2024, 4, 28), TODAY, TODAY)


class TestFindConflict:
    """Conflict detection against existing bookings."""

    def test_shared_boundary_reports_start_date(self):
        conflict = find_conflict(Candidate(1, date(2024, 6, 5), date(2024, 6, 8)), EXISTING)

        assert conflict is not None
        assert conflict.field == "startDate"
        assert conflict.message == "Start date conflicts with an existing booking"
        assert conflict.booking_id == 1
        assert conflict.status_code == 403

    def test_day_after_is_free(self):
        assert find_conflict(Candidate(1, date(2024, 6, 6), date(2024, 6, 10)), EXISTING) is None

    def test_other_spot_is_free(self):
        assert find_conflict(Candidate(2, date(2024, 6, 1), date(2024, 6, 5)), EXISTING) is None

    def test_end_inside_existing_reports_end_date(self):
        conflict = find_conflict(Candidate(1, date(2024, 5, 28), date(2024, 6, 1)), EXISTING)

        assert conflict is not None
        assert conflict.field == "endDate"
        assert conflict.message == "End date conflicts with an existing booking"

    def test_enveloping_range_reports_end_date(self):
        conflict = find_conflict(Candidate(1, date(2024, 5, 20), date(2024, 6, 20)), EXISTING)

        assert conflict is not None
        assert conflict.field == "endDate"

    def test_start_conflict_wins_over_end_conflict(self):
        existing = [
            StubBooking(id=1, spot_id=1, start_date=date(2024, 6, 10), end_date=date(2024, 6, 12)),
            StubBooking(id=2, spot_id=1, start_date=date(2024, 6, 1), end_date=date(2024, 6, 5)),
        ]
        conflict = find_conflict(Candidate(1, date(2024, 6, 4), date(2024, 6, 11)), existing)

        assert conflict is not None
        assert conflict.field == "startDate"
        assert conflict.booking_id == 2

    def test_excluded_booking_is_skipped(self):
        candidate = Candidate(1, date(2024, 6, 1), date(2024, 6, 5), exclude_booking_id=1)
        assert find_conflict(candidate, EXISTING) is None

    def test_exclusion_keeps_other_bookings(self):
        existing = EXISTING + [StubBooking(id=2, spot_id=1, start_date=date(2024, 6, 7), end_date=date(2024, 6, 9))]
        candidate = Candidate(1, date(2024, 6, 1), date(2024, 6, 8), exclude_booking_id=1)

        conflict = find_conflict(candidate, existing)
        assert conflict is not None
        assert conflict.booking_id == 2

    def test_no_existing_bookings(self):
        assert find_conflict(Candidate(1, date(2024, 6, 1), date(2024, 6, 5)), []) is None

    @pytest.mark.parametrize("offset_start", range(-6, 7))
    @pytest.mark.parametrize("length", [1, 2, 5])
    def test_rejects_iff_ranges_overlap(self, offset_start, length):
        start = date(2024, 6, 1) + timedelta(days=offset_start)
        end = start + timedelta(days=length)
        existing = EXISTING[0]

        conflict = find_conflict(Candidate(1, start, end), EXISTING)
        expected = start <= existing.end_date and existing.start_date <= end
        assert (conflict is not None) is expected


class TestEnsureNoConflict:
    def test_raises_structured_error(self):
        with pytest.raises(BookingConflictError) as exc_info:
            ensure_no_conflict(Candidate(1, date(2024, 6, 3), date(2024, 6, 4)), EXISTING)

        error = exc_info.value
        assert error.status_code == 403
        assert error.to_dict() == {
            "message": "Sorry, this spot is already booked for the specified dates",
            "statusCode": 403,
            "errors": {"startDate": "Start date conflicts with an existing booking"},
        }

    def test_passes_when_free(self):
        ensure_no_conflict(Candidate(1, date(2024, 7, 1), date(2024, 7, 4)), EXISTING)
