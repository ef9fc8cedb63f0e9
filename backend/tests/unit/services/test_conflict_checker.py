"""
Tests for ConflictChecker and its pure helpers.

Intervals are half-open, so back-to-back sessions must never conflict.
"""

from datetime import date, time
from types import SimpleNamespace

import pytest

from edshare.core.exceptions import BookingConflictException, ConflictException, ValidationException
from edshare.models.tutor import TutorAvailabilityOverride, TutorAvailabilityWindow
from edshare.services.conflict_checker import (
    ConflictChecker,
    find_conflicts,
    fits_declared_calendar,
    intervals_overlap,
)

DAY = date(2030, 1, 7)


def _existing(start, end, status="scheduled", tutor_id="tutor-1", booking_id="b-1", on=DAY):
    return SimpleNamespace(
        id=booking_id,
        tutor_id=tutor_id,
        booking_date=on,
        start_time=start,
        end_time=end,
        status=status,
    )


class TestIntervalHelpers:
    def test_back_to_back_does_not_overlap(self):
        assert intervals_overlap(time(10), time(11), time(11), time(12)) is False
        assert intervals_overlap(time(11), time(12), time(10), time(11)) is False

    def test_partial_overlap(self):
        assert intervals_overlap(time(10), time(11), time(10, 30), time(11, 30)) is True

    def test_containment_overlaps(self):
        assert intervals_overlap(time(9), time(13), time(10), time(11)) is True

    def test_find_conflicts_ignores_inactive_and_other_tutors(self):
        existing = [
            _existing(time(10), time(11), status="cancelled", booking_id="cancelled"),
            _existing(time(10), time(11), status="completed", booking_id="done"),
            _existing(time(10), time(11), tutor_id="tutor-2", booking_id="other"),
            _existing(time(10), time(11), on=date(2030, 1, 8), booking_id="tomorrow"),
            _existing(time(10), time(11), status="confirmed", booking_id="clash"),
        ]
        conflicts = find_conflicts("tutor-1", DAY, time(10, 30), time(11, 30), existing)
        assert [b.id for b in conflicts] == ["clash"]

    def test_find_conflicts_excludes_the_booking_being_moved(self):
        existing = [_existing(time(10), time(11), booking_id="self")]
        assert find_conflicts("tutor-1", DAY, time(10), time(11), existing, "self") == []


class TestDeclaredCalendar:
    def _window(self, start, end):
        return TutorAvailabilityWindow(day_of_week=0, start_time=start, end_time=end)

    def test_no_declared_calendar_is_open(self):
        assert fits_declared_calendar(time(10), time(11), [], [], has_declared_calendar=False)

    def test_declared_calendar_with_no_window_today_is_closed(self):
        assert not fits_declared_calendar(time(10), time(11), [], [], has_declared_calendar=True)

    def test_slot_must_fit_inside_one_window(self):
        windows = [self._window(time(9), time(12))]
        assert fits_declared_calendar(time(9), time(12), windows, [], True)
        assert not fits_declared_calendar(time(11), time(13), windows, [], True)

    def test_blackout_closes_the_date(self):
        windows = [self._window(time(9), time(17))]
        blackout = [TutorAvailabilityOverride(specific_date=DAY, is_blackout=True)]
        assert not fits_declared_calendar(time(10), time(11), windows, blackout, True)
        assert not fits_declared_calendar(time(10), time(11), [], blackout, False)

    def test_override_opens_extra_window(self):
        extra = [
            TutorAvailabilityOverride(
                specific_date=DAY, start_time=time(18), end_time=time(20), is_blackout=False
            )
        ]
        assert fits_declared_calendar(time(18), time(19), [], extra, True)


class TestConflictCheckerValidation:
    @pytest.fixture
    def checker(self, db):
        return ConflictChecker(db)

    def test_returns_minutes(self, checker):
        assert checker.validate_time_range(time(10), time(11, 30)) == 90

    @pytest.mark.parametrize(
        "start,end,code",
        [
            (time(11), time(10), "INVALID_TIME_RANGE"),
            (time(10), time(10), "INVALID_TIME_RANGE"),
            (time(10), time(10, 15), "INVALID_DURATION"),
            (time(8), time(11, 30), "INVALID_DURATION"),
        ],
    )
    def test_rejects_bad_ranges(self, checker, start, end, code):
        with pytest.raises(ValidationException) as exc_info:
            checker.validate_time_range(start, end)
        assert exc_info.value.code == code

    def test_bounds_are_inclusive(self, checker):
        assert checker.validate_time_range(time(10), time(10, 30)) == 30
        assert checker.validate_time_range(time(10), time(13)) == 180

    def test_declared_duration_must_match(self, checker):
        with pytest.raises(ValidationException) as exc_info:
            checker.validate_time_range(time(10), time(11), duration_minutes=90)
        assert exc_info.value.code == "DURATION_MISMATCH"


class TestEnsureSlotAvailable:
    def test_free_slot_passes(self, db, tutor):
        ConflictChecker(db).ensure_slot_available(tutor.id, DAY, time(10), time(11))

    def test_overlap_raises_booking_conflict(self, db, student, tutor, make_booking):
        existing = make_booking(student, tutor, booking_date=DAY, start_time=time(10), end_time=time(11))

        with pytest.raises(BookingConflictException) as exc_info:
            ConflictChecker(db).ensure_slot_available(tutor.id, DAY, time(10, 30), time(11, 30))

        conflicts = exc_info.value.details["conflicting_bookings"]
        assert [c["booking_id"] for c in conflicts] == [existing.id]

    def test_back_to_back_with_existing_booking(self, db, student, tutor, make_booking):
        make_booking(student, tutor, booking_date=DAY, start_time=time(10), end_time=time(11))
        ConflictChecker(db).ensure_slot_available(tutor.id, DAY, time(11), time(12))

    def test_cancelled_booking_frees_the_slot(self, db, student, tutor, make_booking):
        make_booking(
            student, tutor, booking_date=DAY, start_time=time(10), end_time=time(11), status="cancelled"
        )
        ConflictChecker(db).ensure_slot_available(tutor.id, DAY, time(10), time(11))

    def test_outside_declared_calendar(self, db, tutor):
        tutor.availability_windows.append(
            TutorAvailabilityWindow(day_of_week=DAY.weekday(), start_time=time(14), end_time=time(18))
        )
        db.commit()

        checker = ConflictChecker(db)
        checker.ensure_slot_available(tutor.id, DAY, time(15), time(16))
        with pytest.raises(ConflictException) as exc_info:
            checker.ensure_slot_available(tutor.id, DAY, time(10), time(11))
        assert exc_info.value.code == "TUTOR_UNAVAILABLE"

    def test_booked_times_are_ordered(self, db, student, tutor, make_booking):
        late = make_booking(student, tutor, booking_date=DAY, start_time=time(15), end_time=time(16))
        early = make_booking(student, tutor, booking_date=DAY, start_time=time(9, 30), end_time=time(10, 30))

        booked = ConflictChecker(db).get_booked_times_for_date(tutor.id, DAY)

        assert [slot["booking_id"] for slot in booked] == [early.id, late.id]
