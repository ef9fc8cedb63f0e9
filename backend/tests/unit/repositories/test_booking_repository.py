"""Tests for BookingRepository's atomic slot writes and scoped reads."""

from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from edshare.core.enums import RoleName
from edshare.core.exceptions import BookingConflictException
from edshare.repositories.booking_repository import (
    OVERLAP_CONSTRAINT_NAME,
    BookingRepository,
    is_overlap_violation,
)

DAY = date(2030, 1, 7)


def _fields(student, tutor, start=time(10), end=time(11), **overrides):
    fields = {
        "student_id": student.id,
        "tutor_id": tutor.id,
        "subject": "Mathematics",
        "class_level": "9",
        "board": "CBSE",
        "booking_date": DAY,
        "start_time": start,
        "end_time": end,
        "duration_minutes": 60,
        "mode": "online",
        "hourly_rate": Decimal("600.00"),
        "base_amount": Decimal("600.00"),
        "tax_amount": Decimal("108.00"),
        "total_amount": Decimal("708.00"),
    }
    fields.update(overrides)
    return fields


class TestCreateIfSlotFree:
    def test_inserts_when_free(self, db, student, tutor):
        booking = BookingRepository(db).create_if_slot_free(**_fields(student, tutor))
        db.commit()
        assert booking.id is not None
        assert booking.status == "scheduled"

    def test_rejects_overlap(self, db, student, tutor):
        repo = BookingRepository(db)
        repo.create_if_slot_free(**_fields(student, tutor))
        db.commit()

        with pytest.raises(BookingConflictException) as exc_info:
            repo.create_if_slot_free(**_fields(student, tutor, start=time(10, 30), end=time(11, 30)))
        assert len(exc_info.value.details["conflicting_bookings"]) == 1

    def test_other_tutor_same_time_is_fine(self, db, student, tutor, make_tutor):
        repo = BookingRepository(db)
        repo.create_if_slot_free(**_fields(student, tutor))
        repo.create_if_slot_free(**_fields(student, make_tutor()))
        db.commit()

    def test_move_rejects_overlap_with_other_booking(self, db, student, tutor):
        repo = BookingRepository(db)
        first = repo.create_if_slot_free(**_fields(student, tutor))
        repo.create_if_slot_free(**_fields(student, tutor, start=time(12), end=time(13)))
        db.commit()

        with pytest.raises(BookingConflictException):
            repo.move_if_slot_free(first, DAY, time(12, 30), time(13, 30))


class TestOverlapViolation:
    def test_reads_constraint_name_from_driver_diag(self):
        orig = SimpleNamespace(diag=SimpleNamespace(constraint_name=OVERLAP_CONSTRAINT_NAME))
        assert is_overlap_violation(IntegrityError("INSERT", {}, orig))

    def test_other_constraints_are_not_overlaps(self):
        orig = SimpleNamespace(diag=SimpleNamespace(constraint_name="ck_bookings_mode"))
        assert not is_overlap_violation(IntegrityError("INSERT", {}, orig))

    def test_falls_back_to_message(self):
        orig = Exception(f'violates exclusion constraint "{OVERLAP_CONSTRAINT_NAME}"')
        assert is_overlap_violation(IntegrityError("INSERT", {}, orig))


class TestScopedReads:
    def test_tutor_scope_uses_profile_id(self, db, student, tutor, make_tutor):
        repo = BookingRepository(db)
        repo.create_if_slot_free(**_fields(student, tutor))
        repo.create_if_slot_free(**_fields(student, make_tutor()))
        db.commit()

        items, total = repo.list_for_user(
            role=RoleName.TUTOR, user_id=tutor.user_id, tutor_profile_id=tutor.id
        )
        assert total == 1
        assert items[0].tutor_id == tutor.id

    def test_upcoming_excludes_started_and_cancelled(self, db, student, tutor):
        repo = BookingRepository(db)
        repo.create_if_slot_free(**_fields(student, tutor, start=time(8), end=time(9)))
        keep = repo.create_if_slot_free(**_fields(student, tutor, start=time(10), end=time(11)))
        repo.create_if_slot_free(
            **_fields(student, tutor, start=time(12), end=time(13), status="cancelled")
        )
        db.commit()

        upcoming = repo.get_upcoming_for_user(
            role=RoleName.STUDENT,
            user_id=student.id,
            tutor_profile_id=None,
            from_date=DAY,
            from_time=time(9, 30),
            until_date=DAY,
        )
        assert [b.id for b in upcoming] == [keep.id]
