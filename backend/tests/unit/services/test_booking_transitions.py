"""Tests for the booking status transition table."""

from types import SimpleNamespace

import pytest

from edshare.core.enums import RoleName
from edshare.core.exceptions import ForbiddenException, InvalidTransitionException
from edshare.models.booking import BookingStatus as S
from edshare.services.booking_transitions import (
    TRANSITIONS,
    can_transition,
    ensure_participant,
    ensure_reschedulable,
    ensure_transition,
    participant_role,
)


def _user(role, user_id="user-1", profile_id=None):
    return SimpleNamespace(
        id=user_id,
        role_name=role,
        tutor_profile=SimpleNamespace(id=profile_id) if profile_id else None,
    )


BOOKING = SimpleNamespace(id="booking-1", student_id="student-1", tutor_id="profile-1")


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,requested",
        [
            (S.SCHEDULED, S.CONFIRMED),
            (S.CONFIRMED, S.IN_PROGRESS),
            (S.IN_PROGRESS, S.COMPLETED),
            (S.CONFIRMED, S.NO_SHOW),
        ],
    )
    def test_tutor_drives_the_lifecycle(self, current, requested):
        assert can_transition(RoleName.TUTOR, current, requested)
        assert can_transition(RoleName.ADMIN, current, requested)
        assert not can_transition(RoleName.STUDENT, current, requested)

    def test_student_may_only_cancel(self):
        student_moves = {
            pair for pair, roles in TRANSITIONS.items() if RoleName.STUDENT in roles
        }
        assert {requested for _, requested in student_moves} == {S.CANCELLED}

    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.CANCELLED, S.NO_SHOW])
    def test_terminal_states_have_no_exits(self, terminal):
        assert not any(current == terminal for current, _ in TRANSITIONS)

    def test_cannot_skip_to_completed(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            ensure_transition(RoleName.TUTOR, S.SCHEDULED, S.COMPLETED)
        assert exc_info.value.details["role"] is None

    def test_disallowed_role_is_reported(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            ensure_transition(RoleName.STUDENT, S.SCHEDULED, S.CONFIRMED)
        assert exc_info.value.details["role"] == "student"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_in_progress_cannot_be_cancelled(self):
        with pytest.raises(InvalidTransitionException):
            ensure_transition(RoleName.ADMIN, S.IN_PROGRESS, S.CANCELLED)

    @pytest.mark.parametrize("requested", [S.RESCHEDULED, S.SCHEDULED])
    def test_slot_moves_are_not_plain_status_changes(self, requested):
        for current in (S.SCHEDULED, S.CONFIRMED, S.RESCHEDULED):
            assert not can_transition(RoleName.ADMIN, current, requested)


class TestReschedulable:
    @pytest.mark.parametrize("current", [S.SCHEDULED, S.CONFIRMED])
    def test_tutor_and_staff_may_reschedule(self, current):
        ensure_reschedulable(RoleName.TUTOR, current)
        ensure_reschedulable(RoleName.EMPLOYEE, current)

    def test_student_may_not(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            ensure_reschedulable(RoleName.STUDENT, S.SCHEDULED)
        assert exc_info.value.details["role"] == "student"

    @pytest.mark.parametrize("current", [S.IN_PROGRESS, S.COMPLETED, S.CANCELLED])
    def test_only_upcoming_bookings_move(self, current):
        with pytest.raises(InvalidTransitionException):
            ensure_reschedulable(RoleName.ADMIN, current)


class TestParticipants:
    def test_owning_student(self):
        assert participant_role(BOOKING, _user(RoleName.STUDENT, "student-1")) == RoleName.STUDENT

    def test_other_student_is_rejected(self):
        with pytest.raises(ForbiddenException):
            ensure_participant(BOOKING, _user(RoleName.STUDENT, "student-2"))

    def test_tutor_matches_on_profile_id(self):
        assert participant_role(BOOKING, _user(RoleName.TUTOR, "u", "profile-1")) == RoleName.TUTOR
        assert participant_role(BOOKING, _user(RoleName.TUTOR, "u", "profile-2")) is None
        assert participant_role(BOOKING, _user(RoleName.TUTOR, "u")) is None

    def test_staff_act_on_any_booking(self):
        assert participant_role(BOOKING, _user(RoleName.EMPLOYEE)) == RoleName.EMPLOYEE
