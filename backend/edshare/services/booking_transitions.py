# backend/edshare/services/booking_transitions.py
"""
Booking status transition guard.

Every (role, current status, requested status) decision lives in one table
so that route handlers and services never re-derive role rules.
Ownership (tutors act on their own bookings, students on theirs) is
checked separately by ``ensure_participant``.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from ..core.enums import RoleName
from ..core.exceptions import ForbiddenException, InvalidTransitionException
from ..models.booking import Booking, BookingStatus
from ..models.user import User

S = BookingStatus

_TUTOR_OR_STAFF: FrozenSet[RoleName] = frozenset(
    {RoleName.TUTOR, RoleName.ADMIN, RoleName.EMPLOYEE}
)
_ANY_PARTICIPANT: FrozenSet[RoleName] = frozenset(
    {RoleName.STUDENT, RoleName.TUTOR, RoleName.ADMIN, RoleName.EMPLOYEE}
)

TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[RoleName]] = {
    (S.SCHEDULED, S.CONFIRMED): _TUTOR_OR_STAFF,
    (S.CONFIRMED, S.IN_PROGRESS): _TUTOR_OR_STAFF,
    (S.IN_PROGRESS, S.COMPLETED): _TUTOR_OR_STAFF,
    (S.CONFIRMED, S.NO_SHOW): _TUTOR_OR_STAFF,
    (S.IN_PROGRESS, S.NO_SHOW): _TUTOR_OR_STAFF,
    # Cancellation also enforces the lead-time rule (see pricing_service)
    (S.SCHEDULED, S.CANCELLED): _ANY_PARTICIPANT,
    (S.CONFIRMED, S.CANCELLED): _ANY_PARTICIPANT,
}

# Moves that only reschedule_booking performs. They change the slot as well as
# the status, so they are never valid status updates on their own.
RESCHEDULE_TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[RoleName]] = {
    (S.SCHEDULED, S.RESCHEDULED): _TUTOR_OR_STAFF,
    (S.CONFIRMED, S.RESCHEDULED): _TUTOR_OR_STAFF,
    (S.RESCHEDULED, S.SCHEDULED): _TUTOR_OR_STAFF,
}


def allowed_roles(current: BookingStatus, requested: BookingStatus) -> FrozenSet[RoleName]:
    return TRANSITIONS.get((current, requested), frozenset())


def can_transition(role: RoleName, current: BookingStatus, requested: BookingStatus) -> bool:
    return role in allowed_roles(current, requested)


def ensure_transition(role: RoleName, current: BookingStatus, requested: BookingStatus) -> None:
    """
    Raises:
        InvalidTransitionException: state pair not in the table, or role not permitted
    """
    roles = allowed_roles(current, requested)
    if not roles:
        raise InvalidTransitionException(current.value, requested.value)
    if role not in roles:
        raise InvalidTransitionException(current.value, requested.value, role=role.value)


def participant_role(booking: Booking, user: User) -> Optional[RoleName]:
    """The role under which ``user`` may act on ``booking``, or None."""
    role = user.role_name
    if role.is_staff:
        return role
    if role == RoleName.STUDENT and booking.student_id == user.id:
        return role
    if role == RoleName.TUTOR and user.tutor_profile is not None:
        if booking.tutor_id == user.tutor_profile.id:
            return role
    return None


def ensure_participant(booking: Booking, user: User, action: str = "access") -> RoleName:
    """
    Raises:
        ForbiddenException: user is neither a party to the booking nor staff
    """
    role = participant_role(booking, user)
    if role is None:
        raise ForbiddenException(
            f"You do not have permission to {action} this booking",
            code="BOOKING_ACCESS_DENIED",
            details={"booking_id": booking.id},
        )
    return role


def ensure_reschedulable(role: RoleName, current: BookingStatus) -> None:
    """
    Raises:
        InvalidTransitionException: booking cannot be rescheduled, or not by this role
    """
    roles = RESCHEDULE_TRANSITIONS.get((current, S.RESCHEDULED), frozenset())
    if not roles:
        raise InvalidTransitionException(current.value, S.RESCHEDULED.value)
    if role not in roles or role not in RESCHEDULE_TRANSITIONS[(S.RESCHEDULED, S.SCHEDULED)]:
        raise InvalidTransitionException(current.value, S.RESCHEDULED.value, role=role.value)
