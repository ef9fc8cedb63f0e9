"""
Tests for PaymentService.

Stripe is never called: PaymentIntent and Refund are patched on the
module the service imports.
"""

from datetime import time, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from pydantic import SecretStr
import pytest
import stripe

from edshare.core.enums import RoleName
from edshare.core.exceptions import (
    BusinessRuleException,
    CollaboratorFailure,
    ForbiddenException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from edshare.services.payment_service import PaymentService, from_minor_units, to_minor_units

STRIPE = "edshare.services.payment_service.stripe"


@pytest.fixture
def stripe_configured():
    with patch("edshare.services.payment_service.settings.stripe_secret_key", SecretStr("sk_test_123")):
        yield


@pytest.fixture
def payment_service(db, stripe_configured):
    return PaymentService(db)


def _intent(booking_id, amount=70800, status="succeeded", intent_id="pi_123"):
    return SimpleNamespace(
        id=intent_id,
        client_secret=f"{intent_id}_secret",
        amount=amount,
        status=status,
        metadata={"booking_id": booking_id},
    )


class TestMinorUnits:
    def test_round_trip_keeps_paise(self):
        assert to_minor_units(Decimal("708.00")) == 70800
        assert to_minor_units(Decimal("295.5")) == 29550
        assert from_minor_units(29550) == Decimal("295.50")


class TestConfiguration:
    def test_unconfigured_gateway_fails_cleanly(self, db, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with pytest.raises(ServiceException) as exc_info:
            PaymentService(db).create_payment_intent(booking.id, student)
        assert exc_info.value.code == "PAYMENTS_NOT_CONFIGURED"


class TestCreatePaymentIntent:
    def test_creates_intent_for_booking_total(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)

        with patch(f"{STRIPE}.PaymentIntent.create", return_value=_intent(booking.id, status="requires_payment_method")) as create:
            response = payment_service.create_payment_intent(booking.id, student)

        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 70800
        assert kwargs["currency"] == "inr"
        assert kwargs["metadata"]["booking_id"] == booking.id
        assert kwargs["idempotency_key"] == f"booking:{booking.id}:intent:70800"
        assert response.amount == Decimal("708.00")
        assert response.client_secret == "pi_123_secret"
        assert booking.payment_order_id == "pi_123"

    def test_other_student_cannot_pay(self, payment_service, make_user, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with pytest.raises(ForbiddenException):
            payment_service.create_payment_intent(booking.id, make_user(RoleName.STUDENT))

    def test_paid_booking_is_rejected(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor, payment_status="paid")
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.create_payment_intent(booking.id, student)
        assert exc_info.value.code == "ALREADY_PAID"

    def test_cancelled_booking_is_rejected(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor, status="cancelled")
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.create_payment_intent(booking.id, student)
        assert exc_info.value.code == "BOOKING_NOT_PAYABLE"

    def test_stripe_error_is_collaborator_failure(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with patch(f"{STRIPE}.PaymentIntent.create", side_effect=stripe.StripeError("card declined")):
            with pytest.raises(CollaboratorFailure) as exc_info:
                payment_service.create_payment_intent(booking.id, student)
        assert exc_info.value.collaborator == "stripe"
        assert booking.payment_order_id is None


class TestVerifyPaymentIntent:
    def test_succeeded_intent_passes(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=_intent(booking.id)):
            result = payment_service.verify_payment_intent(booking, "pi_123")
        assert result["status"] == "succeeded"

    def test_pending_intent_is_collaborator_failure(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=_intent(booking.id, status="processing")):
            with pytest.raises(CollaboratorFailure):
                payment_service.verify_payment_intent(booking, "pi_123")

    def test_intent_for_another_booking(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=_intent("someone-else")):
            with pytest.raises(ValidationException) as exc_info:
                payment_service.verify_payment_intent(booking, "pi_123")
        assert exc_info.value.code == "PAYMENT_MISMATCH"

    def test_amount_mismatch(self, payment_service, student, tutor, make_booking):
        booking = make_booking(student, tutor)
        with patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=_intent(booking.id, amount=100)):
            with pytest.raises(ValidationException):
                payment_service.verify_payment_intent(booking, "pi_123")


class TestRefund:
    @pytest.fixture
    def paid_cancelled(self, student, tutor, make_booking):
        return make_booking(
            student,
            tutor,
            status="cancelled",
            payment_status="paid",
            payment_transaction_id="pi_123",
            refund_amount=Decimal("708.00"),
        )

    def test_defaults_to_cancellation_refund(self, payment_service, admin, paid_cancelled):
        with patch(f"{STRIPE}.Refund.create", return_value=SimpleNamespace(id="re_1", status="succeeded")) as create:
            response = payment_service.refund(paid_cancelled.id, admin)

        assert create.call_args.kwargs["amount"] == 70800
        assert create.call_args.kwargs["payment_intent"] == "pi_123"
        assert response.payment_status == "refunded"
        assert paid_cancelled.refund_id == "re_1"
        assert paid_cancelled.refunded_amount == Decimal("708.00")

    def test_partial_refund(self, payment_service, admin, paid_cancelled):
        with patch(f"{STRIPE}.Refund.create", return_value=SimpleNamespace(id="re_1", status="succeeded")):
            response = payment_service.refund(paid_cancelled.id, admin, amount=Decimal("200"))

        assert response.amount == Decimal("200.00")
        assert response.payment_status == "partial_refund"

    def test_cannot_refund_more_than_remains(self, payment_service, admin, paid_cancelled):
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.refund(paid_cancelled.id, admin, amount=Decimal("709"))
        assert exc_info.value.code == "INVALID_REFUND_AMOUNT"

    def test_staff_only(self, payment_service, student, paid_cancelled):
        with pytest.raises(ForbiddenException):
            payment_service.refund(paid_cancelled.id, student)

    def test_unpaid_booking(self, payment_service, admin, student, tutor, make_booking):
        booking = make_booking(student, tutor, status="cancelled", refund_amount=Decimal("708.00"))
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.refund(booking.id, admin)
        assert exc_info.value.code == "NOT_PAID"


class TestPaymentHistory:
    @pytest.fixture
    def history(self, student, tutor, make_booking, fixed_now):
        older = make_booking(
            student,
            tutor,
            start_time=time(10, 0),
            end_time=time(11, 0),
            payment_status="paid",
            payment_transaction_id="pi_old",
            paid_at=fixed_now - timedelta(days=2),
        )
        newer = make_booking(
            student,
            tutor,
            start_time=time(14, 0),
            end_time=time(15, 0),
            payment_status="partial_refund",
            payment_transaction_id="pi_new",
            paid_at=fixed_now - timedelta(days=1),
            refunded_amount=Decimal("354.00"),
        )
        make_booking(student, tutor, start_time=time(16, 0), end_time=time(17, 0))
        return older, newer

    def test_student_sees_latest_payment_first(self, payment_service, student, history):
        older, newer = history
        result = payment_service.get_payment_history(student)

        assert [p.booking_id for p in result.payments] == [newer.id, older.id]
        assert result.pagination.total_count == 2
        assert result.payments[0].refunded_amount == Decimal("354.00")
        assert result.payments[0].student_name == "Aarav Sharma"

    def test_unpaid_bookings_are_left_out(self, payment_service, student, history):
        result = payment_service.get_payment_history(student)
        assert all(p.payment_status != "pending" for p in result.payments)

    def test_tutor_sees_their_own_sessions(self, payment_service, tutor, history):
        result = payment_service.get_payment_history(tutor.user)
        assert result.pagination.total_count == 2
        assert result.payments[0].tutor_name.startswith("Priya")

    def test_other_student_sees_nothing(self, payment_service, make_user, history):
        result = payment_service.get_payment_history(make_user(RoleName.STUDENT))
        assert result.payments == []
        assert result.pagination.total_count == 0

    def test_staff_see_everything(self, payment_service, admin, history):
        assert payment_service.get_payment_history(admin).pagination.total_count == 2

    def test_pagination(self, payment_service, student, history):
        older, _ = history
        result = payment_service.get_payment_history(student, page=2, limit=1)

        assert [p.booking_id for p in result.payments] == [older.id]
        assert result.pagination.has_prev is True
        assert result.pagination.has_next is False

    def test_tutor_without_profile(self, payment_service, make_user):
        with pytest.raises(NotFoundException) as exc_info:
            payment_service.get_payment_history(make_user(RoleName.TUTOR))
        assert exc_info.value.code == "PROFILE_NOT_FOUND"
