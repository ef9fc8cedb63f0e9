# backend/edshare/services/notification_service.py
"""
Notification Service for the EdShare platform

Sends booking emails and SMS on behalf of the booking lifecycle. Messages
are rendered on the caller's thread; provider delivery is handed to a
background worker so the request never waits on it. Each provider call
runs with a timeout and a bounded number of retries. Delivery failures are
logged and counted, never raised: a notification that cannot be sent must
not undo the booking change that triggered it.
"""

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from decimal import Decimal
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from ..core.config import settings
from ..core.exceptions import CollaboratorFailure
from ..models.booking import Booking
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from .email import EmailService
from .sms_service import SMSService, SMSStatus
from .template_service import TemplateService

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Provider calls run here so a hung request can be abandoned after the timeout
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="edshare-notify")


def _new_dispatch_pool() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=2, thread_name_prefix="edshare-notify-dispatch")


# Whole deliveries (all attempts) run here, off the request thread
_dispatch_executor = _new_dispatch_pool()


def shutdown_notifications(wait: bool = True) -> None:
    """
    Retire the dispatch pool; with ``wait`` the queued deliveries finish first.

    A fresh pool takes over so a restarted app can keep notifying.
    """
    global _dispatch_executor
    retired = _dispatch_executor
    _dispatch_executor = _new_dispatch_pool()
    retired.shutdown(wait=wait)


def retry(
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
    timeout_seconds: Optional[float] = None,
) -> Callable[[Callable[..., R]], Callable[..., R]]:
    """
    Decorator for retrying failed operations with exponential backoff.

    Each attempt is bounded by ``timeout_seconds``. Unset arguments fall back
    to the notification settings at call time.

    Args:
        max_attempts: Maximum number of attempts
        backoff_seconds: Initial backoff time in seconds
        timeout_seconds: Per-attempt timeout

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., R]) -> Callable[..., R]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> R:
            attempts = max_attempts or settings.notification_max_attempts
            backoff = (
                settings.notification_backoff_seconds if backoff_seconds is None else backoff_seconds
            )
            timeout = timeout_seconds or settings.notification_timeout_seconds
            last_exception: Optional[Exception] = None

            for attempt in range(attempts):
                future = _executor.submit(func, *args, **kwargs)
                try:
                    return future.result(timeout=timeout)
                except FutureTimeout:
                    future.cancel()
                    last_exception = CollaboratorFailure(
                        func.__name__, f"{func.__name__} timed out after {timeout}s"
                    )
                except Exception as e:
                    last_exception = e

                if attempt < attempts - 1:
                    wait_time = backoff * (2**attempt)
                    logger.warning(
                        f"Attempt {attempt + 1}/{attempts} failed for {func.__name__}: "
                        f"{last_exception}. Retrying in {wait_time}s..."
                    )
                    time.sleep(wait_time)
                else:
                    logger.error(f"All {attempts} attempts failed for {func.__name__}: {last_exception}")

            if last_exception is not None:
                raise last_exception
            raise RuntimeError("Retry failed without capturing exception")

        return wrapper

    return decorator


class NotificationService:
    """
    Booking notifications over email and SMS.

    Uses dependency injection for its providers (no singleton).
    """

    def __init__(
        self,
        template_service: Optional[TemplateService] = None,
        email_service: Optional[EmailService] = None,
        sms_service: Optional[SMSService] = None,
        background: Optional[bool] = None,
    ):
        self.template_service = template_service or TemplateService()
        self.email_service = email_service or EmailService()
        self.sms_service = sms_service or SMSService()
        self.background = settings.notification_background if background is None else background
        self.logger = logging.getLogger(self.__class__.__name__)

    # Public notifications, one per booking event

    def notify_booking_created(self, booking: Booking) -> int:
        """Confirmation to the student, new booking notice to the tutor."""
        student, tutor_user = booking.student, booking.tutor.user
        sent = 0
        sent += self._email(
            student,
            f"Booking Confirmed - {settings.brand_name}",
            "email/booking_confirmation_student.html",
            self._booking_context(booking, student),
        )
        sent += self._email(
            tutor_user,
            f"New Booking Request - {settings.brand_name}",
            "email/booking_new_tutor.html",
            self._booking_context(booking, tutor_user),
        )
        sent += self._sms(
            student,
            f"Booking confirmed! Session with {tutor_user.full_name} on "
            f"{booking.booking_date:%d %b %Y} at {booking.start_time:%H:%M}. "
            f"Booking ID: {booking.id}",
        )
        return sent

    def notify_status_changed(
        self, booking: Booking, previous_status: str, new_status: str, reason: Optional[str] = None
    ) -> int:
        context = self._booking_context(booking, booking.student)
        context.update(
            previous_status=previous_status.replace("_", " "),
            new_status=new_status.replace("_", " "),
            reason=reason,
        )
        return self._email(
            booking.student,
            f"Booking Update - {settings.brand_name}",
            "email/booking_status_changed.html",
            context,
        )

    def notify_booking_cancelled(
        self, booking: Booking, cancelled_by: str, refund_amount: Optional[Decimal] = None
    ) -> int:
        sent = 0
        for recipient in (booking.student, booking.tutor.user):
            context = self._booking_context(booking, recipient)
            context.update(
                cancelled_by=cancelled_by,
                refund_amount=refund_amount if recipient is booking.student else None,
            )
            sent += self._email(
                recipient,
                f"Booking Cancelled - {settings.brand_name}",
                "email/booking_cancelled.html",
                context,
            )
        return sent

    def notify_booking_rescheduled(
        self, booking: Booking, previous_date: str, previous_start_time: str
    ) -> int:
        sent = 0
        for recipient in (booking.student, booking.tutor.user):
            context = self._booking_context(booking, recipient)
            context.update(previous_date=previous_date, previous_start_time=previous_start_time)
            sent += self._email(
                recipient,
                f"Session Rescheduled - {settings.brand_name}",
                "email/booking_rescheduled.html",
                context,
            )
        return sent

    def notify_payment_confirmed(self, booking: Booking) -> int:
        student = booking.student
        sent = self._email(
            student,
            f"Payment Received - {settings.brand_name}",
            "email/payment_received.html",
            self._booking_context(booking, student),
        )
        sent += self._sms(
            student,
            f"Payment of ₹{booking.total_amount} received successfully. "
            f"Transaction ID: {booking.payment_transaction_id}",
        )
        return sent

    # Delivery helpers

    @staticmethod
    def _booking_context(booking: Booking, recipient: User) -> Dict[str, Any]:
        return {
            "booking": booking,
            "recipient_name": recipient.first_name,
            "student_name": booking.student.full_name,
            "tutor_name": booking.tutor.user.full_name,
        }

    def _email(self, recipient: User, subject: str, template: str, context: Dict[str, Any]) -> int:
        """
        Render one email here and deliver it.

        Returns 1 when the email was sent (or queued, in background mode)
        and 0 when it was skipped or failed.
        """
        if not recipient.email:
            prometheus_metrics.record_notification("email", "skipped")
            return 0
        try:
            html = self.template_service.render_template(template, context)
        except Exception as exc:
            self.logger.error(
                f"Email rendering failed for {recipient.id}: {exc}",
                extra={"template": template, "error_type": type(exc).__name__},
            )
            prometheus_metrics.record_notification("email", "failed")
            return 0
        return self._dispatch(self._deliver_email, recipient.id, recipient.email, subject, html)

    def _sms(self, recipient: User, message: str) -> int:
        if not recipient.phone:
            prometheus_metrics.record_notification("sms", "skipped")
            return 0
        return self._dispatch(self._deliver_sms, recipient.id, recipient.phone, message)

    def _dispatch(self, deliver: Callable[..., int], *args: Any) -> int:
        """Run ``deliver`` inline, or queue it when delivering in the background."""
        if not self.background:
            return deliver(*args)
        future = _dispatch_executor.submit(deliver, *args)
        future.add_done_callback(self._log_dispatch_error)
        return 1

    def _log_dispatch_error(self, future: Future) -> None:
        # Delivery helpers record their own failures; this only sees bugs
        exc = None if future.cancelled() else future.exception()
        if exc is not None:
            self.logger.error(
                f"Background notification crashed: {exc}",
                extra={"error_type": type(exc).__name__},
            )
            prometheus_metrics.record_notification("dispatch", "failed")

    def _deliver_email(self, recipient_id: str, to_email: str, subject: str, html: str) -> int:
        try:
            self._send_email(to_email, subject, html)
        except Exception as exc:
            self.logger.error(
                f"Email notification failed for {recipient_id}: {exc}",
                extra={"subject": subject, "error_type": type(exc).__name__},
            )
            prometheus_metrics.record_notification("email", "failed")
            return 0
        prometheus_metrics.record_notification("email", "sent")
        return 1

    def _deliver_sms(self, recipient_id: str, phone: str, message: str) -> int:
        try:
            _, status = self._send_sms(phone, message)
        except Exception as exc:
            self.logger.error(
                f"SMS notification failed for {recipient_id}: {exc}",
                extra={"error_type": type(exc).__name__},
            )
            prometheus_metrics.record_notification("sms", "failed")
            return 0
        if status is not SMSStatus.SUCCESS:
            prometheus_metrics.record_notification("sms", status.value)
            return 0
        prometheus_metrics.record_notification("sms", "sent")
        return 1

    @retry()
    def _send_email(self, to_email: str, subject: str, html: str) -> Dict[str, Any]:
        return self.email_service.send_email(to_email, subject, html)

    @retry()
    def _send_sms(self, to_number: str, message: str) -> Any:
        return self.sms_service.send_sms(to_number, message)
