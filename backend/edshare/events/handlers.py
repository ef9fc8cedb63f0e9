"""Event handlers - turn booking events into notifications."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.booking import Booking
from ..repositories.booking_repository import BookingRepository
from ..services.notification_service import NotificationService
from .booking_events import (
    BookingCancelled,
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    PaymentConfirmed,
)
from .publisher import EventPublisher

logger = logging.getLogger(__name__)


class BookingNotificationHandlers:
    """Handlers bound to one request's session and notification service."""

    def __init__(self, db: Session, notification_service: NotificationService):
        self.repository = BookingRepository(db)
        self.notification_service = notification_service

    def _load_booking(self, booking_id: str) -> Optional[Booking]:
        """Load booking with relationships for notification rendering."""
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            logger.warning("Booking %s not found for notification", booking_id)
        return booking

    def on_booking_created(self, event: BookingCreated) -> None:
        booking = self._load_booking(event.booking_id)
        if booking:
            sent = self.notification_service.notify_booking_created(booking)
            logger.info("Dispatched %s booking confirmation messages for %s", sent, booking.id)

    def on_status_changed(self, event: BookingStatusChanged) -> None:
        booking = self._load_booking(event.booking_id)
        if booking:
            self.notification_service.notify_status_changed(
                booking, event.previous_status, event.new_status, event.reason
            )

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        booking = self._load_booking(event.booking_id)
        if booking:
            self.notification_service.notify_booking_cancelled(
                booking, event.cancelled_by, event.refund_amount
            )

    def on_booking_rescheduled(self, event: BookingRescheduled) -> None:
        booking = self._load_booking(event.booking_id)
        if booking:
            self.notification_service.notify_booking_rescheduled(
                booking, event.previous_date, event.previous_start_time
            )

    def on_payment_confirmed(self, event: PaymentConfirmed) -> None:
        booking = self._load_booking(event.booking_id)
        if booking:
            self.notification_service.notify_payment_confirmed(booking)


def build_publisher(
    db: Session, notification_service: Optional[NotificationService] = None
) -> EventPublisher:
    """Publisher with the notification handlers subscribed to every booking event."""
    handlers = BookingNotificationHandlers(db, notification_service or NotificationService())
    publisher = EventPublisher()
    publisher.subscribe(BookingCreated.__name__, handlers.on_booking_created)
    publisher.subscribe(BookingStatusChanged.__name__, handlers.on_status_changed)
    publisher.subscribe(BookingCancelled.__name__, handlers.on_booking_cancelled)
    publisher.subscribe(BookingRescheduled.__name__, handlers.on_booking_rescheduled)
    publisher.subscribe(PaymentConfirmed.__name__, handlers.on_payment_confirmed)
    return publisher
