"""Booking status transitions and the blocking predicate."""

from datetime import datetime, timedelta
import enum

from sqlalchemy import and_, or_

from models.booking import Booking, BookingStatus
from services.errors import RejectedTransitionError, ValidationError
from services.interval import Window


class BookingEvent(enum.Enum):
    REQUEST_PAYMENT = "request_payment"
    REQUIRE_LICENSE = "require_license"
    REQUEST_VERIFICATION = "request_verification"
    CONFIRM = "confirm"
    START = "start"
    BEGIN_TRIP = "begin_trip"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


BLOCKING_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.CONFIRMED,
    BookingStatus.ACTIVE,
    BookingStatus.IN_PROGRESS,
})

TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
})

NON_TERMINAL_STATUSES = frozenset(BookingStatus) - TERMINAL_STATUSES

# event -> (allowed source statuses, target status)
TRANSITIONS = {
    BookingEvent.REQUEST_PAYMENT: (
        frozenset({BookingStatus.PENDING, BookingStatus.VERIFICATION_PENDING}),
        BookingStatus.PENDING_PAYMENT,
    ),
    BookingEvent.REQUIRE_LICENSE: (NON_TERMINAL_STATUSES, BookingStatus.LICENSE_REQUIRED),
    BookingEvent.REQUEST_VERIFICATION: (NON_TERMINAL_STATUSES, BookingStatus.VERIFICATION_PENDING),
    BookingEvent.CONFIRM: (frozenset({BookingStatus.PENDING_PAYMENT}), BookingStatus.CONFIRMED),
    BookingEvent.START: (frozenset({BookingStatus.CONFIRMED}), BookingStatus.ACTIVE),
    BookingEvent.BEGIN_TRIP: (frozenset({BookingStatus.ACTIVE}), BookingStatus.IN_PROGRESS),
    BookingEvent.COMPLETE: (
        frozenset({BookingStatus.ACTIVE, BookingStatus.IN_PROGRESS}),
        BookingStatus.COMPLETED,
    ),
    BookingEvent.CANCEL: (NON_TERMINAL_STATUSES, BookingStatus.CANCELLED),
    BookingEvent.MARK_NO_SHOW: (frozenset({BookingStatus.CONFIRMED}), BookingStatus.NO_SHOW),
}

# Events that are only meaningful once the rental window has opened
WINDOW_GATED_EVENTS = frozenset({BookingEvent.START, BookingEvent.MARK_NO_SHOW})


def parse_event(value) -> BookingEvent:
    if isinstance(value, BookingEvent):
        return value
    try:
        return BookingEvent(value)
    except ValueError:
        raise ValidationError(f"Unknown booking event: {value}") from None


def next_status(current: BookingStatus, event, window: Window = None, now: datetime = None) -> BookingStatus:
    """Pure transition function.

    Returns the status the booking moves to, or raises
    RejectedTransitionError. ``window`` and ``now`` are needed only for events
    gated on the pickup time.
    """
    event = parse_event(event)
    sources, target = TRANSITIONS[event]

    if current in TERMINAL_STATUSES:
        raise RejectedTransitionError(current.value, event.value, reason="booking is closed")
    if current not in sources:
        allowed = ", ".join(sorted(s.value for s in sources))
        raise RejectedTransitionError(current.value, event.value, reason=f"expected one of: {allowed}")

    if event in WINDOW_GATED_EVENTS:
        if window is None or now is None:
            raise RejectedTransitionError(current.value, event.value, reason="rental window is unknown")
        if now < window.start:
            raise RejectedTransitionError(
                current.value, event.value,
                reason=f"rental window opens at {window.start.isoformat()}",
            )

    return target


def allowed_events(current: BookingStatus):
    return [event for event, (sources, _) in TRANSITIONS.items() if current in sources]


def is_blocking(status: BookingStatus, status_changed_at: datetime, at: datetime, grace: timedelta) -> bool:
    if status not in BLOCKING_STATUSES:
        return False
    if status == BookingStatus.PENDING_PAYMENT and status_changed_at is not None:
        return status_changed_at + grace > at
    return True


def booking_is_blocking(booking: Booking, at: datetime, grace: timedelta) -> bool:
    return is_blocking(booking.status, booking.status_changed_at, at, grace)


def blocking_clause(at: datetime, grace: timedelta):
    """SQL form of :func:`booking_is_blocking` for Booking queries."""
    always_blocking = BLOCKING_STATUSES - {BookingStatus.PENDING_PAYMENT}
    return or_(
        Booking.status.in_(list(always_blocking)),
        and_(
            Booking.status == BookingStatus.PENDING_PAYMENT,
            Booking.status_changed_at > at - grace,
        ),
    )
