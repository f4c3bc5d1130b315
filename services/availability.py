"""Availability search and conflict-free booking writes. Drivers are checked across every car."""

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import PENDING_PAYMENT_GRACE_MINUTES, LOCK_TIMEOUT_SECONDS, DEFAULT_DEPOSIT_AMOUNT
from database import SessionLocal
from models.booking import Booking, BookingStatus, BookingStatusChange
from models.resource import Resource, ResourceType
from models.user import User
from services.calculator import calculate_rental_price
from services.clock import SystemClock
from services.directory import ResourceDirectory, parse_resource_type
from services.errors import ConflictError, NotFoundError, RejectedTransitionError, ValidationError
from services.interval import Window
from services.lifecycle import (
    TERMINAL_STATUSES, blocking_clause, booking_is_blocking, is_blocking, next_status, parse_event,
)
from services.locks import KeyedLockTable


@dataclass
class BookingDraft:
    user_id: int
    driver_id: Optional[int] = None
    pickup_location: Optional[str] = None
    total_price: Optional[float] = None
    deposit_amount: Optional[float] = None


def as_window(value) -> Window:
    if isinstance(value, Window):
        return value
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return Window(*value)
    raise ValidationError(f"Expected a (start, end) window, got {value!r}")


def booking_window(booking: Booking) -> Window:
    return Window(booking.pickup_at, booking.return_at)


def _column_for(resource_type: ResourceType):
    return Booking.car_id if resource_type == ResourceType.CAR else Booking.driver_id


class AvailabilityEngine:
    def __init__(self, session_factory=SessionLocal, clock=None, locks: KeyedLockTable = None,
                 grace: timedelta = None, lock_timeout: float = LOCK_TIMEOUT_SECONDS):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.locks = locks if locks is not None else KeyedLockTable(lock_timeout)
        self.grace = grace if grace is not None else timedelta(minutes=PENDING_PAYMENT_GRACE_MINUTES)

    # --- queries -----------------------------------------------------------

    def _overlapping(self, db: Session, column, resource_ids, window: Window, at, exclude_booking_id=None):
        query = db.query(Booking).filter(
            column.in_(list(resource_ids)),
            Booking.pickup_at < window.end,
            Booking.return_at > window.start,
            blocking_clause(at, self.grace),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query

    def _ensure_free(self, db: Session, resource: Resource, window: Window, at, exclude_booking_id=None):
        column = _column_for(resource.type)
        conflict = (
            self._overlapping(db, column, [resource.id], window, at, exclude_booking_id)
            .order_by(Booking.pickup_at, Booking.id)
            .first()
        )
        if conflict:
            logger.info(f"Conflict on resource {resource.id} for {window}: booking {conflict.id} ({conflict.status.value})")
            raise ConflictError(resource.id, window, conflicting_booking_id=conflict.id)

    def check_availability(self, resource_type, window, exclude_booking_id: int = None,
                           include_suspended: bool = False) -> List[int]:
        resource_type = parse_resource_type(resource_type)
        window = as_window(window)
        at = self.clock.now()

        db = self.session_factory()
        try:
            candidates = ResourceDirectory(db).find_candidates(
                resource_type, exclude_suspended=not include_suspended
            )
            if not candidates:
                return []
            column = _column_for(resource_type)
            busy = {
                row[0]
                for row in self._overlapping(db, column, candidates, window, at, exclude_booking_id)
                .with_entities(column)
                .distinct()
            }
            return [resource_id for resource_id in candidates if resource_id not in busy]
        finally:
            db.close()

    def calendar(self, resource_id: int, window) -> List[Booking]:
        """Blocking bookings of a resource that overlap ``window``."""
        window = as_window(window)
        db = self.session_factory()
        try:
            resource = ResourceDirectory(db).get(resource_id)
            return (
                self._overlapping(db, _column_for(resource.type), [resource.id], window, self.clock.now())
                .order_by(Booking.pickup_at, Booking.id)
                .all()
            )
        finally:
            db.close()

    def get_booking(self, booking_id: int) -> Booking:
        db = self.session_factory()
        try:
            return self._load_booking(db, booking_id)
        finally:
            db.close()

    @staticmethod
    def _load_booking(db: Session, booking_id: int) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    # --- writes ------------------------------------------------------------

    @staticmethod
    def _check_resources(car: Resource, driver: Optional[Resource], window: Window):
        if car.type != ResourceType.CAR:
            raise ValidationError(f"Resource {car.id} is a {car.type.value}, bookings are made for a car")
        if driver is not None and not driver.is_driver:
            raise ValidationError(f"Resource {driver.id} is not a driver")
        for resource in filter(None, (car, driver)):
            if not ResourceDirectory.is_eligible(resource):
                raise ConflictError(
                    resource.id, window,
                    message=f"Resource {resource.id} is {resource.operational_status.value}",
                )

    def reserve(self, resource_id: int, window, draft: BookingDraft) -> Booking:
        window = as_window(window)
        keys = [resource_id] if draft.driver_id is None else [resource_id, draft.driver_id]

        with self.locks.hold(*keys, window=window):
            db = self.session_factory()
            try:
                directory = ResourceDirectory(db)
                car = directory.get(resource_id)
                driver = directory.get(draft.driver_id) if draft.driver_id is not None else None
                self._check_resources(car, driver, window)
                if not db.query(User.id).filter(User.id == draft.user_id).first():
                    raise NotFoundError(f"User {draft.user_id} not found")

                directory.lock_rows(keys)
                at = self.clock.now()
                self._ensure_free(db, car, window, at)
                if driver is not None:
                    self._ensure_free(db, driver, window, at)

                total_price = draft.total_price
                if total_price is None:
                    hourly_rate = driver.hourly_rate if driver and driver.type == ResourceType.PROFESSIONAL_DRIVER else None
                    total_price = calculate_rental_price(
                        window, car.price_per_day, discount=car.discount or 0.0, hourly_rate=hourly_rate
                    )

                booking = Booking(
                    car_id=car.id,
                    driver_id=driver.id if driver else None,
                    user_id=draft.user_id,
                    pickup_at=window.start,
                    return_at=window.end,
                    pickup_location=draft.pickup_location,
                    status=BookingStatus.PENDING_PAYMENT,
                    status_changed_at=at,
                    total_price=total_price,
                    deposit_amount=DEFAULT_DEPOSIT_AMOUNT if draft.deposit_amount is None else draft.deposit_amount,
                    created_at=at,
                    updated_at=at,
                )
                db.add(booking)
                db.flush()
                db.add(BookingStatusChange(
                    booking_id=booking.id,
                    from_status=None,
                    to_status=BookingStatus.PENDING_PAYMENT,
                    event="reserve",
                    changed_by=f"user:{draft.user_id}",
                    changed_at=at,
                ))
                db.commit()
                db.refresh(booking)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        logger.info(f"Booking {booking.id} reserved: car={booking.car_id}, driver={booking.driver_id}, window={window}")
        return booking

    def _resource_keys(self, booking_id: int):
        db = self.session_factory()
        try:
            booking = self._load_booking(db, booking_id)
            return [key for key in (booking.car_id, booking.driver_id) if key is not None]
        finally:
            db.close()

    def transition(self, booking_id: int, event, actor: str = "system", notes: str = None) -> Booking:
        event = parse_event(event)
        keys = self._resource_keys(booking_id)

        with self.locks.hold(*keys):
            db = self.session_factory()
            try:
                booking = self._load_booking(db, booking_id)
                window = booking_window(booking)
                at = self.clock.now()
                previous = booking.status
                try:
                    target = next_status(previous, event, window=window, now=at)
                except RejectedTransitionError as exc:
                    exc.booking_id = booking_id
                    logger.info(f"Booking {booking_id}: {exc}")
                    raise

                # Coming back to a blocking status: the window may have been taken meanwhile
                if not booking_is_blocking(booking, at, self.grace) and is_blocking(target, at, at, self.grace):
                    directory = ResourceDirectory(db)
                    directory.lock_rows(keys)
                    for resource_id in keys:
                        self._ensure_free(db, directory.get(resource_id), window, at, exclude_booking_id=booking.id)

                booking.status = target
                booking.status_changed_at = at
                booking.updated_at = at
                if target == BookingStatus.CANCELLED:
                    booking.cancellation_reason = notes
                db.add(BookingStatusChange(
                    booking_id=booking.id,
                    from_status=previous,
                    to_status=target,
                    event=event.value,
                    changed_by=actor,
                    notes=notes,
                    changed_at=at,
                ))
                db.commit()
                db.refresh(booking)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        logger.info(f"Booking {booking_id}: {previous.value} -> {target.value} ({event.value} by {actor})")
        return booking

    def reschedule(self, booking_id: int, window, actor: str = "system") -> Booking:
        """Move a booking to a new window without it conflicting with itself."""
        window = as_window(window)
        keys = self._resource_keys(booking_id)

        with self.locks.hold(*keys, window=window):
            db = self.session_factory()
            try:
                booking = self._load_booking(db, booking_id)
                if booking.status in TERMINAL_STATUSES:
                    raise RejectedTransitionError(
                        booking.status.value, "reschedule", reason="booking is closed", booking_id=booking_id
                    )
                directory = ResourceDirectory(db)
                directory.lock_rows(keys)
                at = self.clock.now()
                for resource_id in keys:
                    self._ensure_free(db, directory.get(resource_id), window, at, exclude_booking_id=booking.id)

                previous = booking_window(booking)
                booking.pickup_at = window.start
                booking.return_at = window.end
                booking.updated_at = at
                db.commit()
                db.refresh(booking)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        logger.info(f"Booking {booking_id} rescheduled by {actor}: {previous} -> {window}")
        return booking
