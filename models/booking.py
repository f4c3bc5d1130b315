from datetime import datetime

from sqlalchemy import Column, Integer, ForeignKey, Enum, Float, String, DateTime, CheckConstraint, Index
from database import Base
from sqlalchemy.orm import relationship
import enum


class BookingStatus(enum.Enum):
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    LICENSE_REQUIRED = "license_required"
    VERIFICATION_PENDING = "verification_pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    car_id = Column(Integer, ForeignKey("resources.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("resources.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pickup_at = Column(DateTime, nullable=False)
    return_at = Column(DateTime, nullable=False)
    pickup_location = Column(String, nullable=True)
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING_PAYMENT, nullable=False)
    # Time the current status was entered; the pending_payment grace period counts from here
    status_changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    total_price = Column(Float, nullable=False)
    deposit_amount = Column(Float, default=0.0, nullable=False)
    cancellation_reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    car = relationship("Resource", foreign_keys=[car_id])
    driver = relationship("Resource", foreign_keys=[driver_id])
    user = relationship("User")
    history = relationship(
        "BookingStatusChange",
        back_populates="booking",
        order_by="BookingStatusChange.id",
    )

    __table_args__ = (
        CheckConstraint("pickup_at < return_at", name="check_booking_window"),
        Index("ix_bookings_car_window", "car_id", "pickup_at", "return_at"),
        Index("ix_bookings_driver_window", "driver_id", "pickup_at", "return_at"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, car={self.car_id}, driver={self.driver_id}, status={self.status.value})>"


class BookingStatusChange(Base):
    __tablename__ = "booking_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    from_status = Column(Enum(BookingStatus), nullable=True)
    to_status = Column(Enum(BookingStatus), nullable=False)
    event = Column(String, nullable=False)
    changed_by = Column(String, nullable=False, default="system")
    notes = Column(String, nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    booking = relationship("Booking", back_populates="history")
