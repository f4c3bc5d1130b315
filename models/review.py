from datetime import datetime

from sqlalchemy import Column, Integer, ForeignKey, String, Enum, DateTime, CheckConstraint, UniqueConstraint
from database import Base
from sqlalchemy.orm import relationship
import enum


class ReviewStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    status = Column(Enum(ReviewStatus), default=ReviewStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    resource = relationship("Resource")
    booking = relationship("Booking")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "booking_id", name="uq_review_user_booking"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="check_review_rating"),
    )
