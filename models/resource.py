from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Enum, DateTime
from database import Base
from sqlalchemy.orm import relationship
import enum


class ResourceType(enum.Enum):
    CAR = "car"
    RENTAL_DRIVER = "rental_driver"
    PROFESSIONAL_DRIVER = "professional_driver"


DRIVER_TYPES = (ResourceType.RENTAL_DRIVER, ResourceType.PROFESSIONAL_DRIVER)


class OperationalStatus(enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"
    SUSPENDED = "suspended"


class Resource(Base):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(ResourceType), nullable=False, index=True)
    name = Column(String, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    operational_status = Column(Enum(OperationalStatus), default=OperationalStatus.AVAILABLE, nullable=False)
    price_per_day = Column(Float, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    discount = Column(Float, default=0.0)

    # Written only by the rating aggregator
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    owner = relationship("User", backref="resources")

    @property
    def is_driver(self) -> bool:
        return self.type in DRIVER_TYPES

    def __repr__(self):
        return f"<Resource(id={self.id}, type={self.type.value}, status={self.operational_status.value})>"
