"""
Request/response bodies of the booking API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.booking import BookingStatus
from models.resource import ResourceType
from models.review import ReviewStatus


class BookingCreate(BaseModel):
    car_id: int = Field(..., description="Car to reserve")
    user_id: int = Field(..., description="Customer making the booking")
    pickup_at: datetime
    return_at: datetime = Field(..., description="End of the rental window (exclusive)")
    driver_id: Optional[int] = Field(None, description="Rental or professional driver booked with the car")
    pickup_location: Optional[str] = None
    total_price: Optional[float] = Field(None, ge=0, description="Computed from the car's daily price when omitted")
    deposit_amount: Optional[float] = Field(None, ge=0)


class BookingEventIn(BaseModel):
    event: str = Field(..., description="request_payment, require_license, request_verification, confirm, "
                                        "start, begin_trip, complete, cancel, mark_no_show")
    actor: str = Field("system", description="Who triggered the change, kept in the status history")
    notes: Optional[str] = None


class WindowIn(BaseModel):
    pickup_at: datetime
    return_at: datetime
    actor: str = "system"


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    car_id: int
    driver_id: Optional[int] = None
    user_id: int
    pickup_at: datetime
    return_at: datetime
    pickup_location: Optional[str] = None
    status: BookingStatus
    status_changed_at: datetime
    total_price: float
    deposit_amount: float
    cancellation_reason: Optional[str] = None
    created_at: datetime
    allowed_events: List[str] = Field(default_factory=list)


class AvailabilityOut(BaseModel):
    resource_type: ResourceType
    pickup_at: datetime
    return_at: datetime
    resource_ids: List[int]


class ReviewCreate(BaseModel):
    user_id: int
    booking_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)
    resource_id: Optional[int] = Field(None, description="Defaults to the booked car")


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resource_id: int
    booking_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    status: ReviewStatus
    created_at: datetime


class RatingSummaryOut(BaseModel):
    resource_id: int
    average: float
    count: int
