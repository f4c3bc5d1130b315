from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger

from api.schemas import (
    AvailabilityOut, BookingCreate, BookingEventIn, BookingOut, RatingSummaryOut,
    ReviewCreate, ReviewOut, WindowIn,
)
from models.resource import ResourceType
from services import errors
from services.availability import AvailabilityEngine, BookingDraft
from services.interval import Window
from services.lifecycle import allowed_events
from services.ratings import RatingAggregator
from services.reviews import ReviewService


def _booking_out(booking) -> BookingOut:
    out = BookingOut.model_validate(booking)
    out.allowed_events = [event.value for event in allowed_events(booking.status)]
    return out


def _register_error_handlers(app: FastAPI):
    @app.exception_handler(errors.ValidationError)
    async def validation_error(request: Request, exc: errors.ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(errors.NotFoundError)
    async def not_found(request: Request, exc: errors.NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(errors.ConflictError)
    async def conflict(request: Request, exc: errors.ConflictError):
        return JSONResponse(status_code=409, content={
            "detail": str(exc),
            "resource_id": exc.resource_id,
            "conflicting_booking_id": exc.conflicting_booking_id,
        })

    @app.exception_handler(errors.RejectedTransitionError)
    async def rejected_transition(request: Request, exc: errors.RejectedTransitionError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "status": exc.status})

    @app.exception_handler(errors.SerializationTimeoutError)
    async def lock_timeout(request: Request, exc: errors.SerializationTimeoutError):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "resource_ids": exc.resource_ids},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(errors.AggregationError)
    async def aggregation_failed(request: Request, exc: errors.AggregationError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Rating summary could not be updated"})


def create_app(engine: AvailabilityEngine = None, aggregator: RatingAggregator = None,
               reviews: ReviewService = None) -> FastAPI:
    engine = engine or AvailabilityEngine()
    aggregator = aggregator or RatingAggregator(session_factory=engine.session_factory)
    reviews = reviews or ReviewService(aggregator, session_factory=engine.session_factory, clock=engine.clock)

    app = FastAPI(title="Car Rental Booking API")
    _register_error_handlers(app)

    @app.get("/availability", response_model=AvailabilityOut)
    def get_availability(
            resource_type: ResourceType,
            start: datetime,
            end: datetime,
            exclude_booking_id: Optional[int] = None,
            include_suspended: bool = False,
    ):
        window = Window(start, end)
        ids = engine.check_availability(
            resource_type, window,
            exclude_booking_id=exclude_booking_id,
            include_suspended=include_suspended,
        )
        return AvailabilityOut(resource_type=resource_type, pickup_at=window.start, return_at=window.end,
                               resource_ids=ids)

    @app.get("/resources/{resource_id}/calendar", response_model=List[BookingOut])
    def get_calendar(resource_id: int, start: datetime = Query(...), end: datetime = Query(...)):
        return [_booking_out(b) for b in engine.calendar(resource_id, Window(start, end))]

    @app.post("/bookings", response_model=BookingOut, status_code=201)
    def create_booking(payload: BookingCreate):
        draft = BookingDraft(
            user_id=payload.user_id,
            driver_id=payload.driver_id,
            pickup_location=payload.pickup_location,
            total_price=payload.total_price,
            deposit_amount=payload.deposit_amount,
        )
        booking = engine.reserve(payload.car_id, Window(payload.pickup_at, payload.return_at), draft)
        return _booking_out(booking)

    @app.get("/bookings/{booking_id}", response_model=BookingOut)
    def get_booking(booking_id: int):
        return _booking_out(engine.get_booking(booking_id))

    @app.post("/bookings/{booking_id}/events", response_model=BookingOut)
    def post_booking_event(booking_id: int, payload: BookingEventIn):
        booking = engine.transition(booking_id, payload.event, actor=payload.actor, notes=payload.notes)
        return _booking_out(booking)

    @app.patch("/bookings/{booking_id}/window", response_model=BookingOut)
    def reschedule_booking(booking_id: int, payload: WindowIn):
        booking = engine.reschedule(booking_id, Window(payload.pickup_at, payload.return_at), actor=payload.actor)
        return _booking_out(booking)

    @app.post("/reviews", response_model=ReviewOut, status_code=201)
    def create_review(payload: ReviewCreate):
        return reviews.create_review(
            payload.user_id, payload.booking_id, payload.rating,
            comment=payload.comment, resource_id=payload.resource_id,
        )

    @app.delete("/reviews/{review_id}", response_model=ReviewOut)
    def delete_review(review_id: int):
        return reviews.deactivate_review(review_id)

    @app.get("/resources/{resource_id}/reviews", response_model=List[ReviewOut])
    def get_reviews(resource_id: int):
        return reviews.list_reviews(resource_id)

    @app.post("/resources/{resource_id}/rating/recompute", response_model=RatingSummaryOut)
    def recompute_rating(resource_id: int):
        summary = aggregator.recompute(resource_id)
        return RatingSummaryOut(resource_id=resource_id, average=summary.average, count=summary.count)

    return app


app = create_app()
