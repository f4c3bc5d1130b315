from loguru import logger
from sqlalchemy.exc import IntegrityError

from database import SessionLocal
from models.booking import Booking, BookingStatus
from models.review import Review, ReviewStatus
from services.clock import SystemClock
from services.errors import AggregationError, ConflictError, NotFoundError, ValidationError
from services.ratings import RatingAggregator


class ReviewService:
    """Review create/deactivate; each change triggers a rating recompute."""

    def __init__(self, aggregator: RatingAggregator, session_factory=SessionLocal, clock=None):
        self.aggregator = aggregator
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def _refresh_rating(self, resource_id: int):
        # The review write is already committed; a failed recompute only leaves the
        # cached summary stale until the next trigger.
        try:
            self.aggregator.recompute(resource_id)
        except AggregationError as e:
            logger.error(f"Rating summary of resource {resource_id} left stale: {e}")

    def create_review(self, user_id: int, booking_id: int, rating: int, comment: str = None,
                      resource_id: int = None) -> Review:
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5")
        if comment is not None:
            comment = comment.strip() or None
            if comment and len(comment) > 500:
                raise ValidationError("Comment must be at most 500 characters")

        db = self.session_factory()
        try:
            booking = db.query(Booking).filter(Booking.id == booking_id).first()
            if not booking:
                raise NotFoundError(f"Booking {booking_id} not found")
            if booking.user_id != user_id:
                raise ValidationError("You can only review your own bookings")
            if booking.status != BookingStatus.COMPLETED:
                raise ValidationError("You can only review completed bookings")

            if resource_id is None:
                resource_id = booking.car_id
            elif resource_id not in (booking.car_id, booking.driver_id):
                raise ValidationError(f"Resource {resource_id} was not part of booking {booking_id}")

            now = self.clock.now()
            review = Review(
                user_id=user_id,
                booking_id=booking_id,
                resource_id=resource_id,
                rating=rating,
                comment=comment,
                status=ReviewStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            db.add(review)
            db.commit()
            db.refresh(review)
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                resource_id, None, message=f"Booking {booking_id} has already been reviewed"
            ) from None
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Review {review.id} added for resource {resource_id} (booking {booking_id}, rating {rating})")
        self._refresh_rating(resource_id)
        return review

    def deactivate_review(self, review_id: int) -> Review:
        db = self.session_factory()
        try:
            review = db.query(Review).filter(Review.id == review_id).first()
            if not review:
                raise NotFoundError(f"Review {review_id} not found")
            changed = review.status != ReviewStatus.INACTIVE
            if changed:
                review.status = ReviewStatus.INACTIVE
                review.updated_at = self.clock.now()
                db.commit()
                db.refresh(review)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if changed:
            logger.info(f"Review {review_id} deactivated")
        # Recompute even when nothing changed: triggers are at-least-once
        self._refresh_rating(review.resource_id)
        return review

    def list_reviews(self, resource_id: int):
        db = self.session_factory()
        try:
            return (
                db.query(Review)
                .filter(Review.resource_id == resource_id, Review.status == ReviewStatus.ACTIVE)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .all()
            )
        finally:
            db.close()
