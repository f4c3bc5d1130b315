"""Rating summary of a resource, always rebuilt from its active reviews."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import RATING_RECOMPUTE_ATTEMPTS, LOCK_TIMEOUT_SECONDS
from database import SessionLocal
from models.resource import Resource
from models.review import Review, ReviewStatus
from services.errors import AggregationError, NotFoundError, SerializationTimeoutError
from services.locks import KeyedLockTable


@dataclass(frozen=True)
class RatingSummary:
    average: float
    count: int


def summarize(ratings) -> RatingSummary:
    ratings = list(ratings)
    if not ratings:
        return RatingSummary(average=0.0, count=0)
    average = Decimal(sum(ratings)) / Decimal(len(ratings))
    return RatingSummary(
        average=float(average.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)),
        count=len(ratings),
    )


class RatingAggregator:
    def __init__(self, session_factory=SessionLocal, locks: KeyedLockTable = None,
                 attempts: int = RATING_RECOMPUTE_ATTEMPTS):
        self.session_factory = session_factory
        self.locks = locks if locks is not None else KeyedLockTable(LOCK_TIMEOUT_SECONDS)
        self.attempts = max(attempts, 1)

    def _recompute_once(self, resource_id: int) -> RatingSummary:
        db = self.session_factory()
        try:
            resource = db.query(Resource).filter(Resource.id == resource_id).with_for_update().first()
            if not resource:
                raise NotFoundError(f"Resource {resource_id} not found")

            rows = db.query(Review.rating).filter(
                Review.resource_id == resource_id,
                Review.status == ReviewStatus.ACTIVE,
            ).all()
            summary = summarize(row.rating for row in rows)

            resource.rating_average = summary.average
            resource.rating_count = summary.count
            db.commit()
            return summary
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def recompute(self, resource_id: int) -> RatingSummary:
        last_error = None
        try:
            with self.locks.hold(resource_id):
                for attempt in range(1, self.attempts + 1):
                    try:
                        summary = self._recompute_once(resource_id)
                    except SQLAlchemyError as e:
                        last_error = e
                        logger.warning(f"Rating recompute for resource {resource_id} failed (attempt {attempt}/{self.attempts}): {e}")
                        continue
                    logger.info(f"Resource {resource_id} rating: {summary.average} from {summary.count} reviews")
                    return summary
        except SerializationTimeoutError as e:
            last_error = e

        logger.error(f"Giving up on rating recompute for resource {resource_id}")
        raise AggregationError(resource_id, last_error)
