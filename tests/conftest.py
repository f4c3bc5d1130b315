from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from database import init_db, make_engine
from models.booking import Booking, BookingStatus
from models.resource import OperationalStatus, Resource, ResourceType
from models.review import Review, ReviewStatus
from models.user import User
from services.availability import AvailabilityEngine
from services.locks import KeyedLockTable
from services.ratings import RatingAggregator
from services.reviews import ReviewService

GRACE = timedelta(minutes=15)


class FrozenClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def db_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'rental.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 20, 9, 0))


@pytest.fixture
def availability(session_factory, clock):
    return AvailabilityEngine(
        session_factory=session_factory,
        clock=clock,
        locks=KeyedLockTable(timeout=5),
        grace=GRACE,
    )


@pytest.fixture
def aggregator(session_factory):
    return RatingAggregator(session_factory=session_factory, locks=KeyedLockTable(timeout=5), attempts=2)


@pytest.fixture
def review_service(aggregator, session_factory, clock):
    return ReviewService(aggregator, session_factory=session_factory, clock=clock)


class Seeder:
    """Writes fixtures straight to the database, bypassing the booking rules."""

    def __init__(self, session_factory, clock):
        self.session_factory = session_factory
        self.clock = clock

    def _save(self, obj):
        db = self.session_factory()
        try:
            db.add(obj)
            db.commit()
            db.refresh(obj)
            return obj
        finally:
            db.close()

    def user(self, name="Alex"):
        return self._save(User(name=name))

    def resource(self, type=ResourceType.CAR, status=OperationalStatus.AVAILABLE, created_at=None, **kwargs):
        if type == ResourceType.CAR:
            kwargs.setdefault("price_per_day", 50.0)
        kwargs.setdefault("name", type.value)
        return self._save(Resource(
            type=type,
            operational_status=status,
            created_at=created_at or self.clock.now(),
            **kwargs,
        ))

    def car(self, **kwargs):
        return self.resource(ResourceType.CAR, **kwargs)

    def driver(self, professional=True, **kwargs):
        kind = ResourceType.PROFESSIONAL_DRIVER if professional else ResourceType.RENTAL_DRIVER
        return self.resource(kind, **kwargs)

    def booking(self, car, user, start, end, status=BookingStatus.CONFIRMED, driver=None, status_changed_at=None):
        now = self.clock.now()
        return self._save(Booking(
            car_id=car.id,
            driver_id=driver.id if driver else None,
            user_id=user.id,
            pickup_at=start,
            return_at=end,
            status=status,
            status_changed_at=status_changed_at or now,
            total_price=100.0,
            deposit_amount=500.0,
            created_at=now,
        ))

    def review(self, resource, user, booking, rating, status=ReviewStatus.ACTIVE):
        return self._save(Review(
            resource_id=resource.id,
            user_id=user.id,
            booking_id=booking.id,
            rating=rating,
            status=status,
            created_at=self.clock.now(),
        ))

    def get(self, model, pk):
        db = self.session_factory()
        try:
            return db.get(model, pk)
        finally:
            db.close()


@pytest.fixture
def seed(session_factory, clock):
    return Seeder(session_factory, clock)
