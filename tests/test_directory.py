from datetime import timedelta

import pytest

from models.resource import OperationalStatus, ResourceType
from services.directory import ResourceDirectory
from services.errors import NotFoundError, ValidationError


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def test_candidates_filtered_by_type_and_status(db, seed, clock):
    first = seed.car(created_at=clock.now())
    busy = seed.car(status=OperationalStatus.BUSY, created_at=clock.now() + timedelta(minutes=1))
    seed.car(status=OperationalStatus.SUSPENDED)
    seed.car(status=OperationalStatus.OFFLINE)
    seed.driver()

    assert ResourceDirectory(db).find_candidates(ResourceType.CAR) == [first.id, busy.id]


def test_candidates_ordered_by_creation(db, seed, clock):
    late = seed.driver(created_at=clock.now() + timedelta(days=1))
    early = seed.driver(created_at=clock.now())
    assert ResourceDirectory(db).find_candidates("professional_driver") == [early.id, late.id]


def test_administrative_override_includes_suspended(db, seed):
    active = seed.car()
    suspended = seed.car(status=OperationalStatus.SUSPENDED)
    ids = ResourceDirectory(db).find_candidates(ResourceType.CAR, exclude_suspended=False)
    assert ids == [active.id, suspended.id]


def test_unknown_type(db):
    with pytest.raises(ValidationError):
        ResourceDirectory(db).find_candidates("bicycle")


def test_get_missing_resource(db):
    with pytest.raises(NotFoundError):
        ResourceDirectory(db).get(999)


def test_lock_rows_returns_resources_in_id_order(db, seed):
    a = seed.car()
    b = seed.driver()
    rows = ResourceDirectory(db).lock_rows([b.id, a.id])
    assert [r.id for r in rows] == [a.id, b.id]
