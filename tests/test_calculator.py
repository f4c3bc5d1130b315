from datetime import datetime, timedelta

import pytest

from services.calculator import calculate_rental_price, rental_days
from services.errors import ValidationError
from services.interval import Window

PICKUP = datetime(2024, 6, 1, 10, 0)


def window(**kwargs):
    return Window(PICKUP, PICKUP + timedelta(**kwargs))


@pytest.mark.parametrize("length, days", [
    (dict(hours=1), 1),
    (dict(days=1), 1),
    (dict(days=1, minutes=1), 2),
    (dict(days=3), 3),
])
def test_started_day_is_billed_in_full(length, days):
    assert rental_days(window(**length)) == days


def test_daily_price_with_discount():
    assert calculate_rental_price(window(days=3), 100.0, discount=10.0) == 270.0


def test_professional_driver_hours_are_added():
    assert calculate_rental_price(window(hours=5, minutes=30), 60.0, hourly_rate=15.0) == 60.0 + 6 * 15.0


def test_result_is_rounded_to_cents():
    assert calculate_rental_price(window(days=1), 33.333) == 33.33


@pytest.mark.parametrize("price", [None, -1.0])
def test_invalid_daily_price(price):
    with pytest.raises(ValidationError):
        calculate_rental_price(window(days=1), price)
