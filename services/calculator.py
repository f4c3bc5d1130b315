import math

from services.errors import ValidationError
from services.interval import Window

SECONDS_PER_DAY = 24 * 60 * 60


def rental_days(window: Window) -> int:
    return math.ceil(window.duration.total_seconds() / SECONDS_PER_DAY)


def calculate_rental_price(window: Window, price_per_day: float, discount: float = 0.0,
                           hourly_rate: float = None) -> float:
    """
    Calculates the rental price for a window.

    :param window: rental window; a started day is billed as a full day
    :param price_per_day: daily price of the car
    :param discount: discount in percent (e.g. 10.0 for 10%)
    :param hourly_rate: hourly rate of a professional driver, if one is booked
    :return: total price rounded to cents
    """
    if price_per_day is None or price_per_day < 0:
        raise ValidationError("Car has no valid daily price")

    total = price_per_day * rental_days(window)
    if discount:
        total = total * (1 - discount / 100)

    if hourly_rate:
        hours = math.ceil(window.duration.total_seconds() / 3600)
        total += hourly_rate * hours

    return round(total, 2)
