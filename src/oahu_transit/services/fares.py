"""TheBus fare rules (prices effective July 1, 2022).

Rail (Skyline) shares the bus fare table so bus/rail transfers cost nothing extra.
"""

from enum import Enum


class PassengerType(str, Enum):
    ADULT = "adult"
    YOUTH = "youth"  # 6-17
    SENIOR = "senior"  # 65+ or with disability


class PassType(str, Enum):
    DAY = "day"
    MONTHLY = "monthly"
    ANNUAL = "annual"


SINGLE_RIDE_FARES: dict[PassengerType, float] = {
    PassengerType.ADULT: 3.00,
    PassengerType.YOUTH: 1.50,
    PassengerType.SENIOR: 1.25,
}

PASS_PRICES: dict[PassType, dict[PassengerType, float]] = {
    PassType.DAY: {
        PassengerType.ADULT: 7.50,
        PassengerType.YOUTH: 3.75,
        PassengerType.SENIOR: 3.00,
    },
    PassType.MONTHLY: {
        PassengerType.ADULT: 80.00,
        PassengerType.YOUTH: 40.00,
        PassengerType.SENIOR: 35.00,
    },
    PassType.ANNUAL: {
        PassengerType.ADULT: 880.00,
        PassengerType.YOUTH: 440.00,
        PassengerType.SENIOR: 385.00,
    },
}

# Free transfers within this many minutes of first boarding (with a transfer pass)
TRANSFER_WINDOW_MINUTES = 150


def get_base_fare(passenger_type: PassengerType | str = PassengerType.ADULT) -> float:
    """Single-ride fare for a passenger category."""
    return SINGLE_RIDE_FARES[PassengerType(passenger_type)]


def calculate_trip_cost(
    transfers: int,
    passenger_type: PassengerType | str = PassengerType.ADULT,
    has_transfer_pass: bool = False,
) -> float:
    """Fare for a journey with the given number of transfers.

    With a transfer pass every boarding after the first is free; without one
    each boarding is a new fare.

    Raises:
        ValueError: If transfers is negative or passenger_type is unknown.
    """
    if transfers < 0:
        raise ValueError("transfers must be >= 0")
    base_fare = get_base_fare(passenger_type)
    if has_transfer_pass:
        return base_fare
    return round(base_fare * (transfers + 1), 2)


def get_pass_price(
    pass_type: PassType | str, passenger_type: PassengerType | str = PassengerType.ADULT
) -> float:
    return PASS_PRICES[PassType(pass_type)][PassengerType(passenger_type)]


def get_day_pass_savings(
    trips: int, passenger_type: PassengerType | str = PassengerType.ADULT
) -> float:
    """How much a day pass saves over paying ``trips`` single fares (never negative)."""
    regular_cost = get_base_fare(passenger_type) * trips
    return round(max(0.0, regular_cost - get_pass_price(PassType.DAY, passenger_type)), 2)
