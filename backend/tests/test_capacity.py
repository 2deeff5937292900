from types import SimpleNamespace

import pytest

from campus.core.exceptions import CapacityConflictError, InvalidArgsError
from campus.services.capacity import (
    SeatCount,
    ensure_capacity_fits_roster,
    ensure_seat_available,
    validate_capacity_bounds,
)


def session(max_capacity, enrolled_count):
    return SimpleNamespace(external_id="CL101", max_capacity=max_capacity, enrolled_count=enrolled_count)


def test_seat_count_derives_availability():
    seats = SeatCount(max_capacity=2, enrolled_count=1)
    assert seats.available_seats == 1
    assert not seats.is_full

    full = SeatCount.of(session(2, 2))
    assert full.available_seats == 0
    assert full.is_full


def test_full_session_raises_capacity_conflict():
    ensure_seat_available(session(2, 1))

    with pytest.raises(CapacityConflictError) as exc_info:
        ensure_seat_available(session(2, 2))
    assert exc_info.value.status_code == 409
    assert exc_info.value.details["class_session_id"] == "CL101"


def test_capacity_cannot_shrink_below_roster():
    ensure_capacity_fits_roster(session(10, 5), 5)

    with pytest.raises(CapacityConflictError, match="below the 5 students"):
        ensure_capacity_fits_roster(session(10, 5), 4)


@pytest.mark.parametrize("value", [0, -1, 501])
def test_capacity_bounds(value):
    with pytest.raises(InvalidArgsError):
        validate_capacity_bounds(value, minimum=1, maximum=500)


def test_capacity_bounds_accept_edges():
    assert validate_capacity_bounds(1, minimum=1, maximum=500) == 1
    assert validate_capacity_bounds(500, minimum=1, maximum=500) == 500
