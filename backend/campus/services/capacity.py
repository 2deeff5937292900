from __future__ import annotations

from dataclasses import dataclass

from campus.core.exceptions import CapacityConflictError, InvalidArgsError


@dataclass(frozen=True)
class SeatCount:
    max_capacity: int
    enrolled_count: int

    @property
    def available_seats(self) -> int:
        return self.max_capacity - self.enrolled_count

    @property
    def is_full(self) -> bool:
        return self.enrolled_count >= self.max_capacity

    @classmethod
    def of(cls, session) -> SeatCount:
        return cls(max_capacity=session.max_capacity, enrolled_count=session.enrolled_count)


def validate_capacity_bounds(value: int, *, minimum: int, maximum: int) -> int:
    if value < minimum or value > maximum:
        raise InvalidArgsError(
            f"Max capacity must be between {minimum} and {maximum}",
            details={"max_capacity": value},
        )
    return value


def ensure_seat_available(session) -> None:
    seats = SeatCount.of(session)
    if seats.is_full:
        raise CapacityConflictError(
            f"Class session {session.external_id} is full (capacity {seats.max_capacity})",
            details={"class_session_id": session.external_id, "max_capacity": seats.max_capacity},
        )


def ensure_capacity_fits_roster(session, new_max_capacity: int) -> None:
    if new_max_capacity < session.enrolled_count:
        raise CapacityConflictError(
            f"Max capacity {new_max_capacity} is below the {session.enrolled_count} students "
            f"already enrolled in class session {session.external_id}",
            details={
                "class_session_id": session.external_id,
                "max_capacity": new_max_capacity,
                "enrolled_count": session.enrolled_count,
            },
        )
