"""Seat coordinates and the automatic seat selector.

Nothing in here touches the database: callers pass airplane geometry and the
coordinates that are already taken.
"""

from collections import namedtuple


class NotEnoughSeats(Exception):
    """Fewer free seats remain than were requested."""

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__("Not enough seats available")


class Seat(namedtuple("Seat", ("row_number", "seat_number"))):
    __slots__ = ()

    @classmethod
    def from_dict(cls, data):
        return cls(int(data["rowNumber"]), int(data["seatNumber"]))

    def as_dict(self):
        return {"rowNumber": self.row_number, "seatNumber": self.seat_number}


def _as_seat(value):
    if isinstance(value, Seat):
        return value
    if isinstance(value, dict):
        return Seat.from_dict(value)
    row_number, seat_number = value
    return Seat(row_number, seat_number)


def in_bounds(seat, n_rows, seats_per_row):
    return 1 <= seat.row_number <= n_rows and 1 <= seat.seat_number <= seats_per_row


def find_duplicates(seats):
    """Return every repeated seat after its first occurrence, in input order."""
    seen = set()
    duplicates = []
    for seat in map(_as_seat, seats):
        if seat in seen:
            duplicates.append(seat)
        else:
            seen.add(seat)
    return duplicates


def auto_select(n, n_rows, seats_per_row, reserved=()):
    """Pick the first ``n`` free seats scanning rows top-down, seats left-right.

    ``reserved`` may hold ``Seat`` instances, ``(row, seat)`` pairs or
    ``{"rowNumber", "seatNumber"}`` dicts.
    """
    n = max(int(n), 0)
    taken = {_as_seat(seat) for seat in reserved}

    selected = []
    if n == 0:
        return selected

    for row_number in range(1, n_rows + 1):
        for seat_number in range(1, seats_per_row + 1):
            seat = Seat(row_number, seat_number)
            if seat in taken:
                continue
            selected.append(seat)
            if len(selected) == n:
                return selected

    raise NotEnoughSeats(requested=n, available=len(selected))


def seat_map(n_rows, seats_per_row, reserved=(), selected=()):
    """Row-major grid describing the status of every seat."""
    taken = {_as_seat(seat) for seat in reserved}
    picked = {_as_seat(seat) for seat in selected}

    rows = []
    for row_number in range(1, n_rows + 1):
        row = []
        for seat_number in range(1, seats_per_row + 1):
            seat = Seat(row_number, seat_number)
            if seat in taken:
                status = "reserved"
            elif seat in picked:
                status = "selected"
            else:
                status = "available"
            row.append({**seat.as_dict(), "status": status})
        rows.append(row)
    return rows
