"""Data access for airplanes and reservations.

Every function returns plain dicts shaped like the JSON the API serves, so
views can hand them straight to ``JsonResponse``.
"""

from django.db import transaction

from .models import Airplane, Reservation
from .seatmap import Seat, in_bounds


def _reserved_seat_payload(reservation):
    return {
        "id": reservation.id,
        "rowNumber": reservation.row_number,
        "seatNumber": reservation.seat_number,
    }


def get_airplanes():
    return [
        {"id": airplane.id, "type": airplane.type}
        for airplane in Airplane.objects.order_by("id")
    ]


def get_airplane_reservations(airplane_id):
    reservations = Reservation.objects.filter(airplane_id=airplane_id).order_by(
        "row_number", "seat_number"
    )
    return [_reserved_seat_payload(reservation) for reservation in reservations]


def get_airplane_info(airplane_id):
    """Return geometry plus reserved seats, or ``None`` for an unknown airplane."""
    airplane = Airplane.objects.filter(id=airplane_id).first()
    if airplane is None:
        return None
    return {
        "id": airplane.id,
        "type": airplane.type,
        "nRows": airplane.n_rows,
        "seatsPerRow": airplane.seats_per_row,
        "reservedSeats": get_airplane_reservations(airplane.id),
    }


def add_reservations(seats, airplane_id, user):
    """Insert one reservation per seat; either every seat is stored or none."""
    with transaction.atomic():
        Reservation.objects.bulk_create(
            [
                Reservation(
                    airplane_id=airplane_id,
                    user=user,
                    row_number=seat.row_number,
                    seat_number=seat.seat_number,
                )
                for seat in seats
            ]
        )


def delete_reservations(airplane_id, user):
    deleted, _per_model = Reservation.objects.filter(
        airplane_id=airplane_id, user=user
    ).delete()
    return deleted


def get_reservations_by_user(user):
    """Group the user's reserved seats per airplane."""
    reservations = (
        Reservation.objects.select_related("airplane")
        .filter(user=user)
        .order_by("airplane_id", "row_number", "seat_number")
    )

    grouped = {}
    for reservation in reservations:
        entry = grouped.get(reservation.airplane_id)
        if entry is None:
            entry = grouped[reservation.airplane_id] = {
                "airplaneId": reservation.airplane_id,
                "type": reservation.airplane.type,
                "reservedSeats": [],
            }
        entry["reservedSeats"].append(_reserved_seat_payload(reservation))
    return list(grouped.values())


def user_airplane_ids(user):
    return set(
        Reservation.objects.filter(user=user).values_list("airplane_id", flat=True)
    )


def validate_seats(seats, airplane_id):
    """False if the airplane is unknown or any seat falls outside it."""
    airplane = Airplane.objects.filter(id=airplane_id).first()
    if airplane is None:
        return False
    return all(in_bounds(seat, airplane.n_rows, airplane.seats_per_row) for seat in seats)


def check_available(seats, airplane_id):
    requested = set(seats)
    occupied = [
        reserved
        for reserved in get_airplane_reservations(airplane_id)
        if Seat(reserved["rowNumber"], reserved["seatNumber"]) in requested
    ]
    if occupied:
        return {"available": False, "occupiedSeats": occupied}
    return {"available": True}
