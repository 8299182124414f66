import logging

from django.conf import settings
from django.db import IntegrityError

from . import store
from .seatmap import find_duplicates

logger = logging.getLogger(__name__)


class ReservationRejected(Exception):
    """A reservation request broke a business rule.

    ``status`` is the HTTP status the API answers with and ``extra`` holds
    additional payload keys such as ``occupiedSeats``.
    """

    def __init__(self, status, errors, **extra):
        self.status = status
        self.errors = list(errors)
        self.extra = extra
        super().__init__("; ".join(self.errors))

    def as_payload(self):
        return {"errors": self.errors, **self.extra}


def _check_seat_limit(seats):
    limit = settings.SEATING_MAX_SEATS_PER_RESERVATION
    if limit and len(seats) > limit:
        raise ReservationRejected(
            400, [f"At most {limit} seats can be reserved at once"]
        )


def _check_duplicates(seats):
    duplicates = find_duplicates(seats)
    if duplicates:
        raise ReservationRejected(
            400,
            ["Duplicate seat(s) selected"],
            duplicateSeats=[seat.as_dict() for seat in duplicates],
        )


def _check_user_reservations(airplane_id, user):
    held = store.user_airplane_ids(user)
    if int(airplane_id) in held:
        raise ReservationRejected(
            422, ["User already made a reservation for the airplane"]
        )
    if held and settings.SEATING_ONE_AIRPLANE_PER_USER:
        raise ReservationRejected(
            422, ["User already holds a reservation on another airplane"]
        )


def _check_availability(seats, airplane_id):
    availability = store.check_available(seats, airplane_id)
    if not availability["available"]:
        raise ReservationRejected(
            422,
            ["Selected seats are not available"],
            occupiedSeats=availability["occupiedSeats"],
        )


def validate_reservation(seats, airplane_id, user):
    """Run every check for ``seats`` on ``airplane_id`` without writing.

    Raises ``ReservationRejected`` on the first rule that fails.
    """
    _check_seat_limit(seats)
    _check_duplicates(seats)
    _check_user_reservations(airplane_id, user)
    if not store.validate_seats(seats, airplane_id):
        raise ReservationRejected(422, ["Selected seats are not valid"])
    _check_availability(seats, airplane_id)


def _log_rejection(exc, airplane_id, user):
    logger.info(
        "Reservation on airplane %s by user %s rejected: %s",
        airplane_id,
        user.pk,
        exc,
    )


def reserve_seats(seats, airplane_id, user):
    try:
        validate_reservation(seats, airplane_id, user)
    except ReservationRejected as exc:
        _log_rejection(exc, airplane_id, user)
        raise

    try:
        store.add_reservations(seats, airplane_id, user)
    except IntegrityError:
        # Another request took one of the seats after the availability check.
        logger.warning(
            "Seat conflict while storing reservation on airplane %s", airplane_id
        )
        try:
            _check_availability(seats, airplane_id)
        except ReservationRejected as exc:
            _log_rejection(exc, airplane_id, user)
            raise
        # No seat conflict explains the failure; let it surface as a storage error.
        raise

    logger.info(
        "User %s reserved %d seat(s) on airplane %s", user.pk, len(seats), airplane_id
    )
