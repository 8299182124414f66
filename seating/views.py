from functools import wraps
import json
import logging

from django.contrib.auth import login, logout
from django.db import DatabaseError
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import store
from .auth import api_login_required, authenticate_identifier, user_payload
from .forms import parse_count, parse_credentials, parse_seats
from .seatmap import NotEnoughSeats, auto_select, seat_map
from .validation import ReservationRejected, reserve_seats

logger = logging.getLogger(__name__)

AIRPLANE_NOT_FOUND = "Requested airplane doesn't exist"


def _errors(status, *messages, **extra):
    return JsonResponse({"errors": list(messages), **extra}, status=status)


def _database_errors(message):
    """Turn storage failures into a 500 with a generic message."""

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                return view(request, *args, **kwargs)
            except DatabaseError:
                logger.exception("Database error in %s", view.__name__)
                return _errors(500, message)

        return wrapper

    return decorator


def _json_body(request):
    try:
        return json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


@require_GET
@_database_errors("Database error: cannot retrieve airplanes")
def airplanes_api(request):
    return JsonResponse(store.get_airplanes(), safe=False)


@require_GET
@_database_errors("Database error: cannot retrieve flight info")
def airplane_detail_api(request, airplane_id):
    airplane_info = store.get_airplane_info(airplane_id)
    if airplane_info is None:
        return _errors(404, AIRPLANE_NOT_FOUND)
    return JsonResponse(airplane_info)


@require_GET
@_database_errors("Database error: cannot retrieve flight info")
def airplane_seats_api(request, airplane_id):
    """Seat map of an airplane, optionally with ``count`` seats picked automatically."""
    airplane_info = store.get_airplane_info(airplane_id)
    if airplane_info is None:
        return _errors(404, AIRPLANE_NOT_FOUND)

    count, errors = parse_count({"count": request.GET.get("count", "0")})
    if errors:
        return _errors(400, *errors)

    try:
        selected = auto_select(
            count,
            airplane_info["nRows"],
            airplane_info["seatsPerRow"],
            airplane_info["reservedSeats"],
        )
    except NotEnoughSeats as exc:
        return _errors(422, str(exc), availableSeats=exc.available)

    return JsonResponse(
        {
            **airplane_info,
            "selectedSeats": [seat.as_dict() for seat in selected],
            "seatMap": seat_map(
                airplane_info["nRows"],
                airplane_info["seatsPerRow"],
                airplane_info["reservedSeats"],
                selected,
            ),
        }
    )


def _requested_seats(payload, airplane_id):
    """Seats named in the body, or picked automatically when only ``count`` is sent.

    Returns ``(seats, error_response)``.
    """
    if isinstance(payload, dict) and "count" in payload and "seats" not in payload:
        count, errors = parse_count(payload)
        if errors:
            return None, _errors(400, *errors)
        if count == 0:
            return None, _errors(400, "No seats specified")

        airplane_info = store.get_airplane_info(airplane_id)
        if airplane_info is None:
            return None, _errors(404, AIRPLANE_NOT_FOUND)
        try:
            return (
                auto_select(
                    count,
                    airplane_info["nRows"],
                    airplane_info["seatsPerRow"],
                    airplane_info["reservedSeats"],
                ),
                None,
            )
        except NotEnoughSeats as exc:
            return None, _errors(422, str(exc), availableSeats=exc.available)

    seats, errors = parse_seats(payload)
    if errors:
        return None, _errors(400, *errors)
    return seats, None


def _create_reservations(request, airplane_id):
    payload = _json_body(request)
    if payload is None:
        return _errors(400, "Invalid payload.")

    seats, error_response = _requested_seats(payload, airplane_id)
    if error_response is not None:
        return error_response

    try:
        reserve_seats(seats, airplane_id, request.user)
    except ReservationRejected as exc:
        return JsonResponse(exc.as_payload(), status=exc.status)
    return HttpResponse(status=201)


def _delete_reservations(request, airplane_id):
    deleted = store.delete_reservations(airplane_id, request.user)
    logger.info(
        "User %s released %d seat(s) on airplane %s",
        request.user.pk,
        deleted,
        airplane_id,
    )
    return HttpResponse(status=204)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@api_login_required
@_database_errors("Database error")
def airplane_reservations_api(request, airplane_id):
    if request.method == "POST":
        return _create_reservations(request, airplane_id)
    return _delete_reservations(request, airplane_id)


@require_GET
@api_login_required
@_database_errors("Database error")
def user_reservations_api(request):
    return JsonResponse(store.get_reservations_by_user(request.user), safe=False)


@csrf_exempt
@require_POST
def sessions_api(request):
    payload = _json_body(request)
    if payload is None:
        return _errors(400, "Invalid payload.")

    credentials, errors = parse_credentials(payload)
    if errors:
        return _errors(401, *errors)

    identifier, password = credentials
    user = authenticate_identifier(request, identifier, password)
    if user is None:
        logger.info("Failed login for %s", identifier)
        return _errors(401, "Wrong password and/or email")

    login(request, user)
    return JsonResponse(user_payload(user))


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
def current_session_api(request):
    if request.method == "DELETE":
        logout(request)
        return HttpResponse(status=200)

    if request.user.is_authenticated:
        return JsonResponse(user_payload(request.user))
    return _errors(401, "Unauthenticated user")
