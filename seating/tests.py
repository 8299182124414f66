import json
from unittest.mock import patch

from django.contrib import admin
from django.contrib.auth.models import User
from django.db import DatabaseError, IntegrityError
from django.forms import modelform_factory
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings

from .admin import AirplaneAdmin
from .context_processors import admin_occupancy
from .models import Airplane, Reservation
from .seatmap import NotEnoughSeats, Seat, auto_select, find_duplicates, in_bounds, seat_map
from .validation import ReservationRejected, reserve_seats, validate_reservation


class SeatMapTests(SimpleTestCase):
    def test_auto_select_returns_first_free_seats_in_row_major_order(self):
        reserved = [Seat(1, 1), (1, 3), {"rowNumber": 2, "seatNumber": 2}]
        selected = auto_select(4, n_rows=3, seats_per_row=3, reserved=reserved)
        self.assertEqual(
            selected,
            [Seat(1, 2), Seat(2, 1), Seat(2, 3), Seat(3, 1)],
        )

    def test_auto_select_fills_the_whole_airplane(self):
        selected = auto_select(6, n_rows=2, seats_per_row=3)
        self.assertEqual(len(selected), 6)
        self.assertEqual(selected, sorted(selected))

    def test_auto_select_fails_when_not_enough_seats_remain(self):
        reserved = [Seat(1, 1), Seat(1, 2), Seat(2, 1)]
        with self.assertRaises(NotEnoughSeats) as ctx:
            auto_select(2, n_rows=2, seats_per_row=2, reserved=reserved)
        self.assertEqual(ctx.exception.requested, 2)
        self.assertEqual(ctx.exception.available, 1)

    def test_auto_select_zero_or_negative_returns_nothing(self):
        self.assertEqual(auto_select(0, 2, 2), [])
        self.assertEqual(auto_select(-3, 2, 2), [])

    def test_find_duplicates_reports_repeats_after_first(self):
        seats = [Seat(1, 1), Seat(2, 2), Seat(1, 1), Seat(2, 2), Seat(1, 1)]
        self.assertEqual(find_duplicates(seats), [Seat(1, 1), Seat(2, 2), Seat(1, 1)])
        self.assertEqual(find_duplicates([Seat(1, 1), Seat(1, 2)]), [])

    def test_in_bounds_checks_rows_and_columns(self):
        self.assertTrue(in_bounds(Seat(1, 1), 3, 4))
        self.assertTrue(in_bounds(Seat(3, 4), 3, 4))
        self.assertFalse(in_bounds(Seat(0, 1), 3, 4))
        self.assertFalse(in_bounds(Seat(4, 1), 3, 4))
        self.assertFalse(in_bounds(Seat(1, 5), 3, 4))

    def test_seat_map_marks_reserved_and_selected(self):
        rows = seat_map(2, 2, reserved=[Seat(1, 1)], selected=[Seat(2, 2)])
        self.assertEqual([seat["status"] for seat in rows[0]], ["reserved", "available"])
        self.assertEqual([seat["status"] for seat in rows[1]], ["available", "selected"])
        self.assertEqual(rows[1][1]["rowNumber"], 2)
        self.assertEqual(rows[1][1]["seatNumber"], 2)


class ReservationTestMixin:
    def setUp(self):
        self.airplane = Airplane.objects.create(type="test-local", n_rows=3, seats_per_row=2)
        self.other_airplane = Airplane.objects.create(type="test-regional", n_rows=4, seats_per_row=3)
        self.user = self._create_user("passenger@example.com")
        self.other_user = self._create_user("other@example.com")

    def _create_user(self, email, password="SafePass123!"):
        return User.objects.create_user(username=email, email=email, password=password)

    def _reserve(self, user, airplane, *coords):
        for row_number, seat_number in coords:
            Reservation.objects.create(
                airplane=airplane,
                user=user,
                row_number=row_number,
                seat_number=seat_number,
            )


class ReservationValidatorTests(ReservationTestMixin, TestCase):
    def test_rejects_any_out_of_bounds_seat(self):
        seat_lists = [
            [Seat(4, 1)],
            [Seat(1, 3)],
            [Seat(1, 1), Seat(3, 2), Seat(9, 9)],
            [Seat(0, 1)],
        ]
        for seats in seat_lists:
            with self.subTest(seats=seats):
                with self.assertRaises(ReservationRejected) as ctx:
                    validate_reservation(seats, self.airplane.id, self.user)
                self.assertEqual(ctx.exception.status, 422)
                self.assertEqual(ctx.exception.errors, ["Selected seats are not valid"])

    def test_rejects_any_duplicate_seat(self):
        seat_lists = [
            [Seat(1, 1), Seat(1, 1)],
            [Seat(1, 1), Seat(2, 1), Seat(3, 2), Seat(2, 1)],
        ]
        for seats in seat_lists:
            with self.subTest(seats=seats):
                with self.assertRaises(ReservationRejected) as ctx:
                    validate_reservation(seats, self.airplane.id, self.user)
                self.assertEqual(ctx.exception.status, 400)
                self.assertIn("duplicateSeats", ctx.exception.as_payload())

    def test_rejects_unknown_airplane(self):
        with self.assertRaises(ReservationRejected) as ctx:
            validate_reservation([Seat(1, 1)], 999999, self.user)
        self.assertEqual(ctx.exception.status, 422)

    def test_reports_occupied_seats(self):
        self._reserve(self.other_user, self.airplane, (2, 1))
        with self.assertRaises(ReservationRejected) as ctx:
            validate_reservation([Seat(1, 1), Seat(2, 1)], self.airplane.id, self.user)
        payload = ctx.exception.as_payload()
        self.assertEqual(payload["errors"], ["Selected seats are not available"])
        self.assertEqual(len(payload["occupiedSeats"]), 1)
        self.assertEqual(payload["occupiedSeats"][0]["rowNumber"], 2)
        self.assertEqual(payload["occupiedSeats"][0]["seatNumber"], 1)

    def test_valid_request_passes_without_writing(self):
        validate_reservation([Seat(1, 1), Seat(3, 2)], self.airplane.id, self.user)
        self.assertEqual(Reservation.objects.count(), 0)

    def test_reserve_seats_stores_every_seat(self):
        reserve_seats([Seat(1, 1), Seat(1, 2)], self.airplane.id, self.user)
        self.assertEqual(
            set(Reservation.objects.values_list("row_number", "seat_number")),
            {(1, 1), (1, 2)},
        )

    def test_seat_taken_between_check_and_insert_is_reported_as_conflict(self):
        self._reserve(self.other_user, self.airplane, (1, 2))
        with patch("seating.validation.validate_reservation"):
            with self.assertRaises(ReservationRejected) as ctx, self.assertLogs(
                "seating.validation", level="INFO"
            ) as logs:
                reserve_seats([Seat(1, 1), Seat(1, 2)], self.airplane.id, self.user)
        self.assertTrue(
            any("rejected: Selected seats are not available" in line for line in logs.output)
        )
        self.assertEqual(ctx.exception.status, 422)
        self.assertEqual(ctx.exception.as_payload()["occupiedSeats"][0]["seatNumber"], 2)
        self.assertFalse(Reservation.objects.filter(user=self.user).exists())

    @override_settings(SEATING_MAX_SEATS_PER_RESERVATION=2)
    def test_seat_limit_is_enforced_when_configured(self):
        with self.assertRaises(ReservationRejected) as ctx:
            validate_reservation(
                [Seat(1, 1), Seat(1, 2), Seat(2, 1)], self.airplane.id, self.user
            )
        self.assertEqual(ctx.exception.status, 400)


class AirplaneApiTests(ReservationTestMixin, TestCase):
    def test_airplanes_list_includes_id_and_type(self):
        response = self.client.get("/api/airplanes")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), Airplane.objects.count())
        self.assertIn({"id": self.airplane.id, "type": "test-local"}, data)

    def test_airplane_detail_returns_geometry_and_reserved_seats(self):
        self._reserve(self.other_user, self.airplane, (2, 2))
        response = self.client.get(f"/api/airplanes/{self.airplane.id}")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["nRows"], 3)
        self.assertEqual(data["seatsPerRow"], 2)
        self.assertEqual(len(data["reservedSeats"]), 1)
        self.assertEqual(data["reservedSeats"][0]["rowNumber"], 2)

    def test_airplane_detail_unknown_returns_404(self):
        response = self.client.get("/api/airplanes/999999")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["errors"], ["Requested airplane doesn't exist"])

    def test_seats_endpoint_auto_selects_requested_count(self):
        self._reserve(self.other_user, self.airplane, (1, 1))
        response = self.client.get(f"/api/airplanes/{self.airplane.id}/seats?count=3")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(
            data["selectedSeats"],
            [
                {"rowNumber": 1, "seatNumber": 2},
                {"rowNumber": 2, "seatNumber": 1},
                {"rowNumber": 2, "seatNumber": 2},
            ],
        )
        self.assertEqual(len(data["seatMap"]), 3)
        self.assertEqual(data["seatMap"][0][0]["status"], "reserved")

    def test_seats_endpoint_reports_insufficient_availability(self):
        response = self.client.get(f"/api/airplanes/{self.airplane.id}/seats?count=7")
        self.assertEqual(response.status_code, 422)
        data = response.json()
        self.assertEqual(data["errors"], ["Not enough seats available"])
        self.assertEqual(data["availableSeats"], 6)

    def test_seats_endpoint_rejects_bad_count(self):
        response = self.client.get(f"/api/airplanes/{self.airplane.id}/seats?count=abc")
        self.assertEqual(response.status_code, 400)

    @patch("seating.store.get_airplanes", side_effect=DatabaseError("disk I/O error"))
    def test_storage_failure_returns_generic_500(self, _get_airplanes):
        response = self.client.get("/api/airplanes")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json()["errors"], ["Database error: cannot retrieve airplanes"]
        )


class ReservationApiTests(ReservationTestMixin, TestCase):
    def _post(self, airplane, payload):
        return self.client.post(
            f"/api/airplanes/{airplane.id}/reservations",
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_reservation_requires_authentication(self):
        response = self._post(self.airplane, {"seats": [{"rowNumber": 1, "seatNumber": 1}]})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["errors"], ["Not authenticated"])
        self.assertEqual(Reservation.objects.count(), 0)

    def test_reservation_creates_one_row_per_seat(self):
        self.client.force_login(self.user)
        response = self._post(
            self.airplane,
            {"seats": [{"rowNumber": 1, "seatNumber": 1}, {"rowNumber": 1, "seatNumber": 2}]},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Reservation.objects.filter(user=self.user).count(), 2)

    def test_reservation_body_validation(self):
        self.client.force_login(self.user)
        cases = [
            ({}, "No seats specified"),
            ({"seats": []}, "No seats specified"),
            ({"seats": [{"rowNumber": 0, "seatNumber": 1}]}, "rowNumber must be a positive integer"),
            ({"seats": [{"rowNumber": 1, "seatNumber": "x"}]}, "seatNumber must be a positive integer"),
        ]
        for payload, message in cases:
            with self.subTest(payload=payload):
                response = self._post(self.airplane, payload)
                self.assertEqual(response.status_code, 400)
                self.assertIn(message, response.json()["errors"])
        self.assertEqual(Reservation.objects.count(), 0)

    def test_invalid_json_returns_400(self):
        self.client.force_login(self.user)
        response = self.client.post(
            f"/api/airplanes/{self.airplane.id}/reservations",
            data="{not json",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_out_of_bounds_seat_is_rejected(self):
        self.client.force_login(self.user)
        response = self._post(
            self.airplane,
            {"seats": [{"rowNumber": 1, "seatNumber": 1}, {"rowNumber": 4, "seatNumber": 1}]},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["errors"], ["Selected seats are not valid"])
        self.assertEqual(Reservation.objects.count(), 0)

    def test_duplicate_seats_are_rejected(self):
        self.client.force_login(self.user)
        response = self._post(
            self.airplane,
            {"seats": [{"rowNumber": 2, "seatNumber": 1}, {"rowNumber": 2, "seatNumber": 1}]},
        )
        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertEqual(data["errors"], ["Duplicate seat(s) selected"])
        self.assertEqual(data["duplicateSeats"], [{"rowNumber": 2, "seatNumber": 1}])

    def test_occupied_seat_is_rejected_and_reported(self):
        self._reserve(self.other_user, self.airplane, (3, 2))
        self.client.force_login(self.user)
        response = self._post(
            self.airplane,
            {"seats": [{"rowNumber": 3, "seatNumber": 1}, {"rowNumber": 3, "seatNumber": 2}]},
        )
        self.assertEqual(response.status_code, 422)
        data = response.json()
        self.assertEqual(data["errors"], ["Selected seats are not available"])
        self.assertEqual(
            [(seat["rowNumber"], seat["seatNumber"]) for seat in data["occupiedSeats"]],
            [(3, 2)],
        )
        self.assertFalse(Reservation.objects.filter(user=self.user).exists())

    def test_second_reservation_on_same_airplane_is_rejected(self):
        self._reserve(self.user, self.airplane, (1, 1))
        self.client.force_login(self.user)
        response = self._post(self.airplane, {"seats": [{"rowNumber": 2, "seatNumber": 2}]})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["errors"], ["User already made a reservation for the airplane"]
        )

    def test_user_cannot_hold_seats_on_two_airplanes(self):
        self.client.force_login(self.user)
        first = self._post(self.airplane, {"seats": [{"rowNumber": 1, "seatNumber": 1}]})
        second = self._post(self.other_airplane, {"seats": [{"rowNumber": 1, "seatNumber": 1}]})
        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 422)
        self.assertEqual(
            second.json()["errors"], ["User already holds a reservation on another airplane"]
        )
        self.assertFalse(Reservation.objects.filter(airplane=self.other_airplane).exists())

    @override_settings(SEATING_ONE_AIRPLANE_PER_USER=False)
    def test_multiple_airplanes_allowed_when_rule_disabled(self):
        self._reserve(self.user, self.airplane, (1, 1))
        self.client.force_login(self.user)
        response = self._post(self.other_airplane, {"seats": [{"rowNumber": 1, "seatNumber": 1}]})
        self.assertEqual(response.status_code, 201)

    def test_automatic_reservation_by_count(self):
        self._reserve(self.other_user, self.airplane, (1, 1), (2, 1))
        self.client.force_login(self.user)
        response = self._post(self.airplane, {"count": 3})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(
            list(
                Reservation.objects.filter(user=self.user)
                .order_by("row_number", "seat_number")
                .values_list("row_number", "seat_number")
            ),
            [(1, 2), (2, 2), (3, 1)],
        )

    def test_automatic_reservation_fails_without_enough_seats(self):
        self._reserve(self.other_user, self.airplane, (1, 1), (1, 2), (2, 1))
        self.client.force_login(self.user)
        response = self._post(self.airplane, {"count": 4})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["errors"], ["Not enough seats available"])
        self.assertFalse(Reservation.objects.filter(user=self.user).exists())

    def test_automatic_reservation_zero_count_is_rejected(self):
        self.client.force_login(self.user)
        response = self._post(self.airplane, {"count": 0})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["No seats specified"])

    def test_delete_releases_only_own_seats(self):
        self._reserve(self.user, self.airplane, (1, 1), (1, 2))
        self._reserve(self.other_user, self.airplane, (2, 1))
        self.client.force_login(self.user)
        response = self.client.delete(f"/api/airplanes/{self.airplane.id}/reservations")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Reservation.objects.filter(user=self.user).exists())
        self.assertTrue(Reservation.objects.filter(user=self.other_user).exists())

    def test_delete_requires_authentication(self):
        response = self.client.delete(f"/api/airplanes/{self.airplane.id}/reservations")
        self.assertEqual(response.status_code, 401)

    def test_user_reservations_grouped_by_airplane(self):
        self._reserve(self.user, self.airplane, (1, 1), (3, 2))
        self._reserve(self.other_user, self.other_airplane, (1, 1))
        self.client.force_login(self.user)
        response = self.client.get("/api/reservations")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["airplaneId"], self.airplane.id)
        self.assertEqual(data[0]["type"], "test-local")
        self.assertEqual(
            [(seat["rowNumber"], seat["seatNumber"]) for seat in data[0]["reservedSeats"]],
            [(1, 1), (3, 2)],
        )

    def test_user_reservations_requires_authentication(self):
        response = self.client.get("/api/reservations")
        self.assertEqual(response.status_code, 401)

    def test_get_not_allowed_on_reservation_endpoint(self):
        self.client.force_login(self.user)
        response = self.client.get(f"/api/airplanes/{self.airplane.id}/reservations")
        self.assertEqual(response.status_code, 405)


class SessionApiTests(ReservationTestMixin, TestCase):
    def _login(self, username, password):
        return self.client.post(
            "/api/sessions",
            data=json.dumps({"username": username, "password": password}),
            content_type="application/json",
        )

    def test_login_with_email_sets_session(self):
        response = self._login("Passenger@Example.com", "SafePass123!")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], self.user.id)
        self.assertEqual(response.json()["email"], "passenger@example.com")

        current = self.client.get("/api/sessions/current")
        self.assertEqual(current.status_code, 200)
        self.assertEqual(current.json()["id"], self.user.id)

    def test_login_with_wrong_password_returns_401(self):
        response = self._login("passenger@example.com", "wrong-password")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["errors"], ["Wrong password and/or email"])

    def test_login_without_credentials_returns_401(self):
        response = self.client.post(
            "/api/sessions", data="{}", content_type="application/json"
        )
        self.assertEqual(response.status_code, 401)

    def test_current_session_requires_login(self):
        response = self.client.get("/api/sessions/current")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["errors"], ["Unauthenticated user"])

    def test_logout_clears_session(self):
        self.client.force_login(self.user)
        response = self.client.delete("/api/sessions/current")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/api/sessions/current").status_code, 401)


class AdminOccupancyTests(ReservationTestMixin, TestCase):
    def test_metrics_only_for_admin_pages(self):
        request = RequestFactory().get("/api/airplanes")
        self.assertEqual(admin_occupancy(request), {})

    def test_metrics_count_reserved_seats(self):
        self._reserve(self.user, self.airplane, (1, 1), (1, 2))
        request = RequestFactory().get("/admin/")
        metrics = admin_occupancy(request)["admin_metrics"]
        self.assertEqual(metrics["airplanes"], Airplane.objects.count())
        self.assertEqual(metrics["reserved_seats"], 2)
        self.assertEqual(metrics["passengers"], 1)

    def test_metrics_skipped_on_other_admin_pages(self):
        request = RequestFactory().get("/admin/seating/airplane/")
        self.assertEqual(admin_occupancy(request), {})

    def test_admin_index_shows_occupancy(self):
        self._reserve(self.user, self.airplane, (1, 1))
        staff = User.objects.create_superuser(
            username="ops@example.com", email="ops@example.com", password="SafePass123!"
        )
        self.client.force_login(staff)
        response = self.client.get("/admin/")
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Fleet occupancy")
        self.assertContains(response, "Seats reserved")
        self.assertEqual(response.context["admin_metrics"]["reserved_seats"], 1)


class AirplaneGeometryTests(ReservationTestMixin, TestCase):
    def _form(self, airplane, n_rows, seats_per_row):
        form_class = modelform_factory(Airplane, fields=("type", "n_rows", "seats_per_row"))
        return form_class(
            data={"type": airplane.type, "n_rows": n_rows, "seats_per_row": seats_per_row},
            instance=airplane,
        )

    def test_cannot_shrink_below_reserved_seats(self):
        self._reserve(self.user, self.airplane, (3, 2))
        form = self._form(self.airplane, n_rows=1, seats_per_row=1)
        self.assertFalse(form.is_valid())
        self.assertIn("n_rows", form.errors)
        self.assertIn("seats_per_row", form.errors)
        self.airplane.refresh_from_db()
        self.assertEqual((self.airplane.n_rows, self.airplane.seats_per_row), (3, 2))

    def test_growing_a_booked_airplane_is_allowed(self):
        self._reserve(self.user, self.airplane, (3, 2))
        self.assertTrue(self._form(self.airplane, n_rows=5, seats_per_row=2).is_valid())

    def test_empty_airplane_can_be_resized(self):
        self.assertTrue(self._form(self.airplane, n_rows=1, seats_per_row=1).is_valid())

    def test_admin_locks_dimensions_once_seats_are_reserved(self):
        request = RequestFactory().get("/admin/seating/airplane/")
        model_admin = AirplaneAdmin(Airplane, admin.site)
        self.assertNotIn("n_rows", model_admin.get_readonly_fields(request, self.airplane))

        self._reserve(self.user, self.airplane, (1, 1))
        readonly = model_admin.get_readonly_fields(request, self.airplane)
        self.assertIn("n_rows", readonly)
        self.assertIn("seats_per_row", readonly)


class ReservationStorageFailureTests(ReservationTestMixin, TestCase):
    def _post_seat(self):
        return self.client.post(
            f"/api/airplanes/{self.airplane.id}/reservations",
            data=json.dumps({"seats": [{"rowNumber": 1, "seatNumber": 1}]}),
            content_type="application/json",
        )

    @patch("seating.store.add_reservations", side_effect=IntegrityError("constraint failed"))
    def test_insert_failure_without_seat_conflict_returns_500(self, _add_reservations):
        self.client.force_login(self.user)
        response = self._post_seat()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["errors"], ["Database error"])

    @patch("seating.store.add_reservations", side_effect=DatabaseError("disk I/O error"))
    def test_storage_failure_on_reservation_returns_500(self, _add_reservations):
        self.client.force_login(self.user)
        response = self._post_seat()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["errors"], ["Database error"])


class SessionFormMessageTests(ReservationTestMixin, TestCase):
    def _login(self, payload):
        return self.client.post(
            "/api/sessions", data=json.dumps(payload), content_type="application/json"
        )

    def test_missing_password_reports_required_fields(self):
        response = self._login({"username": "passenger@example.com"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["errors"], ["Email and password are required"])

    def test_overlong_username_reports_length(self):
        response = self._login({"username": "a" * 300 + "@example.com", "password": "x"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["errors"], ["Email or username is too long"])
