from django.contrib import admin
from django.urls import path
from seating.views import (
    airplane_detail_api,
    airplane_reservations_api,
    airplane_seats_api,
    airplanes_api,
    current_session_api,
    sessions_api,
    user_reservations_api,
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/airplanes", airplanes_api),
    path("api/airplanes/<int:airplane_id>", airplane_detail_api),
    path("api/airplanes/<int:airplane_id>/seats", airplane_seats_api),
    path("api/airplanes/<int:airplane_id>/reservations", airplane_reservations_api),
    path("api/reservations", user_reservations_api),
    path("api/sessions", sessions_api),
    path("api/sessions/current", current_session_api),
]
