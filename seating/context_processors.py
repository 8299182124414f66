import logging

from django.db import DatabaseError
from django.urls import reverse

logger = logging.getLogger(__name__)


def admin_occupancy(request):
    """Occupancy block shown on the admin index page."""
    if request.path != reverse("admin:index"):
        return {}

    try:
        from .models import Airplane, Reservation

        airplanes = Airplane.objects.all()
        capacity = sum(airplane.capacity for airplane in airplanes)
        reserved = Reservation.objects.count()
        admin_metrics = {
            "airplanes": len(airplanes),
            "capacity": capacity,
            "reserved_seats": reserved,
            "passengers": Reservation.objects.values("user").distinct().count(),
            "occupancy_percent": int(reserved * 100 / capacity) if capacity else 0,
        }
        return {"admin_metrics": admin_metrics}
    except DatabaseError:
        logger.exception("Could not compute admin occupancy metrics")
        return {}
