from django.db import models
from django.core.exceptions import ValidationError
from django.contrib.auth.models import User


class Airplane(models.Model):
    # Example: local, regional, international
    type = models.CharField(max_length=40)
    n_rows = models.PositiveSmallIntegerField()
    seats_per_row = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ("id",)

    def clean(self):
        if self.n_rows is not None and self.n_rows < 1:
            raise ValidationError({"n_rows": "An airplane needs at least one row."})
        if self.seats_per_row is not None and self.seats_per_row < 1:
            raise ValidationError(
                {"seats_per_row": "An airplane needs at least one seat per row."}
            )
        if self.pk and self.n_rows and self.seats_per_row:
            self._check_reserved_seats_fit()

    def _check_reserved_seats_fit(self):
        furthest = self.reservations.aggregate(
            max_row=models.Max("row_number"), max_seat=models.Max("seat_number")
        )
        errors = {}
        if furthest["max_row"] and furthest["max_row"] > self.n_rows:
            errors["n_rows"] = f"Row {furthest['max_row']} is already reserved."
        if furthest["max_seat"] and furthest["max_seat"] > self.seats_per_row:
            errors["seats_per_row"] = f"Seat {furthest['max_seat']} is already reserved."
        if errors:
            raise ValidationError(errors)

    @property
    def capacity(self):
        return self.n_rows * self.seats_per_row

    def __str__(self):
        return f"#{self.id} {self.type} ({self.n_rows}x{self.seats_per_row})"


class Reservation(models.Model):
    # One row per reserved seat.
    airplane = models.ForeignKey(
        Airplane, on_delete=models.CASCADE, related_name="reservations"
    )
    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="reservations"
    )
    row_number = models.PositiveSmallIntegerField()
    seat_number = models.PositiveSmallIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("airplane", "row_number", "seat_number")
        constraints = [
            models.UniqueConstraint(
                fields=("airplane", "row_number", "seat_number"),
                name="unique_seat_per_airplane",
            ),
        ]
        indexes = [
            models.Index(fields=("user", "airplane"), name="reservation_user_airplane_idx"),
        ]

    def clean(self):
        # If one of the fields is missing, don't compare yet
        if not self.airplane_id or self.row_number is None or self.seat_number is None:
            return

        if not 1 <= self.row_number <= self.airplane.n_rows:
            raise ValidationError({"row_number": "Row is outside the airplane."})
        if not 1 <= self.seat_number <= self.airplane.seats_per_row:
            raise ValidationError({"seat_number": "Seat is outside the row."})

    def __str__(self):
        return f"{self.airplane.type} row {self.row_number} seat {self.seat_number}"
