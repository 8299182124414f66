from django import forms

from .seatmap import Seat


class SeatForm(forms.Form):
    rowNumber = forms.IntegerField(
        min_value=1,
        error_messages={
            "required": "rowNumber must be a positive integer",
            "invalid": "rowNumber must be a positive integer",
            "min_value": "rowNumber must be a positive integer",
        },
    )
    seatNumber = forms.IntegerField(
        min_value=1,
        error_messages={
            "required": "seatNumber must be a positive integer",
            "invalid": "seatNumber must be a positive integer",
            "min_value": "seatNumber must be a positive integer",
        },
    )

    def to_seat(self):
        return Seat(self.cleaned_data["rowNumber"], self.cleaned_data["seatNumber"])


class SeatCountForm(forms.Form):
    count = forms.IntegerField(
        min_value=0,
        max_value=10000,
        error_messages={
            "required": "count must be a non-negative integer",
            "invalid": "count must be a non-negative integer",
            "min_value": "count must be a non-negative integer",
            "max_value": "count is too large",
        },
    )


class SessionForm(forms.Form):
    username = forms.CharField(
        max_length=254,
        error_messages={
            "required": "Email and password are required",
            "max_length": "Email or username is too long",
        },
    )
    password = forms.CharField(
        strip=False,
        error_messages={"required": "Email and password are required"},
    )


def _form_messages(form):
    messages = []
    for field_errors in form.errors.values():
        for message in field_errors:
            if message not in messages:
                messages.append(message)
    return messages


def parse_seats(payload):
    """Validate the ``seats`` list of a reservation body.

    Returns ``(seats, errors)``; ``errors`` is empty when every entry is valid.
    """
    raw_seats = payload.get("seats") if isinstance(payload, dict) else None
    if not isinstance(raw_seats, list) or not raw_seats:
        return [], ["No seats specified"]

    seats = []
    errors = []
    for raw in raw_seats:
        form = SeatForm(raw if isinstance(raw, dict) else {})
        if form.is_valid():
            seats.append(form.to_seat())
            continue
        for message in _form_messages(form):
            if message not in errors:
                errors.append(message)
    return seats, errors


def parse_count(data):
    """Validate a seat count coming from a JSON body or query string."""
    form = SeatCountForm(data)
    if form.is_valid():
        return form.cleaned_data["count"], []
    return None, _form_messages(form)


def parse_credentials(payload):
    form = SessionForm(payload if isinstance(payload, dict) else {})
    if not form.is_valid():
        return None, _form_messages(form)
    return (form.cleaned_data["username"].strip(), form.cleaned_data["password"]), []
