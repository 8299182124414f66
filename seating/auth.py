from functools import wraps

from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.http import JsonResponse


def api_login_required(view):
    """Answer 401 with a JSON error list instead of redirecting to a login page."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"errors": ["Not authenticated"]}, status=401)
        return view(request, *args, **kwargs)

    return wrapper


def authenticate_identifier(request, identifier, password):
    username = identifier
    if "@" in identifier:
        matched = User.objects.filter(email__iexact=identifier).first()
        if matched:
            username = matched.username
    return authenticate(request, username=username, password=password)


def user_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": (user.get_full_name() or user.username).strip(),
    }
