from rest_framework.response import Response
from rest_framework import status


def api_error(message: str, status_code=status.HTTP_400_BAD_REQUEST):
    """
    Small helper for view-level errors that are not ticketing errors.
    Same envelope as core.exceptions.custom_exception_handler.
    """
    return Response(
        {"success": False, "status_code": status_code, "errors": {"detail": message}},
        status=status_code,
    )


def user_is_system_admin(user) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False

    if getattr(user, "is_superuser", False):
        return True

    return getattr(user, "role", None) == "admin"


def user_can_edit_event(user, event) -> bool:
    """
    Who can see registrations, export them and finalize teams?
    - direct event.organizer
    - global admin (user.role == 'admin') or superuser
    """
    if not user.is_authenticated:
        return False

    return event.organizer_id == user.id or user_is_system_admin(user)


def user_can_scan_event(user, event) -> bool:
    """Event managers plus venue crew."""
    if user_can_edit_event(user, event):
        return True
    return getattr(user, "role", None) == "crew"


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")
