from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

from events.exceptions import TicketingError

logger = logging.getLogger("findmyevent.api")


def custom_exception_handler(exc, context):
    """
    Wrap DRF, Django and ticketing exceptions into a consistent response format.

    Success responses (2xx) are not touched.
    Only errors come through here.
    """
    if isinstance(exc, TicketingError):
        logger.info("Ticketing error %s: %s", exc.code, exc.message)
        return Response(
            {
                "success": False,
                "status_code": exc.status_code,
                "errors": exc.as_dict(),
            },
            status=exc.status_code,
        )

    response = drf_exception_handler(exc, context)

    # If DRF handled it, wrap it (keeps Retry-After / WWW-Authenticate headers)
    if response is not None:
        response.data = {
            "success": False,
            "status_code": response.status_code,
            "errors": response.data,
        }
        return response

    # Unhandled exceptions -> 500
    logger.exception("Unhandled API exception", exc_info=exc)

    return Response(
        {
            "success": False,
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "errors": {"detail": "Internal server error."},
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
