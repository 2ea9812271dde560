import logging
import traceback

from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Insufficient stock').
    """
    def __init__(self, message, code="business_error", status_code=status.HTTP_400_BAD_REQUEST):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


def _detail_message(data):
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    if isinstance(data, list) and data:
        return str(data[0])
    return str(data)


def server_error_payload(exc):
    payload = {"success": False, "message": str(exc) or "Internal Server Error"}
    if settings.DEBUG:
        payload["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return payload


def custom_exception_handler(exc, context):
    # Business rule violations carry their own status code
    if isinstance(exc, BusinessLogicException):
        return Response(
            {"success": False, "message": exc.message, "code": exc.code},
            status=exc.status_code,
        )

    response = exception_handler(exc, context)

    # Unhandled server error
    if response is None:
        view = context.get("view")
        logger.error(
            f"Unhandled Exception in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            exc_info=True,
        )
        return Response(
            server_error_payload(exc),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ValidationError):
        response.data = {
            "success": False,
            "message": "Validation failed",
            "errors": response.data,
        }
    else:
        response.data = {
            "success": False,
            "message": _detail_message(response.data),
        }
    return response
