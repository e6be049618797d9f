"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from events.exceptions import (
    AlreadyRegisteredError,
    CapacityExceededError,
    EventNotFoundError,
    RegistrationError,
    RegistrationIntegrityError,
    RegistrationNotFoundError,
)

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        method=request.method,
        path=request.path,
        headers=obfuscate(dict(request.headers)),
        GET=obfuscate(request.GET.dict()),
    )
    data = {"detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.info("VALIDATION_ERROR", path=request.path)
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": list(exc.messages)}  # type: ignore[union-attr]
    return Response(status=400, data={"errors": error_dict})


def registration_error_status(exc: RegistrationError) -> int:
    """The HTTP status for a registration error."""
    match exc:
        case EventNotFoundError() | RegistrationNotFoundError():
            return 404
        case AlreadyRegisteredError():
            return 409
        case CapacityExceededError():
            return 429
        case RegistrationIntegrityError():
            return 500
        case _:
            return 400


def handle_registration_error(request: HttpRequest, exc: RegistrationError | t.Type[RegistrationError]) -> Response:
    """Handle the typed admission, lifecycle and integrity errors."""
    assert isinstance(exc, RegistrationError)
    status = registration_error_status(exc)
    if status >= 500:
        logger.error("REGISTRATION_INTEGRITY_ERROR", code=exc.code.value, path=request.path, anomaly=True)
        return Response(status=status, data={"code": exc.code.value, "detail": "Internal Server Error."})
    logger.info("registration_request_refused", code=exc.code.value, path=request.path, status=status)
    return Response(status=status, data=exc.to_dict())


SENSITIVE_KEYS = {"password", "token", "x-api-key", "authorization", "authentication", "cookie"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
