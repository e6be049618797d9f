"""Request context for structured logs."""

import typing as t
import uuid

import structlog
from django.conf import settings
from django.http import HttpRequest, HttpResponse

from common.utils import get_client_ip

REQUEST_ID_HEADER = "X-Request-ID"

# URL kwargs that identify the registration domain objects a request touches.
ROUTE_CONTEXT_KEYS = {"event_id": "event_id", "code": "registration_code"}


class StructlogContextMiddleware:
    """Binds request metadata into structlog contextvars for the request's lifetime.

    Every log line written while handling a request carries the request id, method,
    path, client IP and, once known, the user and the event or registration the
    route addresses. The request id is taken from an incoming ``X-Request-ID``
    header when present and echoed back on the response.
    """

    def __init__(self, get_response: t.Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if not settings.ENABLE_OBSERVABILITY:
            return self.get_response(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.path,
            ip_address=get_client_ip(request),
        )
        try:
            response = self.get_response(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response[REQUEST_ID_HEADER] = request_id
        return response

    def process_view(
        self,
        request: HttpRequest,
        view_func: t.Callable[..., HttpResponse],
        view_args: tuple[t.Any, ...],
        view_kwargs: dict[str, t.Any],
    ) -> None:
        """Bind the user and the addressed event or registration once the route is resolved."""
        if not settings.ENABLE_OBSERVABILITY:
            return None
        context = {
            log_key: str(view_kwargs[kwarg]) for kwarg, log_key in ROUTE_CONTEXT_KEYS.items() if kwarg in view_kwargs
        }
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            context["user_id"] = str(user.pk)
        structlog.contextvars.bind_contextvars(**context)
        return None
