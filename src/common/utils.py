from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str | None:
    """Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to REMOTE_ADDR. Returns None if neither holds a valid address.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first
        ip = str(x_forwarded_for.split(",")[0].strip())
    else:
        ip = str(request.META.get("REMOTE_ADDR", ""))
    try:
        validate_ipv46_address(ip)
    except ValidationError:
        return None
    return ip
