"""Common middleware for the event portal."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
