import typing as t

from ninja_extra import ControllerBase

from accounts.models import PortalUser
from common.types import HttpRequest


class UserAwareController(ControllerBase):
    def request(self) -> HttpRequest:
        """Get the current request."""
        return t.cast(HttpRequest, self.context.request)  # type: ignore[union-attr]

    def user(self) -> PortalUser:
        """Get the user for this request."""
        return self.request().user
