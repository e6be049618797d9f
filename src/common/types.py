"""Common types."""

import typing as t
from datetime import datetime

from django.http import HttpRequest as DjangoHttpRequest
from pydantic import BaseModel, ConfigDict

if t.TYPE_CHECKING:
    from accounts.models import PortalUser

Clock = t.Callable[[], datetime]


class HttpRequest(DjangoHttpRequest):
    user: "PortalUser"


class ContactInfo(BaseModel):
    """Contact details of a participant.

    Every field is optional so that partial details supplied with a request can be
    completed from the participant's profile.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    college: str | None = None

    def merged_with(self, fallback: "ContactInfo") -> "ContactInfo":
        """Return a copy where blank fields are filled from ``fallback``."""
        return ContactInfo(
            name=self.name or fallback.name,
            email=self.email or fallback.email,
            phone=self.phone or fallback.phone,
            college=self.college or fallback.college,
        )
