"""Inputs of the admission flow besides participant, event and contact."""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from events.models import Registration


class RegistrationDetails(BaseModel):
    """Optional extras a participant can give when registering."""

    dietary_requirements: str = Field("", max_length=200)
    accessibility_requirements: str = Field("", max_length=200)
    other_requirements: str = Field("", max_length=200)
    referral_source: Registration.ReferralSource | None = None
    email_reminders: bool = True
    sms_reminders: bool = False


@dataclass(frozen=True)
class RequestMetadata:
    """Where a registration request came from."""

    ip_address: str | None = None
    user_agent: str = ""
    source: Registration.Source = Registration.Source.WEB
