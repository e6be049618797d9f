"""Registration schemas."""

from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, EmailStr, Field

from common.schema import StrippedString
from common.types import ContactInfo
from events.models import Event, Registration
from events.service.admission import RegistrationDetails


class MinimalEventSchema(ModelSchema):
    id: UUID
    start: AwareDatetime
    registration_deadline: AwareDatetime

    class Meta:
        model = Event
        fields = ["id", "name", "location", "start", "registration_deadline", "status"]


class ContactInfoSchema(Schema):
    name: StrippedString | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: StrippedString | None = Field(None, max_length=32)
    college: StrippedString | None = Field(None, max_length=100)

    def to_contact_info(self) -> ContactInfo:
        """Convert to the domain value object."""
        return ContactInfo(**self.model_dump())


class RegistrationCreateSchema(Schema):
    event_id: UUID
    contact: ContactInfoSchema | None = None
    dietary_requirements: StrippedString = Field("", max_length=200)
    accessibility_requirements: StrippedString = Field("", max_length=200)
    other_requirements: StrippedString = Field("", max_length=200)
    referral_source: Registration.ReferralSource | None = None
    email_reminders: bool = True
    sms_reminders: bool = False

    def to_details(self) -> RegistrationDetails:
        """The optional extras of the registration."""
        return RegistrationDetails(**self.model_dump(exclude={"event_id", "contact"}))


class RegistrationSchema(ModelSchema):
    """A registration as seen by its participant or the event organizer."""

    event: MinimalEventSchema
    participant_id: UUID
    status: Registration.Status
    ticket_token: str
    ticket_qr_code: str | None = None
    days_until_event: int
    created_at: AwareDatetime

    class Meta:
        model = Registration
        fields = [
            "code",
            "status",
            "contact_name",
            "contact_email",
            "contact_phone",
            "contact_college",
            "ticket_issued_at",
            "checked_in_at",
            "check_in_method",
            "feedback_rating",
            "feedback_comment",
            "feedback_submitted_at",
            "cancellation_reason",
            "cancelled_at",
            "cancelled_by",
            "dietary_requirements",
            "accessibility_requirements",
            "other_requirements",
            "referral_source",
            "email_reminders",
            "sms_reminders",
            "payment_amount",
            "payment_currency",
            "payment_status",
            "created_at",
        ]

    @staticmethod
    def resolve_ticket_qr_code(obj: Registration) -> str | None:
        """Expose a missing artifact as null."""
        return obj.ticket_qr_code or None

    @staticmethod
    def resolve_days_until_event(obj: Registration) -> int:
        """Whole days left until the event starts."""
        return obj.days_until_event()


class CancelRegistrationSchema(Schema):
    reason: StrippedString = Field("", max_length=500)


class FeedbackSchema(Schema):
    rating: int
    comment: StrippedString = ""


class CheckInSchema(Schema):
    method: Registration.CheckInMethod = Registration.CheckInMethod.MANUAL


class TicketScanSchema(Schema):
    token: StrippedString = Field(..., min_length=1)


class RegistrationStatsSchema(Schema):
    pending: int
    confirmed: int
    cancelled: int
    attended: int
    no_show: int
    total: int
    capacity: int
    current_occupancy: int
    remaining_seats: int
