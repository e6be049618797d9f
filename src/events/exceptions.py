"""Typed errors raised by registration admission and lifecycle operations.

Admission and lifecycle errors are expected outcomes that the API layer maps to
precise responses. Integrity errors are unexpected; they are only raised after the
compensating action has run.
"""

import typing as t
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from django.utils.translation import gettext, gettext_noop

if t.TYPE_CHECKING:
    from events.models import Registration


class RegistrationErrorCode(StrEnum):
    EVENT_NOT_FOUND = "event_not_found"
    EVENT_NOT_OPEN = "event_not_open"
    DEADLINE_PASSED = "deadline_passed"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    ALREADY_REGISTERED = "already_registered"
    REGISTRATION_NOT_FOUND = "registration_not_found"
    TOO_LATE_TO_CANCEL = "too_late_to_cancel"
    ALREADY_CANCELLED = "already_cancelled"
    ALREADY_CHECKED_IN = "already_checked_in"
    NOT_YET_ATTENDED = "not_yet_attended"
    FEEDBACK_ALREADY_SUBMITTED = "feedback_already_submitted"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_TICKET = "invalid_ticket"
    PERSISTENCE_FAILED = "persistence_failed"


class RegistrationError(Exception):
    """Base class of all registration errors."""

    code: t.ClassVar[RegistrationErrorCode]
    default_message: t.ClassVar[str] = gettext_noop("Registration error.")

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or gettext(self.default_message))

    def to_dict(self) -> dict[str, t.Any]:
        """Serializable representation for API responses."""
        return {"code": self.code.value, "detail": str(self)}


class AdmissionError(RegistrationError):
    """An expected refusal to admit a participant to an event."""


class LifecycleError(RegistrationError):
    """An expected refusal to move a registration to another state."""


class RegistrationIntegrityError(RegistrationError):
    """Persistence or ledger failure. The seat hold has been compensated already."""


class EventNotFoundError(AdmissionError):
    code = RegistrationErrorCode.EVENT_NOT_FOUND
    default_message = gettext_noop("Event not found.")

    def __init__(self, event_id: UUID | str) -> None:
        super().__init__()
        self.event_id = event_id


class EventNotOpenError(AdmissionError):
    code = RegistrationErrorCode.EVENT_NOT_OPEN
    default_message = gettext_noop("This event is not open for registration.")


class DeadlinePassedError(AdmissionError):
    code = RegistrationErrorCode.DEADLINE_PASSED
    default_message = gettext_noop("The registration deadline has passed.")


class CapacityExceededError(AdmissionError):
    code = RegistrationErrorCode.CAPACITY_EXCEEDED
    default_message = gettext_noop("This event is full.")


class AlreadyRegisteredError(AdmissionError):
    """Raised with the existing registration so the caller can recover it."""

    code = RegistrationErrorCode.ALREADY_REGISTERED
    default_message = gettext_noop("You are already registered for this event.")

    def __init__(self, registration: "Registration") -> None:
        super().__init__()
        self.registration_code = registration.code
        self.registration_status = registration.status

    def to_dict(self) -> dict[str, t.Any]:
        """Include the existing registration's code and status."""
        return super().to_dict() | {
            "registration_code": self.registration_code,
            "status": str(self.registration_status),
        }


class RegistrationNotFoundError(RegistrationError):
    code = RegistrationErrorCode.REGISTRATION_NOT_FOUND
    default_message = gettext_noop("Registration not found.")


class TooLateToCancelError(LifecycleError):
    code = RegistrationErrorCode.TOO_LATE_TO_CANCEL
    default_message = gettext_noop("It is too late to cancel this registration.")


class AlreadyCancelledError(LifecycleError):
    code = RegistrationErrorCode.ALREADY_CANCELLED
    default_message = gettext_noop("This registration has been cancelled.")


class AlreadyCheckedInError(LifecycleError):
    """Raised on a repeated check-in; carries the original check-in data."""

    code = RegistrationErrorCode.ALREADY_CHECKED_IN
    default_message = gettext_noop("This registration has already been checked in.")

    def __init__(self, checked_in_at: datetime | None, method: str) -> None:
        super().__init__()
        self.checked_in_at = checked_in_at
        self.method = method

    def to_dict(self) -> dict[str, t.Any]:
        """Include the original check-in time and method."""
        return super().to_dict() | {
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
            "method": self.method,
        }


class NotYetAttendedError(LifecycleError):
    code = RegistrationErrorCode.NOT_YET_ATTENDED
    default_message = gettext_noop("Feedback can only be submitted after attending the event.")


class FeedbackAlreadySubmittedError(LifecycleError):
    code = RegistrationErrorCode.FEEDBACK_ALREADY_SUBMITTED
    default_message = gettext_noop("Feedback has already been submitted for this registration.")


class InvalidTransitionError(LifecycleError):
    code = RegistrationErrorCode.INVALID_TRANSITION
    default_message = gettext_noop("This action is not possible in the registration's current state.")


class InvalidTicketError(RegistrationError):
    code = RegistrationErrorCode.INVALID_TICKET
    default_message = gettext_noop("The ticket could not be verified.")


class RegistrationPersistenceError(RegistrationIntegrityError):
    code = RegistrationErrorCode.PERSISTENCE_FAILED
    default_message = gettext_noop("The registration could not be saved.")
