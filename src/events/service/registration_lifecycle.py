"""The registration state machine.

    pending ──► confirmed ──► attended (+ feedback, once)
                    │
                    └──► cancelled

``cancelled`` and ``no-show`` are terminal. ``no-show`` is set by a post-event sweep
outside this module. Every transition locks the registration row, so two concurrent
transitions on the same registration run one after the other and the second one
sees the first one's result.
"""

import typing as t
from datetime import timedelta

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from accounts.models import PortalUser
from common.types import Clock
from events.exceptions import (
    AlreadyCancelledError,
    AlreadyCheckedInError,
    FeedbackAlreadySubmittedError,
    InvalidTicketError,
    InvalidTransitionError,
    NotYetAttendedError,
    RegistrationNotFoundError,
    TooLateToCancelError,
)
from events.models import Event, Registration
from events.service.capacity_ledger import CapacityLedger
from events.service.ticket_issuer import TicketPayload, verify_ticket_token

logger = structlog.get_logger(__name__)


class RegistrationLifecycle:
    def __init__(
        self,
        ledger: CapacityLedger | None = None,
        clock: Clock = timezone.now,
        cancellation_window: timedelta | None = None,
    ) -> None:
        """Initialize the lifecycle with its collaborators."""
        self.clock = clock
        self.ledger = ledger or CapacityLedger(clock=clock)
        self.cancellation_window = (
            cancellation_window if cancellation_window is not None else settings.REGISTRATION_CANCELLATION_WINDOW
        )

    @staticmethod
    def _lock(registration: Registration) -> Registration:
        return Registration.objects.select_for_update().select_related("event").get(pk=registration.pk)

    @transaction.atomic
    def cancel(
        self,
        registration: Registration,
        *,
        cancelled_by: Registration.CancelledBy = Registration.CancelledBy.PARTICIPANT,
        reason: str = "",
    ) -> Registration:
        """Cancel a registration and give its seat back.

        Participants may only cancel while the time left until the event starts is
        longer than the cancellation window. Organizers are not bound by the window.
        The status change and the seat release commit together.
        """
        locked = self._lock(registration)
        match locked.status:
            case Registration.Status.CANCELLED:
                raise AlreadyCancelledError()
            case Registration.Status.ATTENDED:
                raise AlreadyCheckedInError(locked.checked_in_at, locked.check_in_method)
            case Registration.Status.NO_SHOW:
                raise InvalidTransitionError()

        now = self.clock()
        if cancelled_by == Registration.CancelledBy.PARTICIPANT:
            if locked.event.start - now <= self.cancellation_window:
                raise TooLateToCancelError()

        locked.status = Registration.Status.CANCELLED
        locked.cancelled_at = now
        locked.cancelled_by = cancelled_by
        locked.cancellation_reason = reason
        locked.save(update_fields=["status", "cancelled_at", "cancelled_by", "cancellation_reason", "updated_at"])
        self.ledger.release(locked.event_id)

        logger.info(
            "registration_cancelled",
            registration_code=locked.code,
            event_id=str(locked.event_id),
            cancelled_by=str(cancelled_by),
        )
        return locked

    @transaction.atomic
    def check_in(
        self,
        registration: Registration,
        *,
        method: Registration.CheckInMethod,
        checked_in_by: PortalUser | None = None,
    ) -> Registration:
        """Record attendance.

        A repeated check-in raises AlreadyCheckedInError carrying the original time and
        method, which are left untouched.
        """
        locked = self._lock(registration)
        if locked.is_checked_in or locked.status == Registration.Status.ATTENDED:
            raise AlreadyCheckedInError(locked.checked_in_at, locked.check_in_method)
        if locked.status == Registration.Status.CANCELLED:
            raise AlreadyCancelledError()
        if locked.status != Registration.Status.CONFIRMED:
            raise InvalidTransitionError()

        locked.status = Registration.Status.ATTENDED
        locked.checked_in_at = self.clock()
        locked.check_in_method = method
        locked.checked_in_by = checked_in_by
        locked.save(update_fields=["status", "checked_in_at", "check_in_method", "checked_in_by", "updated_at"])

        logger.info(
            "registration_checked_in",
            registration_code=locked.code,
            event_id=str(locked.event_id),
            method=str(method),
        )
        return locked

    def check_in_with_ticket(
        self, event: Event, token: str, *, checked_in_by: PortalUser | None = None
    ) -> Registration:
        """Check in by scanning a signed ticket token.

        Raises:
            InvalidTicketError: If the token does not verify, belongs to another event or
                does not match the stored registration.
        """
        payload = verify_ticket_token(token)
        if payload.event_id != event.pk:
            raise InvalidTicketError()
        registration = Registration.objects.filter(code=payload.code, event=event).first()
        if registration is None:
            raise RegistrationNotFoundError()
        if TicketPayload.for_registration(registration) != payload:
            logger.warning("ticket_payload_mismatch", registration_code=registration.code, anomaly=True)
            raise InvalidTicketError()
        return self.check_in(registration, method=Registration.CheckInMethod.QR_SCAN, checked_in_by=checked_in_by)

    @transaction.atomic
    def submit_feedback(self, registration: Registration, *, rating: t.Any, comment: str = "") -> Registration:
        """Attach feedback to an attended registration. Feedback can be given once."""
        self._validate_feedback(rating, comment)
        locked = self._lock(registration)
        if locked.status != Registration.Status.ATTENDED:
            raise NotYetAttendedError()
        if locked.has_feedback:
            raise FeedbackAlreadySubmittedError()

        locked.feedback_rating = rating
        locked.feedback_comment = comment
        locked.feedback_submitted_at = self.clock()
        locked.save(update_fields=["feedback_rating", "feedback_comment", "feedback_submitted_at", "updated_at"])

        logger.info("registration_feedback_submitted", registration_code=locked.code, rating=rating)
        return locked

    @staticmethod
    def _validate_feedback(rating: t.Any, comment: str) -> None:
        errors: dict[str, list[str]] = {}
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            errors["rating"] = [str(_("Rating must be a whole number between 1 and 5."))]
        max_length = settings.REGISTRATION_FEEDBACK_COMMENT_MAX_LENGTH
        if comment and len(comment) > max_length:
            errors["comment"] = [
                str(_("Comment cannot exceed {max_length} characters.")).format(max_length=max_length)
            ]
        if errors:
            raise DjangoValidationError(errors)
