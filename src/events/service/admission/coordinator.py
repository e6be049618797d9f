"""Admission of participants to events."""

import typing as t
from functools import partial
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from accounts.models import PortalUser
from accounts.service.profile_service import get_contact_profile
from accounts.validators import validate_contact_phone
from common.types import Clock, ContactInfo
from events import tasks
from events.exceptions import (
    AdmissionError,
    AlreadyRegisteredError,
    CapacityExceededError,
    DeadlinePassedError,
    EventNotFoundError,
    EventNotOpenError,
    RegistrationPersistenceError,
)
from events.models import Event, Registration
from events.service.capacity_ledger import CapacityLedger, ReservationOutcome
from events.service.ticket_issuer import IssuedTicket, TicketIssuer

from .types import RegistrationDetails, RequestMetadata

logger = structlog.get_logger(__name__)

REFUSALS: dict[ReservationOutcome, type[AdmissionError]] = {
    ReservationOutcome.CAPACITY_EXCEEDED: CapacityExceededError,
    ReservationOutcome.DEADLINE_PASSED: DeadlinePassedError,
    ReservationOutcome.EVENT_NOT_OPEN: EventNotOpenError,
}

ProfileLookup = t.Callable[[PortalUser], ContactInfo]


class AdmissionCoordinator:
    """Turns a registration request into a confirmed registration or a typed refusal.

    The seat reservation and the registration row are written inside one
    transaction. If writing the row fails the seat is released explicitly before
    the transaction is left, so no seat is ever held without a registration.
    """

    def __init__(
        self,
        *,
        ledger: CapacityLedger | None = None,
        issuer: TicketIssuer | None = None,
        clock: Clock = timezone.now,
        profile_lookup: ProfileLookup = get_contact_profile,
    ) -> None:
        """Initialize the coordinator with its collaborators."""
        self.clock = clock
        self.ledger = ledger or CapacityLedger(clock=clock)
        self.issuer = issuer or TicketIssuer(clock=clock)
        self.profile_lookup = profile_lookup

    def register(
        self,
        participant: PortalUser,
        event_id: UUID,
        contact: ContactInfo | None = None,
        *,
        details: RegistrationDetails | None = None,
        metadata: RequestMetadata | None = None,
    ) -> Registration:
        """Register a participant for an event.

        Contact details missing from ``contact`` are taken from the participant's
        profile. The result is a snapshot; later profile edits do not change it.

        Raises:
            EventNotFoundError: The event does not exist.
            AlreadyRegisteredError: The participant holds an active registration already.
            EventNotOpenError | DeadlinePassedError | CapacityExceededError: The ledger refused.
            DjangoValidationError: The contact snapshot is incomplete or malformed.
            RegistrationPersistenceError: The registration could not be stored. The seat
                has been released.
        """
        details = details or RegistrationDetails()
        metadata = metadata or RequestMetadata()

        failure: Exception | None = None
        with transaction.atomic():
            event = Event.objects.filter(pk=event_id).first()
            if event is None:
                raise EventNotFoundError(event_id)

            existing = Registration.objects.active().filter(participant=participant, event=event).first()
            if existing is not None:
                logger.info("registration_already_exists", registration_code=existing.code, event_id=str(event.pk))
                raise AlreadyRegisteredError(existing)

            snapshot = (contact or ContactInfo()).merged_with(self.profile_lookup(participant))
            self._validate_contact(snapshot)

            outcome = self.ledger.try_reserve(event.pk)
            if outcome != ReservationOutcome.RESERVED:
                raise REFUSALS[outcome]()

            ticket = self.issuer.issue(event.pk, participant.pk)
            registration = self._build(participant, event, ticket, snapshot, details, metadata)
            try:
                with transaction.atomic():
                    registration.save()
            except (DatabaseError, DjangoValidationError) as e:
                self.ledger.release(event.pk)
                logger.error(
                    "registration_persistence_failed",
                    registration_code=ticket.code,
                    event_id=str(event.pk),
                    participant_id=str(participant.pk),
                    anomaly=True,
                    exc_info=True,
                )
                failure = e
            else:
                transaction.on_commit(partial(schedule_ticket_delivery, registration))

        if failure is not None:
            # A concurrent request may have won the race for the same participant.
            existing = Registration.objects.active().filter(participant=participant, event_id=event_id).first()
            if existing is not None:
                raise AlreadyRegisteredError(existing) from failure
            raise RegistrationPersistenceError() from failure

        logger.info(
            "registration_confirmed",
            registration_code=registration.code,
            event_id=str(event_id),
            participant_id=str(participant.pk),
            artifact_rendered=bool(registration.ticket_qr_code),
        )
        return registration

    @staticmethod
    def _validate_contact(contact: ContactInfo) -> None:
        errors: dict[str, list[str]] = {}
        if not contact.name:
            errors["name"] = [str(_("A contact name is required."))]
        if not contact.email:
            errors["email"] = [str(_("A contact email is required."))]
        else:
            try:
                validate_email(contact.email)
            except DjangoValidationError as e:
                errors["email"] = list(e.messages)
        if contact.phone:
            try:
                validate_contact_phone(contact.phone)
            except DjangoValidationError as e:
                errors["phone"] = list(e.messages)
        if errors:
            raise DjangoValidationError(errors)

    @staticmethod
    def _build(
        participant: PortalUser,
        event: Event,
        ticket: IssuedTicket,
        contact: ContactInfo,
        details: RegistrationDetails,
        metadata: RequestMetadata,
    ) -> Registration:
        return Registration(
            code=ticket.code,
            participant=participant,
            event=event,
            status=Registration.Status.CONFIRMED,
            contact_name=contact.name or "",
            contact_email=contact.email or "",
            contact_phone=contact.phone or "",
            contact_college=contact.college or "",
            ticket_payload=ticket.encoded_payload,
            ticket_signature=ticket.signature,
            ticket_issued_at=ticket.payload.issued_at,
            ticket_qr_code=ticket.artifact or "",
            dietary_requirements=details.dietary_requirements,
            accessibility_requirements=details.accessibility_requirements,
            other_requirements=details.other_requirements,
            referral_source=details.referral_source or "",
            email_reminders=details.email_reminders,
            sms_reminders=details.sms_reminders,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent[:512],
            source=metadata.source,
        )


def schedule_ticket_delivery(registration: Registration) -> None:
    """Queue ticket delivery, rendering the artifact first when it is missing.

    Runs after commit. Failing to queue is logged and otherwise ignored.
    """
    try:
        if registration.ticket_qr_code:
            tasks.deliver_ticket.delay(str(registration.pk))
        else:
            tasks.render_ticket_artifact.delay(str(registration.pk), deliver=True)
    except Exception:
        logger.warning(
            "ticket_delivery_scheduling_failed",
            registration_code=registration.code,
            anomaly=True,
            exc_info=True,
        )
