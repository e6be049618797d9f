import math
import typing as t
from datetime import datetime

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from accounts.validators import validate_contact_phone
from common.models import TimeStampedModel
from common.types import ContactInfo

if t.TYPE_CHECKING:
    from accounts.models import PortalUser

    from .event import Event


class RegistrationQuerySet(models.QuerySet["Registration"]):
    def active(self) -> t.Self:
        """Registrations that hold a seat, i.e. everything but cancelled ones."""
        return self.exclude(status=Registration.Status.CANCELLED)

    def for_participant(self, user: "PortalUser") -> t.Self:
        """Registrations owned by a participant."""
        return self.filter(participant=user)

    def for_event(self, event: "Event") -> t.Self:
        """Registrations for an event."""
        return self.filter(event=event)

    def with_related(self) -> t.Self:
        """Select event and participant for serialization."""
        return self.select_related("event", "participant")

    def search(self, term: str) -> t.Self:
        """Search by contact name, email, college or registration code."""
        return self.filter(
            Q(contact_name__icontains=term)
            | Q(contact_email__icontains=term)
            | Q(contact_college__icontains=term)
            | Q(code__icontains=term)
        )


class RegistrationManager(models.Manager["Registration"]):
    def get_queryset(self) -> RegistrationQuerySet:
        """Get base queryset."""
        return RegistrationQuerySet(self.model, using=self._db)

    def active(self) -> RegistrationQuerySet:
        """Registrations that hold a seat."""
        return self.get_queryset().active()

    def with_related(self) -> RegistrationQuerySet:
        """Select event and participant for serialization."""
        return self.get_queryset().with_related()


class Registration(TimeStampedModel):
    """A participant's claim on one seat of an event.

    ``status`` is the single source of truth for where the registration is in its
    lifecycle. Check-in, feedback and cancellation data are only ever set by the
    transition that guards them (see events.service.registration_lifecycle).
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        ATTENDED = "attended", _("Attended")
        NO_SHOW = "no-show", _("No-show")

    class CheckInMethod(models.TextChoices):
        QR_SCAN = "qr-scan", _("QR scan")
        MANUAL = "manual", _("Manual")
        SELF_CHECKIN = "self-checkin", _("Self check-in")

    class CancelledBy(models.TextChoices):
        PARTICIPANT = "participant", _("Participant")
        ORGANIZER = "organizer", _("Organizer")

    class ReferralSource(models.TextChoices):
        WEBSITE = "website", _("Website")
        SOCIAL_MEDIA = "social-media", _("Social media")
        EMAIL = "email", _("Email")
        FRIEND = "friend", _("Friend")
        SEARCH_ENGINE = "search-engine", _("Search engine")
        OTHER = "other", _("Other")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")
        REFUNDED = "refunded", _("Refunded")

    class Source(models.TextChoices):
        WEB = "web", _("Web")
        API = "api", _("API")

    code = models.CharField(max_length=40, unique=True, editable=False)
    participant = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations"
    )
    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="registrations")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED, db_index=True)

    # Contact snapshot taken at registration time, decoupled from the live profile.
    contact_name = models.CharField(max_length=255)
    contact_email = models.EmailField()
    contact_phone = models.CharField(max_length=32, blank=True, default="", validators=[validate_contact_phone])
    contact_college = models.CharField(max_length=100, blank=True, default="")

    # Ticket. The payload is the source of truth, the QR code is derived from it.
    ticket_payload = models.TextField(editable=False)
    ticket_signature = models.CharField(max_length=64, editable=False)
    ticket_issued_at = models.DateTimeField(editable=False)
    ticket_qr_code = models.TextField(blank=True, default="", help_text="Base64 encoded PNG")

    checked_in_at = models.DateTimeField(null=True, blank=True)
    check_in_method = models.CharField(max_length=20, choices=CheckInMethod.choices, blank=True, default="")
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    feedback_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    feedback_comment = models.TextField(blank=True, default="")
    feedback_submitted_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=20, choices=CancelledBy.choices, blank=True, default="")

    dietary_requirements = models.CharField(max_length=200, blank=True, default="")
    accessibility_requirements = models.CharField(max_length=200, blank=True, default="")
    other_requirements = models.CharField(max_length=200, blank=True, default="")
    referral_source = models.CharField(max_length=20, choices=ReferralSource.choices, blank=True, default="")
    email_reminders = models.BooleanField(default=True)
    sms_reminders = models.BooleanField(default=False)

    # Reserved for payments; no settlement logic reads these.
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_currency = models.CharField(max_length=3, default="USD")
    payment_method = models.CharField(max_length=50, blank=True, default="")
    payment_transaction_id = models.CharField(max_length=255, blank=True, default="")
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED
    )

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=512, blank=True, default="")
    source = models.CharField(max_length=10, choices=Source.choices, default=Source.WEB)

    objects = RegistrationManager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["participant", "event"],
                condition=~Q(status="cancelled"),
                name="unique_active_registration_per_participant",
            ),
            models.CheckConstraint(
                condition=Q(feedback_rating__isnull=True) | Q(feedback_rating__gte=1, feedback_rating__lte=5),
                name="registration_feedback_rating_range",
            ),
        ]
        indexes = [
            models.Index(fields=["event", "status"], name="registration_event_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.status})"

    @property
    def contact(self) -> ContactInfo:
        """The contact snapshot as a value object."""
        return ContactInfo(
            name=self.contact_name,
            email=self.contact_email,
            phone=self.contact_phone or None,
            college=self.contact_college or None,
        )

    @property
    def is_checked_in(self) -> bool:
        """Whether check-in has been recorded."""
        return self.checked_in_at is not None

    @property
    def has_feedback(self) -> bool:
        """Whether feedback has been submitted."""
        return self.feedback_submitted_at is not None

    @property
    def ticket_token(self) -> str:
        """The signed token encoded in the ticket's QR code."""
        from events.service.ticket_issuer import build_ticket_token

        return build_ticket_token(self.ticket_payload.encode(), self.ticket_signature)

    def days_until_event(self, now: datetime | None = None) -> int:
        """Whole days (rounded up) until the event starts; negative once it has started."""
        now = now or timezone.now()
        return math.ceil((self.event.start - now).total_seconds() / 86400)
