import typing as t

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from common.models import TimeStampedModel


class EventQuerySet(models.QuerySet["Event"]):
    def published(self) -> t.Self:
        """Events visible to participants."""
        return self.filter(status=Event.EventStatus.PUBLISHED)


class EventManager(models.Manager["Event"]):
    def get_queryset(self) -> EventQuerySet:
        """Get base queryset."""
        return EventQuerySet(self.model, using=self._db)

    def published(self) -> EventQuerySet:
        """Events visible to participants."""
        return self.get_queryset().published()


class Event(TimeStampedModel):
    class EventStatus(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PUBLISHED = "published", _("Published")
        CANCELLED = "cancelled", _("Cancelled")

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="organized_events"
    )
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")
    start = models.DateTimeField(db_index=True)
    end = models.DateTimeField(null=True, blank=True)
    registration_deadline = models.DateTimeField(db_index=True)
    capacity = models.PositiveIntegerField(default=0, help_text="Maximum number of seats. 0 closes registration.")
    # Mutated exclusively through events.service.capacity_ledger.
    current_occupancy = models.PositiveIntegerField(default=0, editable=False)
    status = models.CharField(
        max_length=20, choices=EventStatus.choices, default=EventStatus.DRAFT, db_index=True
    )

    objects = EventManager()

    class Meta:
        ordering = ["start"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_occupancy__lte=F("capacity")),
                name="event_occupancy_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        """Validate the scheduling and capacity fields."""
        errors: dict[str, list[str]] = {}
        if self.start and self.registration_deadline and self.registration_deadline > self.start:
            errors.setdefault("registration_deadline", []).append(
                str(_("Registration must close before the event starts."))
            )
        if self.start and self.end and self.end <= self.start:
            errors.setdefault("end", []).append(str(_("The event must end after it starts.")))
        if self.capacity is not None and self.capacity < self.current_occupancy:
            errors.setdefault("capacity", []).append(
                str(_("Capacity cannot be lower than the number of seats already taken ({taken}).")).format(
                    taken=self.current_occupancy
                )
            )
        if errors:
            raise DjangoValidationError(errors)

    @property
    def remaining_seats(self) -> int:
        """Seats still available."""
        return max(0, self.capacity - self.current_occupancy)
