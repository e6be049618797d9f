"""Read-side helpers for registrations."""

from django.db.models import Count

from accounts.models import PortalUser
from events.models import Event, Registration
from events.models.registration import RegistrationQuerySet


def list_participant_registrations(
    participant: PortalUser, status: Registration.Status | None = None
) -> RegistrationQuerySet:
    """A participant's registrations, newest first."""
    qs = Registration.objects.with_related().for_participant(participant)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def list_event_registrations(
    event: Event, status: Registration.Status | None = None, search: str | None = None
) -> RegistrationQuerySet:
    """The registrations of an event for its organizer, newest first."""
    qs = Registration.objects.with_related().for_event(event)
    if status:
        qs = qs.filter(status=status)
    if search and (term := search.strip()):
        qs = qs.search(term)
    return qs.order_by("-created_at")


def registration_stats(event: Event) -> dict[str, int]:
    """Number of registrations per status, every status included."""
    counts = dict(
        Registration.objects.for_event(event).order_by().values_list("status").annotate(n=Count("id"))
    )
    stats = {status.value: counts.get(status.value, 0) for status in Registration.Status}
    stats["total"] = sum(stats.values())
    return stats
