"""Celery tasks for registrations.

This module contains asynchronous tasks for:
- Delivering tickets to participants
- Rendering ticket QR codes that could not be rendered during admission
- Reconciling event occupancy with the stored registrations
"""

import structlog
from celery import shared_task

from .models import Event, Registration

logger = structlog.get_logger(__name__)


@shared_task(name="events.deliver_ticket")
def deliver_ticket(registration_id: str) -> bool:
    """Send the ticket of a registration to its contact email.

    Returns whether the notifier accepted the ticket. Failures are logged, not retried.
    """
    from .service.notifier import deliver_ticket as deliver

    registration = Registration.objects.with_related().filter(pk=registration_id).first()
    if registration is None:
        logger.warning("ticket_delivery_registration_missing", registration_id=registration_id)
        return False
    if registration.status == Registration.Status.CANCELLED:
        logger.info("ticket_delivery_skipped_cancelled", registration_code=registration.code)
        return False
    return deliver(registration)


@shared_task(name="events.render_ticket_artifact")
def render_ticket_artifact(registration_id: str, deliver: bool = False) -> bool:
    """Render and store the QR code of a registration from its stored payload.

    When ``deliver`` is set the ticket is delivered afterwards, with or without the
    artifact.
    """
    from .service.ticket_issuer import regenerate_ticket_artifact

    registration = Registration.objects.with_related().filter(pk=registration_id).first()
    if registration is None:
        logger.warning("ticket_render_registration_missing", registration_id=registration_id)
        return False
    rendered = regenerate_ticket_artifact(registration) is not None
    if deliver:
        deliver_ticket.delay(registration_id)
    return rendered


@shared_task(name="events.reconcile_occupancy")
def reconcile_occupancy(event_id: str | None = None) -> dict[str, int]:
    """Recount occupancy for one event or for every published event."""
    from .service.capacity_ledger import CapacityLedger

    ledger = CapacityLedger()
    events = Event.objects.filter(pk=event_id) if event_id else Event.objects.published()
    result = {str(pk): ledger.reconcile(pk) for pk in events.values_list("pk", flat=True)}
    logger.info("occupancy_reconciled", events=len(result))
    return result
