"""Ticket delivery to participants."""

import base64
import typing as t

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.translation import gettext as _

from common.types import ContactInfo
from events.models import Registration

logger = structlog.get_logger(__name__)


class TicketNotifier(t.Protocol):
    def send_ticket(self, contact: ContactInfo, registration: Registration) -> None:
        """Send the ticket of ``registration`` to ``contact``."""
        ...


class EmailTicketNotifier:
    """Emails the ticket, with the QR code attached when it has been rendered."""

    text_template = "events/emails/ticket_delivery.txt"
    html_template = "events/emails/ticket_delivery.html"

    def send_ticket(self, contact: ContactInfo, registration: Registration) -> None:
        """Send the ticket email.

        Raises whatever the mail backend raises; callers decide what a failure means.
        """
        if not contact.email:
            logger.warning("ticket_delivery_without_email", registration_code=registration.code)
            return
        event = registration.event
        context = {
            "contact": contact,
            "registration": registration,
            "event": event,
            "site_name": settings.SITE_NAME,
            "frontend_url": settings.FRONTEND_BASE_URL,
        }
        email_msg = EmailMultiAlternatives(
            subject=_("Your ticket for {event_name}").format(event_name=event.name),
            body=render_to_string(self.text_template, context),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[contact.email],
        )
        email_msg.attach_alternative(render_to_string(self.html_template, context), "text/html")
        if registration.ticket_qr_code:
            email_msg.attach(
                f"ticket-{registration.code}.png", base64.b64decode(registration.ticket_qr_code), "image/png"
            )
        email_msg.send(fail_silently=False)
        logger.info("ticket_delivered", registration_code=registration.code, channel="email")


def get_notifier() -> TicketNotifier:
    """The notifier used for ticket delivery."""
    return EmailTicketNotifier()


def deliver_ticket(registration: Registration, notifier: TicketNotifier | None = None) -> bool:
    """Deliver a ticket, best effort.

    Delivery is advisory: failures are logged and reported as ``False``, never raised.
    """
    notifier = notifier or get_notifier()
    try:
        notifier.send_ticket(registration.contact, registration)
    except Exception:
        logger.warning(
            "ticket_delivery_failed", registration_code=registration.code, anomaly=True, exc_info=True
        )
        return False
    return True
