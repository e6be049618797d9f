import typing as t
from uuid import UUID

from django.db.models import QuerySet
from ninja import Query
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_jwt.authentication import JWTAuth

from common.schema import ErrorResponse
from events import schema
from events.exceptions import RegistrationNotFoundError
from events.models import Event, Registration
from events.service import registration_queries
from events.service.capacity_ledger import CapacityLedger
from events.service.registration_lifecycle import RegistrationLifecycle

from .permissions import IsEventOrganizer
from .user_aware_controller import UserAwareController


@api_controller(
    "/event-admin/{event_id}/registrations",
    auth=JWTAuth(),
    permissions=[IsEventOrganizer()],
    tags=["Event Admin"],
)
class RegistrationAdminController(UserAwareController):
    """Registration management for event organizers."""

    def get_event(self, event_id: UUID) -> Event:
        """Fetch the event, checking that the user may administer it."""
        return t.cast(Event, self.get_object_or_exception(Event.objects.all(), pk=event_id))

    def get_registration(self, event_id: UUID, code: str) -> Registration:
        """Fetch a registration of the event by code."""
        event = self.get_event(event_id)
        registration = Registration.objects.with_related().filter(event=event, code=code).first()
        if registration is None:
            raise RegistrationNotFoundError()
        return registration

    @staticmethod
    def event_stats(event: Event) -> dict[str, int]:
        """Registrations per status next to the event's seat accounting."""
        stats = registration_queries.registration_stats(event)
        stats["no_show"] = stats.pop(Registration.Status.NO_SHOW.value)
        return stats | {
            "capacity": event.capacity,
            "current_occupancy": event.current_occupancy,
            "remaining_seats": event.remaining_seats,
        }

    @route.get("", url_name="list_event_registrations", response=PaginatedResponseSchema[schema.RegistrationSchema])
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_registrations(
        self,
        event_id: UUID,
        status: Registration.Status | None = Query(None),  # type: ignore[type-arg]
        search: str | None = Query(None),  # type: ignore[type-arg]
    ) -> QuerySet[Registration]:
        """List the event's registrations.

        Filter by status, and search over contact name, email, college and registration code.
        """
        event = self.get_event(event_id)
        return registration_queries.list_event_registrations(event, status=status, search=search)

    @route.get("/stats", url_name="event_registration_stats", response=schema.RegistrationStatsSchema)
    def stats(self, event_id: UUID) -> dict[str, int]:
        """Count registrations per status next to the event's seat accounting."""
        return self.event_stats(self.get_event(event_id))

    @route.post(
        "/check-in/scan",
        url_name="check_in_registration_by_ticket",
        response={200: schema.RegistrationSchema, 400: ErrorResponse, 404: ErrorResponse},
    )
    def check_in_by_ticket(self, event_id: UUID, payload: schema.TicketScanSchema) -> Registration:
        """Check in an attendee by scanning the QR code of their ticket.

        The scanned token is verified before anything is recorded.
        """
        event = self.get_event(event_id)
        return RegistrationLifecycle().check_in_with_ticket(event, payload.token, checked_in_by=self.user())

    @route.post(
        "/reconcile",
        url_name="reconcile_event_occupancy",
        response={200: schema.RegistrationStatsSchema, 404: ErrorResponse},
    )
    def reconcile(self, event_id: UUID) -> dict[str, int]:
        """Recount the seats held by registrations and correct the event's occupancy."""
        event = self.get_event(event_id)
        CapacityLedger().reconcile(event.pk)
        event.refresh_from_db(fields=["current_occupancy"])
        return self.event_stats(event)

    @route.get(
        "/{code}",
        url_name="get_event_registration",
        response={200: schema.RegistrationSchema, 404: ErrorResponse},
    )
    def get_one(self, event_id: UUID, code: str) -> Registration:
        """Get a registration of the event by its code."""
        return self.get_registration(event_id, code)

    @route.post(
        "/{code}/check-in",
        url_name="check_in_registration",
        response={200: schema.RegistrationSchema, 400: ErrorResponse, 404: ErrorResponse},
    )
    def check_in(self, event_id: UUID, code: str, payload: schema.CheckInSchema) -> Registration:
        """Check in an attendee by registration code.

        A second check-in is refused and reports the original check-in time and method.
        """
        return RegistrationLifecycle().check_in(
            self.get_registration(event_id, code), method=payload.method, checked_in_by=self.user()
        )

    @route.post(
        "/{code}/cancel",
        url_name="organizer_cancel_registration",
        response={200: schema.RegistrationSchema, 400: ErrorResponse, 404: ErrorResponse},
    )
    def cancel(self, event_id: UUID, code: str, payload: schema.CancelRegistrationSchema) -> Registration:
        """Cancel a registration as organizer. The cancellation window does not apply."""
        return RegistrationLifecycle().cancel(
            self.get_registration(event_id, code),
            cancelled_by=Registration.CancelledBy.ORGANIZER,
            reason=payload.reason,
        )
