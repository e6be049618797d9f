import typing as t

from django.db.models import QuerySet
from ninja import Query
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_jwt.authentication import JWTAuth

from common.schema import ErrorResponse, ValidationErrorResponse
from common.utils import get_client_ip
from events import schema
from events.models import Registration
from events.service import registration_queries
from events.service.admission import AdmissionCoordinator, RequestMetadata
from events.service.registration_lifecycle import RegistrationLifecycle
from events.service.ticket_issuer import regenerate_ticket_artifact

from .permissions import IsRegistrationOwner
from .user_aware_controller import UserAwareController


@api_controller("/registrations", auth=JWTAuth(), permissions=[IsRegistrationOwner()], tags=["Registrations"])
class RegistrationController(UserAwareController):
    """Registrations of the authenticated participant."""

    def get_one(self, code: str) -> Registration:
        """Fetch a registration by code, checking ownership."""
        return t.cast(
            Registration, self.get_object_or_exception(Registration.objects.with_related(), code=code)
        )

    def request_metadata(self) -> RequestMetadata:
        """Snapshot of where the request came from."""
        request = self.request()
        return RequestMetadata(
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent", ""),
            source=Registration.Source.WEB if request.headers.get("Origin") else Registration.Source.API,
        )

    @route.post(
        "/",
        url_name="create_registration",
        response={
            201: schema.RegistrationSchema,
            400: ValidationErrorResponse | ErrorResponse,
            404: ErrorResponse,
            409: ErrorResponse,
            429: ErrorResponse,
        },
    )
    def create_registration(self, payload: schema.RegistrationCreateSchema) -> tuple[int, Registration]:
        """Register for an event.

        Missing contact details are taken from your profile. On success the ticket is
        issued immediately and emailed to the contact address. If you are already
        registered the response is a 409 carrying your existing registration code.
        """
        registration = AdmissionCoordinator().register(
            self.user(),
            payload.event_id,
            payload.contact.to_contact_info() if payload.contact else None,
            details=payload.to_details(),
            metadata=self.request_metadata(),
        )
        return 201, registration

    @route.get("/", url_name="list_my_registrations", response=PaginatedResponseSchema[schema.RegistrationSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_my_registrations(self, status: Registration.Status | None = Query(None)) -> QuerySet[Registration]:  # type: ignore[type-arg]
        """List your registrations, newest first, optionally filtered by status."""
        return registration_queries.list_participant_registrations(self.user(), status=status)

    @route.get("/{code}", url_name="get_registration", response=schema.RegistrationSchema)
    def get_registration(self, code: str) -> Registration:
        """Get one of your registrations by its code."""
        return self.get_one(code)

    @route.post(
        "/{code}/cancel",
        url_name="cancel_registration",
        response={200: schema.RegistrationSchema, 400: ErrorResponse},
    )
    def cancel_registration(self, code: str, payload: schema.CancelRegistrationSchema) -> Registration:
        """Cancel your registration and free the seat.

        Only possible while the event is further away than the cancellation window.
        """
        return RegistrationLifecycle().cancel(
            self.get_one(code), cancelled_by=Registration.CancelledBy.PARTICIPANT, reason=payload.reason
        )

    @route.post(
        "/{code}/feedback",
        url_name="submit_registration_feedback",
        response={200: schema.RegistrationSchema, 400: ValidationErrorResponse | ErrorResponse},
    )
    def submit_feedback(self, code: str, payload: schema.FeedbackSchema) -> Registration:
        """Rate an event you attended. Feedback can be submitted once."""
        return RegistrationLifecycle().submit_feedback(
            self.get_one(code), rating=payload.rating, comment=payload.comment
        )

    @route.post(
        "/{code}/ticket/regenerate",
        url_name="regenerate_ticket",
        response={200: schema.RegistrationSchema, 500: ErrorResponse},
    )
    def regenerate_ticket(self, code: str) -> Registration:
        """Re-render the QR code of your ticket from the stored ticket data."""
        registration = self.get_one(code)
        regenerate_ticket_artifact(registration)
        return registration
