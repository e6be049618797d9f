from datetime import UTC, datetime, timedelta

import pytest
from django.core.exceptions import ValidationError
from freezegun import freeze_time

from accounts.models import PortalUser
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
from events.service.registration_lifecycle import RegistrationLifecycle
from events.service.ticket_issuer import TicketIssuer

pytestmark = pytest.mark.django_db


@pytest.fixture
def lifecycle() -> RegistrationLifecycle:
    return RegistrationLifecycle()


def occupancy(event: Event) -> int:
    event.refresh_from_db(fields=["current_occupancy"])
    return event.current_occupancy


class TestCancel:
    def test_cancel_outside_window(
        self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event
    ) -> None:
        assert occupancy(event) == 1

        with freeze_time(event.start - timedelta(hours=30)):
            cancelled = lifecycle.cancel(registration, reason="Schedule conflict")

        assert cancelled.status == Registration.Status.CANCELLED
        assert cancelled.cancellation_reason == "Schedule conflict"
        assert cancelled.cancelled_by == Registration.CancelledBy.PARTICIPANT
        assert cancelled.cancelled_at == event.start - timedelta(hours=30)
        assert occupancy(event) == 0

    @pytest.mark.parametrize("hours_before", [10, 23, 24])
    def test_cancel_inside_window_is_refused(
        self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event, hours_before: int
    ) -> None:
        with freeze_time(event.start - timedelta(hours=hours_before)):
            with pytest.raises(TooLateToCancelError):
                lifecycle.cancel(registration)

        registration.refresh_from_db()
        assert registration.status == Registration.Status.CONFIRMED
        assert occupancy(event) == 1

    def test_window_is_configurable(self, registration: Registration, event: Event) -> None:
        lifecycle = RegistrationLifecycle(cancellation_window=timedelta(hours=2))

        with freeze_time(event.start - timedelta(hours=3)):
            lifecycle.cancel(registration)

        assert occupancy(event) == 0

    def test_window_from_settings(self, settings: object, registration: Registration, event: Event) -> None:
        settings.REGISTRATION_CANCELLATION_WINDOW = timedelta(hours=48)  # type: ignore[attr-defined]

        with freeze_time(event.start - timedelta(hours=30)):
            with pytest.raises(TooLateToCancelError):
                RegistrationLifecycle().cancel(registration)

    def test_organizer_is_not_bound_by_window(
        self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event
    ) -> None:
        with freeze_time(event.start - timedelta(hours=1)):
            cancelled = lifecycle.cancel(
                registration, cancelled_by=Registration.CancelledBy.ORGANIZER, reason="Venue change"
            )

        assert cancelled.cancelled_by == Registration.CancelledBy.ORGANIZER
        assert occupancy(event) == 0

    def test_cancel_twice(self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event) -> None:
        lifecycle.cancel(registration)

        with pytest.raises(AlreadyCancelledError):
            lifecycle.cancel(registration)
        assert occupancy(event) == 0

    def test_cancel_after_check_in(self, lifecycle: RegistrationLifecycle, registration: Registration) -> None:
        lifecycle.check_in(registration, method=Registration.CheckInMethod.MANUAL)

        with pytest.raises(AlreadyCheckedInError):
            lifecycle.cancel(registration)

    def test_cancel_no_show(self, lifecycle: RegistrationLifecycle, registration: Registration) -> None:
        Registration.objects.filter(pk=registration.pk).update(status=Registration.Status.NO_SHOW)

        with pytest.raises(InvalidTransitionError):
            lifecycle.cancel(registration)

    def test_cancel_with_stale_instance_sees_current_state(
        self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event
    ) -> None:
        stale = Registration.objects.get(pk=registration.pk)
        lifecycle.cancel(registration)

        with pytest.raises(AlreadyCancelledError):
            lifecycle.cancel(stale)
        assert occupancy(event) == 0

    def test_cancel_releases_through_ledger(self, registration: Registration, event: Event) -> None:
        ledger = CapacityLedger()
        released: list[object] = []
        original = ledger.release

        def spy(event_id: object) -> bool:
            released.append(event_id)
            return original(event_id)  # type: ignore[arg-type]

        ledger.release = spy  # type: ignore[method-assign]
        RegistrationLifecycle(ledger=ledger).cancel(registration)

        assert released == [event.pk]


class TestCheckIn:
    def test_check_in(self, lifecycle: RegistrationLifecycle, registration: Registration, organizer: PortalUser) -> None:
        with freeze_time("2030-01-01 10:00:00+00:00"):
            checked_in = lifecycle.check_in(
                registration, method=Registration.CheckInMethod.QR_SCAN, checked_in_by=organizer
            )

        assert checked_in.status == Registration.Status.ATTENDED
        assert checked_in.check_in_method == Registration.CheckInMethod.QR_SCAN
        assert checked_in.checked_in_by == organizer
        assert checked_in.checked_in_at == datetime(2030, 1, 1, 10, tzinfo=UTC)

    def test_second_check_in_keeps_the_first(
        self, lifecycle: RegistrationLifecycle, registration: Registration
    ) -> None:
        with freeze_time("2030-01-01 10:00:00+00:00"):
            first = lifecycle.check_in(registration, method=Registration.CheckInMethod.QR_SCAN)

        with freeze_time("2030-01-01 11:00:00+00:00"):
            with pytest.raises(AlreadyCheckedInError) as exc_info:
                lifecycle.check_in(registration, method=Registration.CheckInMethod.MANUAL)

        assert exc_info.value.checked_in_at == first.checked_in_at
        assert exc_info.value.method == Registration.CheckInMethod.QR_SCAN
        registration.refresh_from_db()
        assert registration.checked_in_at == first.checked_in_at
        assert registration.check_in_method == Registration.CheckInMethod.QR_SCAN

    def test_check_in_cancelled(self, lifecycle: RegistrationLifecycle, registration: Registration) -> None:
        lifecycle.cancel(registration)

        with pytest.raises(AlreadyCancelledError):
            lifecycle.check_in(registration, method=Registration.CheckInMethod.MANUAL)

    @pytest.mark.parametrize("status", [Registration.Status.PENDING, Registration.Status.NO_SHOW])
    def test_check_in_from_other_states(
        self, lifecycle: RegistrationLifecycle, registration: Registration, status: Registration.Status
    ) -> None:
        Registration.objects.filter(pk=registration.pk).update(status=status)

        with pytest.raises(InvalidTransitionError):
            lifecycle.check_in(registration, method=Registration.CheckInMethod.MANUAL)


class TestCheckInWithTicket:
    def test_scan_valid_ticket(
        self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event
    ) -> None:
        checked_in = lifecycle.check_in_with_ticket(event, registration.ticket_token)

        assert checked_in.status == Registration.Status.ATTENDED
        assert checked_in.check_in_method == Registration.CheckInMethod.QR_SCAN

    def test_scan_ticket_for_other_event(
        self,
        lifecycle: RegistrationLifecycle,
        registration: Registration,
        event_factory: object,
    ) -> None:
        other_event = event_factory(name="Other")  # type: ignore[operator]

        with pytest.raises(InvalidTicketError):
            lifecycle.check_in_with_ticket(other_event, registration.ticket_token)

    def test_scan_forged_ticket(self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event) -> None:
        token = registration.ticket_token[:-1] + ("0" if registration.ticket_token[-1] != "0" else "1")

        with pytest.raises(InvalidTicketError):
            lifecycle.check_in_with_ticket(event, token)

    def test_scan_signed_ticket_for_unknown_code(
        self, lifecycle: RegistrationLifecycle, event: Event, participant: PortalUser
    ) -> None:
        token = TicketIssuer().issue(event.pk, participant.pk).token

        with pytest.raises(RegistrationNotFoundError):
            lifecycle.check_in_with_ticket(event, token)

    def test_scan_twice(self, lifecycle: RegistrationLifecycle, registration: Registration, event: Event) -> None:
        lifecycle.check_in_with_ticket(event, registration.ticket_token)

        with pytest.raises(AlreadyCheckedInError):
            lifecycle.check_in_with_ticket(event, registration.ticket_token)


class TestFeedback:
    @pytest.fixture
    def attended(self, lifecycle: RegistrationLifecycle, registration: Registration) -> Registration:
        return lifecycle.check_in(registration, method=Registration.CheckInMethod.QR_SCAN)

    def test_submit_feedback(self, lifecycle: RegistrationLifecycle, attended: Registration) -> None:
        result = lifecycle.submit_feedback(attended, rating=5, comment="Great talks")

        assert result.status == Registration.Status.ATTENDED
        assert result.feedback_rating == 5
        assert result.feedback_comment == "Great talks"
        assert result.has_feedback

    def test_feedback_only_once(self, lifecycle: RegistrationLifecycle, attended: Registration) -> None:
        lifecycle.submit_feedback(attended, rating=5)

        with pytest.raises(FeedbackAlreadySubmittedError):
            lifecycle.submit_feedback(attended, rating=1, comment="changed my mind")

        attended.refresh_from_db()
        assert attended.feedback_rating == 5

    def test_feedback_before_attending(self, lifecycle: RegistrationLifecycle, registration: Registration) -> None:
        with pytest.raises(NotYetAttendedError):
            lifecycle.submit_feedback(registration, rating=4)

    def test_feedback_after_cancelling(self, lifecycle: RegistrationLifecycle, registration: Registration) -> None:
        lifecycle.cancel(registration)

        with pytest.raises(NotYetAttendedError):
            lifecycle.submit_feedback(registration, rating=4)

    @pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True, None])
    def test_invalid_rating(self, lifecycle: RegistrationLifecycle, attended: Registration, rating: object) -> None:
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.submit_feedback(attended, rating=rating)

        assert "rating" in exc_info.value.message_dict

    def test_comment_too_long(self, lifecycle: RegistrationLifecycle, attended: Registration, settings: object) -> None:
        settings.REGISTRATION_FEEDBACK_COMMENT_MAX_LENGTH = 10  # type: ignore[attr-defined]

        with pytest.raises(ValidationError) as exc_info:
            lifecycle.submit_feedback(attended, rating=3, comment="x" * 11)

        assert "comment" in exc_info.value.message_dict
        attended.refresh_from_db()
        assert not attended.has_feedback
