import typing as t
from datetime import timedelta
from uuid import uuid4

import orjson
import pytest
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client
from freezegun import freeze_time

from accounts.models import PortalUser
from conftest import auth_client
from events.models import Event, Registration
from events.service.admission import AdmissionCoordinator
from events.service.registration_lifecycle import RegistrationLifecycle

pytestmark = pytest.mark.django_db


def post_json(client: Client, url: str, payload: dict[str, t.Any] | None = None) -> t.Any:
    return client.post(url, data=orjson.dumps(payload or {}), content_type="application/json")


@pytest.fixture
def registrations(
    event: Event, participant: PortalUser, other_participant: PortalUser
) -> tuple[Registration, Registration]:
    coordinator = AdmissionCoordinator()
    return coordinator.register(participant, event.pk), coordinator.register(other_participant, event.pk)


# --- GET /event-admin/{event_id}/registrations ---


def test_list_event_registrations(
    organizer_client: Client, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    url = reverse("api:list_event_registrations", kwargs={"event_id": event.pk})

    response = organizer_client.get(url)

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert {r["code"] for r in response.json()["results"]} == {r.code for r in registrations}


def test_list_event_registrations_search_and_filter(
    organizer_client: Client, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    first, second = registrations
    RegistrationLifecycle().cancel(second)
    url = reverse("api:list_event_registrations", kwargs={"event_id": event.pk})

    response = organizer_client.get(url, {"search": "participant@user"})
    assert [r["code"] for r in response.json()["results"]] == [first.code]

    response = organizer_client.get(url, {"search": "tu wien"})
    assert [r["code"] for r in response.json()["results"]] == [first.code]

    response = organizer_client.get(url, {"status": "cancelled"})
    assert [r["code"] for r in response.json()["results"]] == [second.code]


def test_list_event_registrations_forbidden_for_participants(
    participant_client: Client, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    url = reverse("api:list_event_registrations", kwargs={"event_id": event.pk})

    response = participant_client.get(url)

    assert response.status_code == 403


def test_list_event_registrations_allowed_for_superuser(
    superuser: PortalUser, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    url = reverse("api:list_event_registrations", kwargs={"event_id": event.pk})

    response = auth_client(superuser).get(url)

    assert response.status_code == 200
    assert response.json()["count"] == 2


def test_list_registrations_of_unknown_event(organizer_client: Client) -> None:
    url = reverse("api:list_event_registrations", kwargs={"event_id": uuid4()})

    response = organizer_client.get(url)

    assert response.status_code == 404


# --- GET /event-admin/{event_id}/registrations/stats ---


def test_registration_stats(
    organizer_client: Client, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    first, second = registrations
    RegistrationLifecycle().check_in(first, method=Registration.CheckInMethod.MANUAL)
    RegistrationLifecycle().cancel(second)
    url = reverse("api:event_registration_stats", kwargs={"event_id": event.pk})

    response = organizer_client.get(url)

    assert response.status_code == 200
    assert response.json() == {
        "pending": 0,
        "confirmed": 0,
        "cancelled": 1,
        "attended": 1,
        "no_show": 0,
        "total": 2,
        "capacity": 10,
        "current_occupancy": 1,
        "remaining_seats": 9,
    }


# --- GET /event-admin/{event_id}/registrations/{code} ---


def test_get_event_registration(organizer_client: Client, event: Event, registration: Registration) -> None:
    url = reverse("api:get_event_registration", kwargs={"event_id": event.pk, "code": registration.code})

    response = organizer_client.get(url)

    assert response.status_code == 200
    assert response.json()["contact_email"] == registration.contact_email


def test_get_registration_of_other_event(
    organizer_client: Client, registration: Registration, event_factory: t.Callable[..., Event]
) -> None:
    other_event = event_factory(name="Other")
    url = reverse("api:get_event_registration", kwargs={"event_id": other_event.pk, "code": registration.code})

    response = organizer_client.get(url)

    assert response.status_code == 404
    assert response.json()["code"] == "registration_not_found"


# --- POST /event-admin/{event_id}/registrations/{code}/check-in ---


def test_check_in_by_code(
    organizer_client: Client, organizer: PortalUser, event: Event, registration: Registration
) -> None:
    url = reverse("api:check_in_registration", kwargs={"event_id": event.pk, "code": registration.code})

    response = post_json(organizer_client, url, {"method": "manual"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "attended"
    assert data["check_in_method"] == "manual"
    registration.refresh_from_db()
    assert registration.checked_in_by == organizer


def test_check_in_twice_reports_first_check_in(
    organizer_client: Client, event: Event, registration: Registration
) -> None:
    url = reverse("api:check_in_registration", kwargs={"event_id": event.pk, "code": registration.code})
    first = post_json(organizer_client, url, {"method": "qr-scan"}).json()

    response = post_json(organizer_client, url, {"method": "manual"})

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "already_checked_in"
    assert data["method"] == "qr-scan"
    assert data["checked_in_at"] is not None
    assert first["checked_in_at"] is not None


def test_check_in_cancelled_registration(organizer_client: Client, event: Event, registration: Registration) -> None:
    RegistrationLifecycle().cancel(registration)
    url = reverse("api:check_in_registration", kwargs={"event_id": event.pk, "code": registration.code})

    response = post_json(organizer_client, url)

    assert response.status_code == 400
    assert response.json()["code"] == "already_cancelled"


def test_check_in_forbidden_for_participant(
    participant_client: Client, event: Event, registration: Registration
) -> None:
    url = reverse("api:check_in_registration", kwargs={"event_id": event.pk, "code": registration.code})

    response = post_json(participant_client, url)

    assert response.status_code == 403
    registration.refresh_from_db()
    assert registration.status == Registration.Status.CONFIRMED


# --- POST /event-admin/{event_id}/registrations/check-in/scan ---


def test_check_in_by_ticket_scan(organizer_client: Client, event: Event, registration: Registration) -> None:
    url = reverse("api:check_in_registration_by_ticket", kwargs={"event_id": event.pk})

    response = post_json(organizer_client, url, {"token": registration.ticket_token})

    assert response.status_code == 200
    assert response.json()["code"] == registration.code
    assert response.json()["check_in_method"] == "qr-scan"


@pytest.mark.parametrize("signature", ["0" * 64, "éé"])
def test_check_in_by_forged_ticket(
    organizer_client: Client, event: Event, registration: Registration, signature: str
) -> None:
    url = reverse("api:check_in_registration_by_ticket", kwargs={"event_id": event.pk})
    body, _ = registration.ticket_token.split(".")

    response = post_json(organizer_client, url, {"token": f"{body}.{signature}"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_ticket"
    registration.refresh_from_db()
    assert registration.status == Registration.Status.CONFIRMED


# --- POST /event-admin/{event_id}/registrations/{code}/cancel ---


def test_organizer_cancel_inside_window(
    organizer: PortalUser, event: Event, registration: Registration
) -> None:
    url = reverse("api:organizer_cancel_registration", kwargs={"event_id": event.pk, "code": registration.code})

    with freeze_time(event.start - timedelta(hours=2)):
        response = post_json(auth_client(organizer), url, {"reason": "Event moved online"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancelled_by"] == "organizer"
    event.refresh_from_db()
    assert event.current_occupancy == 0


# --- POST /event-admin/{event_id}/registrations/reconcile ---


def test_reconcile_occupancy(
    organizer_client: Client, event: Event, registrations: tuple[Registration, Registration]
) -> None:
    Event.objects.filter(pk=event.pk).update(current_occupancy=5)
    url = reverse("api:reconcile_event_occupancy", kwargs={"event_id": event.pk})

    response = post_json(organizer_client, url)

    assert response.status_code == 200
    assert response.json()["current_occupancy"] == 2
    assert response.json()["remaining_seats"] == 8
    event.refresh_from_db()
    assert event.current_occupancy == 2
