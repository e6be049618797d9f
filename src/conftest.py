import secrets
import string
import typing as t
from datetime import datetime, time, timedelta

import faker
import pytest
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from accounts.models import PortalUser
from events.models import Event


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> t.Iterator[None]:
    """Enable Celery eager mode for tests so tasks execute synchronously.

    This ensures that Celery tasks run immediately in the same process,
    allowing tests to verify their side effects without async complications.
    """
    from eventportal.celery import app

    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    app.conf.task_always_eager = True
    app.conf.task_eager_propagates = True
    yield
    app.conf.task_always_eager = False


@pytest.fixture(autouse=True)
def use_locmem_email_backend(settings: t.Any) -> None:
    """Collect outgoing emails in django.core.mail.outbox."""
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


class PortalUserFactory:
    """Factory for creating PortalUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> PortalUser:
        username = kwargs.pop(
            "username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)) + "@user.test"
        )
        email = kwargs.pop("email", username + ("@test.com" if "@" not in username else ""))
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        return PortalUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> PortalUser:
        return self.create_user(**kwargs)


@pytest.fixture
def portal_user_factory() -> PortalUserFactory:
    return PortalUserFactory()


@pytest.fixture
def organizer(portal_user_factory: PortalUserFactory) -> PortalUser:
    """The organizer of the test events."""
    return portal_user_factory(username="organizer@user.test")


@pytest.fixture
def participant(portal_user_factory: PortalUserFactory) -> PortalUser:
    """A participant with a complete profile."""
    return portal_user_factory(
        username="participant@user.test", phone_number="+43 660 1234567", college="TU Wien"
    )


@pytest.fixture
def other_participant(portal_user_factory: PortalUserFactory) -> PortalUser:
    return portal_user_factory(username="other@user.test")


@pytest.fixture
def superuser(portal_user_factory: PortalUserFactory) -> PortalUser:
    """A superuser."""
    return portal_user_factory(is_superuser=True, is_staff=True)


@pytest.fixture
def next_week() -> datetime:
    today = timezone.now()
    same_time_next_week = today + timedelta(days=7)
    noon = time(hour=12, minute=0)
    return timezone.make_aware(
        datetime.combine(same_time_next_week.date(), noon),
        timezone.get_current_timezone(),
    )


class EventFactory:
    """Factory for events open for registration unless told otherwise."""

    def __init__(self, organizer: PortalUser, start: datetime) -> None:
        self.organizer = organizer
        self.start = start

    def __call__(self, **kwargs: t.Any) -> Event:
        start = kwargs.pop("start", self.start)
        kwargs.setdefault("name", "Test Event")
        kwargs.setdefault("registration_deadline", start - timedelta(days=1))
        kwargs.setdefault("end", start + timedelta(hours=3))
        kwargs.setdefault("capacity", 10)
        kwargs.setdefault("status", Event.EventStatus.PUBLISHED)
        kwargs.setdefault("organizer", self.organizer)
        return Event.objects.create(start=start, **kwargs)


@pytest.fixture
def event_factory(organizer: PortalUser, next_week: datetime) -> EventFactory:
    return EventFactory(organizer, next_week)


@pytest.fixture
def event(event_factory: EventFactory) -> Event:
    """A published event a week from now with ten seats."""
    return event_factory()


def auth_client(user: PortalUser) -> Client:
    """A test client authenticated as ``user``."""
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def participant_client(participant: PortalUser) -> Client:
    return auth_client(participant)


@pytest.fixture
def organizer_client(organizer: PortalUser) -> Client:
    return auth_client(organizer)


@pytest.fixture
def other_client(other_participant: PortalUser) -> Client:
    return auth_client(other_participant)
