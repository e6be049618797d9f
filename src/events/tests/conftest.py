import pytest

from accounts.models import PortalUser
from events.models import Event, Registration
from events.service.admission import AdmissionCoordinator


@pytest.fixture
def coordinator() -> AdmissionCoordinator:
    return AdmissionCoordinator()


@pytest.fixture
def registration(coordinator: AdmissionCoordinator, participant: PortalUser, event: Event) -> Registration:
    """A confirmed registration of ``participant`` for ``event``."""
    return coordinator.register(participant, event.pk)
