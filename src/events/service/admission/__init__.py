"""Registration admission package.

Admits participants to events: policy and capacity checks, ticket issuance,
persistence and the hand-off to asynchronous ticket delivery.
"""

from .coordinator import AdmissionCoordinator
from .types import RegistrationDetails, RequestMetadata

__all__ = [
    "AdmissionCoordinator",
    "RegistrationDetails",
    "RequestMetadata",
]
