"""Participant profile lookups used by registration admission."""

from accounts.models import PortalUser
from common.types import ContactInfo


def get_contact_profile(user: PortalUser) -> ContactInfo:
    """Return the contact details currently stored on a participant's profile.

    Only used to fill gaps in the contact snapshot taken at registration time.
    """
    return ContactInfo(
        name=user.get_display_name() or None,
        email=user.email or None,
        phone=user.phone_number or None,
        college=user.college or None,
    )
