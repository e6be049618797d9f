import re

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")  # E.164-ish: +[country][number], up to 15 digits

# Free-form phone numbers as typed into a registration form: digits, spaces, dashes, parentheses.
CONTACT_PHONE_REGEX = re.compile(r"^\+?[\d\s\-()]+$")


def validate_phone_number(value: str | None) -> None:
    """Validate a profile phone number after normalization."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(_("Phone number must be a string."))

    if not PHONE_REGEX.fullmatch(normalize_phone_number(value)):
        raise ValidationError(_("Number format is incorrect."))
    return None


def validate_contact_phone(value: str) -> None:
    """Validate a phone number given as registration contact detail."""
    if value and not CONTACT_PHONE_REGEX.fullmatch(value):
        raise ValidationError(_("Number format is incorrect."))


def normalize_phone_number(value: str) -> str:
    """Strip spaces, dashes and parentheses from a phone number."""
    return re.sub(r"[ \-()]", "", value)
