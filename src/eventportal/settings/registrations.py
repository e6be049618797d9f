"""Registration admission and lifecycle policy."""

from datetime import timedelta

from decouple import config

# Participants may only cancel while the event start is further away than this.
REGISTRATION_CANCELLATION_WINDOW = timedelta(
    hours=config("REGISTRATION_CANCELLATION_WINDOW_HOURS", default=24, cast=int)
)

REGISTRATION_FEEDBACK_COMMENT_MAX_LENGTH = config("REGISTRATION_FEEDBACK_COMMENT_MAX_LENGTH", default=500, cast=int)

REGISTRATION_CODE_PREFIX = config("REGISTRATION_CODE_PREFIX", default="REG")

TICKET_QR_BOX_SIZE = config("TICKET_QR_BOX_SIZE", default=10, cast=int)
TICKET_QR_BORDER = config("TICKET_QR_BORDER", default=4, cast=int)
