"""Ticket issuance.

A ticket consists of:
    - a registration code: ``<PREFIX>-`` followed by 26 Crockford base32 characters,
      10 for the issuance time in milliseconds and 16 for 80 random bits. Codes sort
      by issuance time and need no central sequence.
    - a payload: canonical JSON of ``{code, event_id, participant_id, issued_at}``.
      It can always be re-derived from the stored registration.
    - a signature: HMAC-SHA256 over the payload, so scanned tickets can be verified.
    - a rendered artifact: a QR code (base64 PNG) of the signed token. Rendering is
      best effort; a ticket without an artifact is still a valid ticket.

Token format (what the QR code encodes):
    <base64url(payload) without padding>.<hex signature>
"""

import base64
import binascii
import secrets
import typing as t
from dataclasses import dataclass
from datetime import UTC, datetime
from io import BytesIO
from uuid import UUID

import orjson
import qrcode
import structlog
from django.conf import settings
from django.utils import timezone
from pydantic import BaseModel, ConfigDict, ValidationError

from common import signing
from common.types import Clock
from events.exceptions import InvalidTicketError

if t.TYPE_CHECKING:
    from events.models import Registration

logger = structlog.get_logger(__name__)

CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
TIME_LENGTH = 10
RANDOM_LENGTH = 16

_SIGNING_DOMAIN = "eventportal:ticket:v1"

Renderer = t.Callable[[str], str]


class TicketPayload(BaseModel):
    """The canonical data a ticket stands for."""

    model_config = ConfigDict(frozen=True)

    code: str
    event_id: UUID
    participant_id: UUID
    issued_at: datetime

    def encode(self) -> bytes:
        """Deterministic JSON encoding: sorted keys, UTC timestamp with microseconds."""
        return orjson.dumps(
            {
                "code": self.code,
                "event_id": str(self.event_id),
                "participant_id": str(self.participant_id),
                "issued_at": self.issued_at.astimezone(UTC).isoformat(timespec="microseconds"),
            },
            option=orjson.OPT_SORT_KEYS,
        )

    @classmethod
    def for_registration(cls, registration: "Registration") -> "TicketPayload":
        """Re-derive the payload from a stored registration."""
        return cls(
            code=registration.code,
            event_id=registration.event_id,
            participant_id=registration.participant_id,
            issued_at=registration.ticket_issued_at,
        )


@dataclass(frozen=True)
class IssuedTicket:
    code: str
    payload: TicketPayload
    encoded_payload: str
    signature: str
    artifact: str | None

    @property
    def token(self) -> str:
        return build_ticket_token(self.encoded_payload.encode(), self.signature)


def _encode_base32(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, index = divmod(value, 32)
        chars.append(CROCKFORD_ALPHABET[index])
    return "".join(reversed(chars))


def generate_registration_code(issued_at: datetime) -> str:
    """Generate a time-sortable, collision-resistant registration code."""
    millis = int(issued_at.timestamp() * 1000)
    time_part = _encode_base32(millis, TIME_LENGTH)
    random_part = _encode_base32(secrets.randbits(RANDOM_LENGTH * 5), RANDOM_LENGTH)
    return f"{settings.REGISTRATION_CODE_PREFIX}-{time_part}{random_part}"


def sign_payload(encoded_payload: bytes) -> str:
    """Sign an encoded payload."""
    return signing.sign(encoded_payload, domain=_SIGNING_DOMAIN)


def build_ticket_token(encoded_payload: bytes, signature: str) -> str:
    """Combine an encoded payload and its signature into the scannable token."""
    body = base64.urlsafe_b64encode(encoded_payload).rstrip(b"=").decode()
    return f"{body}.{signature}"


def verify_ticket_token(token: str) -> TicketPayload:
    """Verify a scanned token and return its payload.

    Raises:
        InvalidTicketError: If the token is malformed or the signature does not match.
    """
    body, _sep, signature = token.strip().partition(".")
    if not body or not signature:
        raise InvalidTicketError()
    try:
        encoded_payload = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    except (binascii.Error, ValueError) as e:
        raise InvalidTicketError() from e
    if not signing.verify(encoded_payload, signature, domain=_SIGNING_DOMAIN):
        logger.warning("ticket_signature_mismatch")
        raise InvalidTicketError()
    try:
        return TicketPayload.model_validate_json(encoded_payload)
    except ValidationError as e:
        raise InvalidTicketError() from e


def render_qr_code(data: str) -> str:
    """Render ``data`` as a QR code and return it as a base64 encoded PNG."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.TICKET_QR_BOX_SIZE,
        border=settings.TICKET_QR_BORDER,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, "PNG")
    return base64.b64encode(buffered.getvalue()).decode("utf-8")


class TicketIssuer:
    """Issues codes, signed payloads and rendered artifacts for new registrations.

    Pure local computation: no I/O beyond rendering the image in memory.
    """

    def __init__(self, clock: Clock = timezone.now, renderer: Renderer = render_qr_code) -> None:
        self.clock = clock
        self.renderer = renderer

    def issue(self, event_id: UUID, participant_id: UUID) -> IssuedTicket:
        """Issue a new ticket for a participant on an event."""
        issued_at = self.clock()
        code = generate_registration_code(issued_at)
        payload = TicketPayload(code=code, event_id=event_id, participant_id=participant_id, issued_at=issued_at)
        encoded = payload.encode()
        signature = sign_payload(encoded)
        artifact = self.render(build_ticket_token(encoded, signature), code=code)
        return IssuedTicket(
            code=code,
            payload=payload,
            encoded_payload=encoded.decode(),
            signature=signature,
            artifact=artifact,
        )

    def reissue_artifact(self, registration: "Registration") -> str | None:
        """Re-render the artifact of an existing registration from its stored payload."""
        encoded = TicketPayload.for_registration(registration).encode()
        return self.render(build_ticket_token(encoded, sign_payload(encoded)), code=registration.code)

    def render(self, token: str, *, code: str) -> str | None:
        """Render the artifact; failures are logged and yield ``None``."""
        try:
            return self.renderer(token)
        except Exception:
            logger.warning("ticket_artifact_render_failed", registration_code=code, anomaly=True, exc_info=True)
            return None


def regenerate_ticket_artifact(registration: "Registration", issuer: TicketIssuer | None = None) -> str | None:
    """Re-render and store the QR code of a registration.

    The payload is re-derived from the stored registration, so a lost or failed
    artifact can always be rebuilt. Returns the new artifact, or ``None`` when
    rendering failed again.
    """
    artifact = (issuer or TicketIssuer()).reissue_artifact(registration)
    if artifact is None:
        return None
    registration.ticket_qr_code = artifact
    registration.save(update_fields=["ticket_qr_code", "updated_at"])
    logger.info("ticket_artifact_regenerated", registration_code=registration.code)
    return artifact
