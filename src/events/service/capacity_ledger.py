"""Seat accounting for events.

``Event.current_occupancy`` is only ever changed here, and only through conditional
``UPDATE`` statements. The condition and the increment execute as one statement, so
concurrent reservations can never push occupancy above capacity and concurrent
releases can never push it below zero.
"""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from common.types import Clock
from events.exceptions import EventNotFoundError
from events.models import Event, Registration

logger = structlog.get_logger(__name__)


class ReservationOutcome(StrEnum):
    RESERVED = "reserved"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    DEADLINE_PASSED = "deadline_passed"
    EVENT_NOT_OPEN = "event_not_open"


class CapacityLedger:
    def __init__(self, clock: Clock = timezone.now) -> None:
        self.clock = clock

    @transaction.atomic
    def try_reserve(self, event_id: UUID) -> ReservationOutcome:
        """Take one seat if the event accepts registrations right now.

        The increment happens only when the event is published, has a positive
        capacity, its deadline lies strictly in the future and a seat is free.
        When nothing was updated the event is re-read to name the reason.

        Raises:
            EventNotFoundError: If the event does not exist.
        """
        now = self.clock()
        updated = Event.objects.filter(
            pk=event_id,
            status=Event.EventStatus.PUBLISHED,
            capacity__gt=0,
            registration_deadline__gt=now,
            current_occupancy__lt=F("capacity"),
        ).update(current_occupancy=F("current_occupancy") + 1)
        if updated:
            logger.debug("capacity_reserved", event_id=str(event_id))
            return ReservationOutcome.RESERVED

        event = Event.objects.select_for_update().filter(pk=event_id).first()
        if event is None:
            raise EventNotFoundError(event_id)
        outcome = self._classify_refusal(event, now)
        logger.info("capacity_reservation_refused", event_id=str(event_id), outcome=outcome.value)
        return outcome

    @staticmethod
    def _classify_refusal(event: Event, now: datetime) -> ReservationOutcome:
        if event.status != Event.EventStatus.PUBLISHED or event.capacity == 0:
            return ReservationOutcome.EVENT_NOT_OPEN
        if now >= event.registration_deadline:
            return ReservationOutcome.DEADLINE_PASSED
        return ReservationOutcome.CAPACITY_EXCEEDED

    def release(self, event_id: UUID) -> bool:
        """Give one seat back.

        Returns ``False`` without changing anything when occupancy is already zero.
        That only happens if the books are out of balance, so it is logged as an anomaly.
        """
        updated = Event.objects.filter(pk=event_id, current_occupancy__gt=0).update(
            current_occupancy=F("current_occupancy") - 1
        )
        if not updated:
            logger.error("capacity_ledger_underflow", event_id=str(event_id), anomaly=True)
            return False
        logger.debug("capacity_released", event_id=str(event_id))
        return True

    @transaction.atomic
    def reconcile(self, event_id: UUID) -> int:
        """Recount seat-holding registrations and correct the stored occupancy.

        The recount is clamped to the capacity so the database constraint holds.
        Returns the corrected occupancy.
        """
        try:
            event = Event.objects.select_for_update().get(pk=event_id)
        except Event.DoesNotExist as e:
            raise EventNotFoundError(event_id) from e
        held = Registration.objects.active().filter(event_id=event_id).count()
        corrected = min(held, event.capacity)
        if corrected != event.current_occupancy:
            logger.warning(
                "capacity_ledger_drift",
                event_id=str(event_id),
                stored=event.current_occupancy,
                counted=held,
                corrected=corrected,
                anomaly=True,
            )
            Event.objects.filter(pk=event_id).update(current_occupancy=corrected)
        return corrected
