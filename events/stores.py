# events/stores.py
"""
Persistence for registrations and tickets.

Every mutation that can race (capacity admission, payment resolution,
cancellation, check-in) is one conditional UPDATE whose affected row count
decides the outcome. Nothing here reads a value and writes it back.
"""
from contextlib import contextmanager
import functools
import logging

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .exceptions import (
    AlreadyRegistered,
    StorageConflict,
    TicketAlreadyUsed,
    TicketInvalid,
)
from .models import Event, Registration, Ticket
from .state_machine import REGISTRATION_TRANSITIONS, TICKET_TRANSITIONS, source_statuses

logger = logging.getLogger('findmyevent.events')

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}
LOCKED_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_transient_conflict(exc):
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(text in message for text in LOCKED_MESSAGES)


@contextmanager
def storage_errors():
    """Translate lock / serialization failures into StorageConflict."""
    try:
        yield
    except OperationalError as exc:
        if not is_transient_conflict(exc):
            raise
        logger.warning("Storage conflict: %s", exc)
        raise StorageConflict() from exc


@contextmanager
def atomic_unit():
    """
    One all-or-nothing unit of work. The translation sits outside the
    transaction so the rollback has already happened when StorageConflict
    reaches the retry loop.
    """
    with storage_errors():
        with transaction.atomic():
            yield


def retry_on_conflict(func):
    """
    Re-run ``func`` on StorageConflict with jittered exponential backoff,
    at most STORAGE_CONFLICT_MAX_ATTEMPTS times. Domain errors propagate
    on the first attempt.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        retrying = Retrying(
            retry=retry_if_exception_type(StorageConflict),
            stop=stop_after_attempt(settings.STORAGE_CONFLICT_MAX_ATTEMPTS),
            wait=wait_random_exponential(multiplier=0.05, max=1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(func, *args, **kwargs)

    return wrapper


class RegistrationStore:
    """Registration rows and the event capacity counter."""

    def get_event(self, event_id):
        return Event.objects.filter(pk=event_id).first()

    def get(self, registration_id):
        return (
            Registration.objects
            .select_related("event", "user", "team")
            .filter(pk=registration_id)
            .first()
        )

    def get_active(self, user, event):
        return (
            Registration.objects
            .filter(user=user, event=event, status__in=Registration.ACTIVE_STATUSES)
            .first()
        )

    def reserve_seat(self, event_id):
        """Take one capacity slot. False when the event is full."""
        updated = (
            Event.objects
            .filter(pk=event_id, registered_count__lt=F("capacity"))
            .update(registered_count=F("registered_count") + 1)
        )
        return updated == 1

    def release_seat(self, event_id):
        updated = (
            Event.objects
            .filter(pk=event_id, registered_count__gt=0)
            .update(registered_count=F("registered_count") - 1)
        )
        if not updated:
            logger.error("Capacity release on event %s found no held slot", event_id)
        return updated == 1

    def create(self, user, event, status, payment_status, team=None, form_responses=None):
        try:
            with transaction.atomic():
                return Registration.objects.create(
                    user=user,
                    event=event,
                    team=team,
                    status=status,
                    payment_status=payment_status,
                    form_responses=form_responses or {},
                )
        except IntegrityError as exc:
            # Partial unique index on (user, event) for non-cancelled rows
            raise AlreadyRegistered() from exc

    def resolve_payment(self, registration_id, succeeded, transaction_ref=None):
        """
        Move pending/pending to confirmed/completed or cancelled/failed.
        Returns False when the payment was no longer pending.
        """
        now = timezone.now()
        changes = {
            "payment_reference": transaction_ref,
            "updated_at": now,
        }
        if succeeded:
            changes.update(
                status=Registration.STATUS_CONFIRMED,
                payment_status=Registration.PAYMENT_COMPLETED,
            )
        else:
            changes.update(
                status=Registration.STATUS_CANCELLED,
                payment_status=Registration.PAYMENT_FAILED,
                cancelled_at=now,
                cancel_reason="payment_failed",
            )

        updated = Registration.objects.filter(
            pk=registration_id,
            status=Registration.STATUS_PENDING,
            payment_status=Registration.PAYMENT_PENDING,
        ).update(**changes)
        return updated == 1

    def mark_cancelled(self, registration_id, reason=""):
        """Returns False when the registration was not active any more."""
        now = timezone.now()
        updated = Registration.objects.filter(
            pk=registration_id,
            status__in=source_statuses(REGISTRATION_TRANSITIONS, Registration.STATUS_CANCELLED),
        ).update(
            status=Registration.STATUS_CANCELLED,
            cancelled_at=now,
            cancel_reason=reason or "",
            updated_at=now,
        )
        return updated == 1

    def stale_pending_ids(self, older_than):
        return list(
            Registration.objects.filter(
                status=Registration.STATUS_PENDING,
                payment_status=Registration.PAYMENT_PENDING,
                registered_at__lt=older_than,
            ).values_list("id", flat=True)
        )


class TicketStore:
    """Ticket rows. The status column only moves valid -> used / cancelled."""

    def get_for_registration(self, registration):
        return Ticket.objects.filter(registration=registration).first()

    def get_by_qr(self, qr_code):
        return (
            Ticket.objects
            .select_related("event", "user", "registration")
            .filter(qr_code=qr_code)
            .first()
        )

    def insert(self, registration, qr_code):
        """
        Returns (ticket, created). When the registration already has a
        ticket that ticket is returned; a qr_code collision yields
        (None, False) so the caller can draw a new code.
        """
        try:
            with transaction.atomic():
                ticket = Ticket.objects.create(
                    registration=registration,
                    event_id=registration.event_id,
                    user_id=registration.user_id,
                    qr_code=qr_code,
                )
                return ticket, True
        except IntegrityError:
            existing = self.get_for_registration(registration)
            if existing is not None:
                return existing, False
            return None, False

    def mark_used(self, qr_code, scanned_by=None):
        """
        valid -> used, once. Raises TicketAlreadyUsed (carrying the first
        ``used_at``) or TicketInvalid when the row did not qualify.
        """
        updated = Ticket.objects.filter(
            qr_code=qr_code,
            status__in=source_statuses(TICKET_TRANSITIONS, Ticket.STATUS_USED),
        ).update(
            status=Ticket.STATUS_USED,
            used_at=timezone.now(),
            used_by=scanned_by,
        )

        ticket = self.get_by_qr(qr_code)
        if updated == 1:
            return ticket

        if ticket is None or ticket.status == Ticket.STATUS_CANCELLED:
            raise TicketInvalid()
        if ticket.status == Ticket.STATUS_USED:
            raise TicketAlreadyUsed(used_at=ticket.used_at)
        # Row still valid after a zero-row update: lost a lock race, retry
        raise StorageConflict()

    def mark_cancelled(self, registration_id):
        return Ticket.objects.filter(
            registration_id=registration_id,
            status__in=source_statuses(TICKET_TRANSITIONS, Ticket.STATUS_CANCELLED),
        ).update(
            status=Ticket.STATUS_CANCELLED,
            cancelled_at=timezone.now(),
        )
