# events/services/tickets.py
"""
Ticket issuance, verification and venue check-in.

A ticket is issued once per confirmed registration and carries an opaque
``QR_XXXXXXXXXXXX`` token. Check-in flips it from valid to used exactly
once; every later scan reports the original check-in time.
"""
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Optional
import logging
import secrets
import string

import qrcode

from events.domain_events import emit_on_commit, ticket_checked_in, ticket_issued
from events.exceptions import (
    StorageConflict,
    TicketAlreadyUsed,
    TicketInvalid,
    TicketNotFound,
    TicketNotIssuable,
)
from events.models import Registration, ScanLog, Ticket
from events.stores import TicketStore, atomic_unit, retry_on_conflict

logger = logging.getLogger('findmyevent.events')

QR_PREFIX = "QR_"
QR_ALPHABET = string.ascii_uppercase + string.digits
QR_TOKEN_LENGTH = 12
MAX_QR_ATTEMPTS = 10

ticket_store = TicketStore()


def generate_qr_code():
    return QR_PREFIX + "".join(secrets.choice(QR_ALPHABET) for _ in range(QR_TOKEN_LENGTH))


@dataclass
class TicketVerification:
    ticket: Ticket
    event: object
    user: object


@dataclass
class CheckInResult:
    CHECKED_IN = ScanLog.OUTCOME_CHECKED_IN
    ALREADY_USED = ScanLog.OUTCOME_ALREADY_USED
    INVALID = ScanLog.OUTCOME_INVALID

    status: str
    ticket: Optional[Ticket] = None
    used_at: Optional[datetime] = None

    @property
    def valid(self):
        return self.status == self.CHECKED_IN


class TicketService:

    @staticmethod
    def issue(registration):
        """
        Return the registration's ticket, creating it on first call. Only
        confirmed registrations get one.
        """
        if registration.status != Registration.STATUS_CONFIRMED:
            raise TicketNotIssuable(registration_id=registration.pk, status=registration.status)

        existing = ticket_store.get_for_registration(registration)
        if existing is not None:
            return existing

        for _ in range(MAX_QR_ATTEMPTS):
            ticket, created = ticket_store.insert(registration, generate_qr_code())
            if ticket is None:
                logger.warning("QR code collision for registration %s, drawing a new one", registration.pk)
                continue
            if created:
                logger.info("Ticket %s issued for registration %s", ticket.qr_code, registration.pk)
                emit_on_commit(ticket_issued, sender=Ticket, ticket=ticket)
            return ticket

        raise StorageConflict("Could not allocate a unique ticket code.")

    @staticmethod
    def verify(qr_code):
        ticket = ticket_store.get_by_qr((qr_code or "").strip())
        if ticket is None:
            raise TicketNotFound(qr_code=qr_code)
        return TicketVerification(ticket=ticket, event=ticket.event, user=ticket.user)

    @staticmethod
    @retry_on_conflict
    def check_in(qr_code, scanned_by=None):
        qr_code = (qr_code or "").strip()
        try:
            with atomic_unit():
                ticket = ticket_store.mark_used(qr_code, scanned_by=scanned_by)
                emit_on_commit(ticket_checked_in, sender=Ticket, ticket=ticket, scanned_by=scanned_by)
        except TicketAlreadyUsed as exc:
            logger.warning("Ticket %s already used at %s", qr_code, exc.used_at)
            return CheckInResult(
                status=CheckInResult.ALREADY_USED,
                ticket=ticket_store.get_by_qr(qr_code),
                used_at=exc.used_at,
            )
        except TicketInvalid:
            logger.warning("Rejected scan of invalid ticket code %s", qr_code)
            return CheckInResult(status=CheckInResult.INVALID, ticket=ticket_store.get_by_qr(qr_code))

        logger.info("Ticket %s checked in for event %s", ticket.qr_code, ticket.event_id)
        return CheckInResult(status=CheckInResult.CHECKED_IN, ticket=ticket, used_at=ticket.used_at)

    @staticmethod
    def cancel_for_registration(registration):
        """Cancel the registration's ticket if it is still valid; used tickets stay used."""
        cancelled = ticket_store.mark_cancelled(registration.pk)
        if cancelled:
            logger.info("Ticket for registration %s cancelled", registration.pk)
        return cancelled

    @staticmethod
    def render_qr_png(ticket):
        qr_img = qrcode.make(ticket.qr_code)
        buffer = BytesIO()
        qr_img.save(buffer, format="PNG")
        return buffer.getvalue()
