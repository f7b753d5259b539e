# events/tasks.py
from datetime import timedelta
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .emails import send_cancellation_email, send_ticket_email
from .exceptions import InvalidRegistrationState, RegistrationNotFound
from .models import Event, Registration, Team, Ticket
from .services import RegistrationService, TeamService
from .stores import RegistrationStore

logger = logging.getLogger('findmyevent.events')


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_ticket_email_task(self, ticket_id: int):
    """
    Async wrapper for mailing a ticket.
    """
    try:
        ticket = Ticket.objects.select_related("event", "user").get(id=ticket_id)
    except Ticket.DoesNotExist:
        return "ticket_not_found"

    if ticket.status != Ticket.STATUS_VALID:
        return "ticket_not_valid"

    try:
        sent = send_ticket_email(ticket, request=None)
    except OSError as exc:
        logger.warning("Ticket email for %s failed: %s", ticket.qr_code, exc)
        raise self.retry(exc=exc)

    return "sent" if sent else "no_email"


@shared_task
def send_cancellation_email_task(registration_id: int):
    try:
        reg = Registration.objects.select_related("event", "user").get(id=registration_id)
    except Registration.DoesNotExist:
        return "registration_not_found"

    send_cancellation_email(reg)
    return "sent"


@shared_task
def release_stale_pending_registrations():
    """
    Cancel registrations still waiting for payment after
    PENDING_PAYMENT_TIMEOUT_MINUTES, handing their seats back.
    """
    cutoff = timezone.now() - timedelta(minutes=settings.PENDING_PAYMENT_TIMEOUT_MINUTES)
    released = []

    for registration_id in RegistrationStore().stale_pending_ids(cutoff):
        try:
            RegistrationService.cancel(registration_id, reason="payment_timeout")
        except (InvalidRegistrationState, RegistrationNotFound):
            # Resolved by a callback between the scan and the cancel
            continue
        released.append(registration_id)

    if released:
        logger.info("Released %s stale pending registrations: %s", len(released), released)
    return released


@shared_task
def finalize_event_teams(event_id: int):
    try:
        event = Event.objects.get(pk=event_id)
    except Event.DoesNotExist:
        return None
    return TeamService.finalize_teams(event)


@shared_task
def finalize_closed_team_events():
    """
    Finalize teams for every team event whose registration deadline has
    passed and which still has forming teams.
    """
    event_ids = list(
        Event.objects.filter(
            is_team_event=True,
            registration_deadline__lte=timezone.now(),
            teams__status=Team.STATUS_FORMING,
        ).distinct().values_list("id", flat=True)
    )

    reports = {}
    for event_id in event_ids:
        reports[event_id] = finalize_event_teams(event_id)
    return reports
