# events/signals.py
"""
Subscribers for the ticketing domain events: write the activity ledger and
queue attendee mail. A failing subscriber is logged and never undoes the
committed business change.
"""
from django.dispatch import receiver
import logging

from core.services import ActivityService
from . import activity_verbs as verbs
from . import domain_events
from .tasks import send_cancellation_email_task, send_ticket_email_task

logger = logging.getLogger('findmyevent.events')


def _registration_metadata(registration):
    return {
        "event_title": registration.event.title,
        "status": registration.status,
        "payment_status": registration.payment_status,
        "team_id": registration.team_id,
    }


@receiver(domain_events.registration_created)
def log_registration_created(sender, registration, **kwargs):
    try:
        ActivityService.log_activity(
            actor=registration.user,
            verb=verbs.REGISTRATION_CREATED,
            target=registration,
            event=registration.event,
            metadata=_registration_metadata(registration),
        )
    except Exception as e:
        logger.warning(f"Failed to log registration activity: {e}")


@receiver(domain_events.registration_confirmed)
def log_registration_confirmed(sender, registration, **kwargs):
    try:
        ActivityService.log_activity(
            actor=registration.user,
            verb=verbs.REGISTRATION_CONFIRMED,
            target=registration,
            event=registration.event,
            metadata=_registration_metadata(registration),
        )
    except Exception as e:
        logger.warning(f"Failed to log confirmation activity: {e}")


@receiver(domain_events.registration_cancelled)
def on_registration_cancelled(sender, registration, **kwargs):
    try:
        metadata = _registration_metadata(registration)
        metadata["reason"] = registration.cancel_reason
        ActivityService.log_activity(
            actor=registration.user,
            verb=verbs.REGISTRATION_CANCELED,
            target=registration,
            event=registration.event,
            metadata=metadata,
        )
    except Exception as e:
        logger.warning(f"Failed to log cancellation activity: {e}")

    try:
        send_cancellation_email_task.delay(registration.id)
    except Exception as e:
        logger.warning(f"Failed to queue cancellation email for registration {registration.id}: {e}")


@receiver(domain_events.payment_failed)
def log_payment_failed(sender, registration, **kwargs):
    try:
        ActivityService.log_activity(
            actor=None,
            verb=verbs.PAYMENT_FAILED,
            target=registration,
            event=registration.event,
            metadata={"payment_reference": registration.payment_reference},
        )
    except Exception as e:
        logger.warning(f"Failed to log payment failure: {e}")


@receiver(domain_events.ticket_issued)
def on_ticket_issued(sender, ticket, **kwargs):
    try:
        ActivityService.log_activity(
            actor=ticket.user,
            verb=verbs.TICKET_ISSUED,
            target=ticket,
            event=ticket.event,
            metadata={"qr_code": ticket.qr_code, "event_title": ticket.event.title},
        )
    except Exception as e:
        logger.warning(f"Failed to log ticket activity: {e}")

    try:
        send_ticket_email_task.delay(ticket.id)
    except Exception as e:
        logger.warning(f"Failed to queue ticket email for ticket {ticket.id}: {e}")


@receiver(domain_events.ticket_checked_in)
def log_ticket_checked_in(sender, ticket, scanned_by=None, **kwargs):
    try:
        ActivityService.log_activity(
            actor=scanned_by,
            verb=verbs.TICKET_CHECKED_IN,
            target=ticket,
            event=ticket.event,
            metadata={
                "qr_code": ticket.qr_code,
                "attendee_id": ticket.user_id,
                "used_at": ticket.used_at.isoformat() if ticket.used_at else None,
            },
        )
    except Exception as e:
        logger.warning(f"Failed to log check-in activity: {e}")


@receiver(domain_events.team_created)
def log_team_created(sender, team, user, **kwargs):
    try:
        ActivityService.log_activity(
            actor=user,
            verb=verbs.TEAM_CREATED,
            target=team,
            event=team.event,
            metadata={"team_code": team.code, "team_name": team.name},
        )
    except Exception as e:
        logger.warning(f"Failed to log team activity: {e}")


@receiver(domain_events.team_joined)
def log_team_joined(sender, team, user, **kwargs):
    try:
        ActivityService.log_activity(
            actor=user,
            verb=verbs.TEAM_MEMBER_JOINED,
            target=team,
            event=team.event,
            metadata={"team_code": team.code, "member_count": team.member_count},
        )
    except Exception as e:
        logger.warning(f"Failed to log team join activity: {e}")


@receiver(domain_events.team_disbanded)
def log_team_disbanded(sender, team, **kwargs):
    try:
        ActivityService.log_activity(
            actor=None,
            verb=verbs.TEAM_DISBANDED,
            target=team,
            event=team.event,
            metadata={"team_code": team.code, "min_size": team.min_size},
        )
    except Exception as e:
        logger.warning(f"Failed to log team disband activity: {e}")
