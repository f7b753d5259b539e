# events/services/registration.py
"""
Registration admission, payment resolution and cancellation.

``register`` runs as one transaction: team step, capacity reservation,
registration row and (for free events) the ticket either all land or none
do. Capacity is only ever moved by conditional updates in the store.
"""
import logging

from events.domain_events import (
    emit_on_commit,
    payment_failed,
    registration_cancelled,
    registration_confirmed,
    registration_created,
)
from events.exceptions import (
    AlreadyRegistered,
    AlreadyResolved,
    CapacityExceeded,
    EventNotFound,
    EventNotOpen,
    InvalidRegistrationState,
    RegistrationFormInvalid,
    RegistrationNotFound,
    TeamChoiceRequired,
    TeamCodeInvalid,
)
from events.models import Registration
from events.registration_fields import clean_form_responses, validate_form_responses
from events.state_machine import can_cancel_registration, is_open_for_registration
from events.stores import RegistrationStore, atomic_unit, retry_on_conflict
from .teams import TeamService
from .tickets import TicketService

logger = logging.getLogger('findmyevent.events')

TEAM_CHOICE_CREATE = "create"
TEAM_CHOICE_JOIN = "join"
TEAM_CHOICES = (TEAM_CHOICE_CREATE, TEAM_CHOICE_JOIN)

PAYMENT_SUCCESS = "success"
PAYMENT_FAILURE = "failure"
PAYMENT_OUTCOMES = (PAYMENT_SUCCESS, PAYMENT_FAILURE)

registration_store = RegistrationStore()


class RegistrationService:

    @staticmethod
    @retry_on_conflict
    def register(user, event_id, team_choice=None, team_code=None, team_members=None,
                 form_responses=None, team_name=""):
        with atomic_unit():
            event = registration_store.get_event(event_id)
            if event is None:
                raise EventNotFound(event_id=event_id)

            is_open, reason = is_open_for_registration(event)
            if not is_open:
                raise EventNotOpen(reason, event_id=event.pk)

            if registration_store.get_active(user, event) is not None:
                raise AlreadyRegistered(event_id=event.pk)

            errors = validate_form_responses(event.form_fields, form_responses)
            if errors:
                raise RegistrationFormInvalid(errors=errors)

            team = None
            if event.is_team_event:
                if team_choice == TEAM_CHOICE_CREATE:
                    team = TeamService.create_team(event, user, declared_members=team_members, name=team_name)
                elif team_choice == TEAM_CHOICE_JOIN:
                    if not team_code:
                        raise TeamCodeInvalid("A team code is required to join a team.")
                    team = TeamService.join_team(team_code, user, event=event)
                else:
                    raise TeamChoiceRequired(event_id=event.pk)

            if not registration_store.reserve_seat(event.pk):
                logger.warning("Registration rejected: event %s is full (capacity %s)", event.pk, event.capacity)
                raise CapacityExceeded(event_id=event.pk)

            if event.is_paid:
                status, payment_status = Registration.STATUS_PENDING, Registration.PAYMENT_PENDING
            else:
                status, payment_status = Registration.STATUS_CONFIRMED, Registration.PAYMENT_NOT_REQUIRED

            registration = registration_store.create(
                user=user,
                event=event,
                status=status,
                payment_status=payment_status,
                team=team,
                form_responses=clean_form_responses(event.form_fields, form_responses),
            )
            if team is not None:
                TeamService.attach_registration(team, user, registration)

            emit_on_commit(registration_created, sender=Registration, registration=registration)
            if registration.status == Registration.STATUS_CONFIRMED:
                emit_on_commit(registration_confirmed, sender=Registration, registration=registration)
                TicketService.issue(registration)

        logger.info(
            "User %s registered for event %s (registration %s, %s)",
            user.pk, event.pk, registration.pk, registration.status,
        )
        return registration

    @staticmethod
    @retry_on_conflict
    def confirm_payment(registration_id, outcome, transaction_ref=None):
        """
        Apply the gateway's verdict to a pending registration. Only the first
        callback wins; repeats raise AlreadyResolved.
        """
        if outcome not in PAYMENT_OUTCOMES:
            raise ValueError(f"Unknown payment outcome: {outcome!r}")
        succeeded = outcome == PAYMENT_SUCCESS

        with atomic_unit():
            registration = registration_store.get(registration_id)
            if registration is None:
                raise RegistrationNotFound(registration_id=registration_id)

            if not registration_store.resolve_payment(registration.pk, succeeded, transaction_ref):
                registration.refresh_from_db()
                if succeeded and registration.status == Registration.STATUS_CANCELLED:
                    logger.warning(
                        "Payment %s succeeded for cancelled registration %s; refund required",
                        transaction_ref, registration.pk,
                    )
                else:
                    logger.warning(
                        "Duplicate payment callback for registration %s (%s/%s)",
                        registration.pk, registration.status, registration.payment_status,
                    )
                raise AlreadyResolved(
                    registration_id=registration.pk,
                    status=registration.status,
                    payment_status=registration.payment_status,
                )

            registration.refresh_from_db()
            if succeeded:
                emit_on_commit(registration_confirmed, sender=Registration, registration=registration)
                TicketService.issue(registration)
            else:
                registration_store.release_seat(registration.event_id)
                TeamService.leave_team(registration)
                emit_on_commit(payment_failed, sender=Registration, registration=registration)
                emit_on_commit(registration_cancelled, sender=Registration, registration=registration)

        logger.info(
            "Payment %s for registration %s (ref=%s)",
            outcome, registration.pk, transaction_ref,
        )
        return registration

    @staticmethod
    @retry_on_conflict
    def cancel(registration_id, reason=None):
        """
        Cancel a pending or confirmed registration: the seat and any team
        slot are released and a still-valid ticket is cancelled with it.
        """
        with atomic_unit():
            registration = registration_store.get(registration_id)
            if registration is None:
                raise RegistrationNotFound(registration_id=registration_id)

            if not registration_store.mark_cancelled(registration.pk, reason):
                registration.refresh_from_db()
                _, reason_text = can_cancel_registration(registration)
                raise InvalidRegistrationState(
                    reason_text or None,
                    registration_id=registration.pk,
                    status=registration.status,
                )

            registration_store.release_seat(registration.event_id)
            TeamService.leave_team(registration)
            TicketService.cancel_for_registration(registration)

            registration.refresh_from_db()
            emit_on_commit(registration_cancelled, sender=Registration, registration=registration)

        logger.info("Registration %s cancelled (%s)", registration.pk, reason or "requested")
        return registration
