# events/state_machine.py
"""
Lifecycle rules for registrations and tickets.

Registration:  pending -> confirmed -> cancelled
                  └──────────────────┘
Ticket:        valid -> used
                  └──> cancelled

``used`` and ``cancelled`` are absorbing. The conditional updates in
``stores`` filter on ``source_statuses`` so the database re-checks the
edge and a stale in-memory copy cannot break it.
"""
from typing import List, Tuple

from django.utils import timezone

from .models import Event, Registration, Ticket


REGISTRATION_TRANSITIONS = {
    Registration.STATUS_PENDING: [Registration.STATUS_CONFIRMED, Registration.STATUS_CANCELLED],
    Registration.STATUS_CONFIRMED: [Registration.STATUS_CANCELLED],
    Registration.STATUS_CANCELLED: [],
}

TICKET_TRANSITIONS = {
    Ticket.STATUS_VALID: [Ticket.STATUS_USED, Ticket.STATUS_CANCELLED],
    Ticket.STATUS_USED: [],
    Ticket.STATUS_CANCELLED: [],
}


def can_transition(transitions: dict, current: str, new: str) -> Tuple[bool, str]:
    """
    Check a move against a transition table.

    Returns (can_transition: bool, reason: str)
    """
    if new not in transitions:
        return False, f"Invalid status: {new}"

    if new not in transitions.get(current, []):
        return False, f"Cannot transition from '{current}' to '{new}'"

    return True, ""


def source_statuses(transitions: dict, new: str) -> List[str]:
    """Every status with an edge into ``new``."""
    return [current for current, targets in transitions.items() if new in targets]


def can_cancel_registration(registration: Registration) -> Tuple[bool, str]:
    return can_transition(REGISTRATION_TRANSITIONS, registration.status, Registration.STATUS_CANCELLED)


def is_open_for_registration(event: Event, now=None) -> Tuple[bool, str]:
    """
    An event accepts registrations while it is upcoming or live and its
    optional registration deadline has not passed.
    """
    if event.status not in Event.OPEN_STATUSES:
        return False, f"Event is {event.status}"

    now = now or timezone.now()
    if event.registration_deadline and event.registration_deadline <= now:
        return False, "Registration deadline has passed"

    return True, ""
