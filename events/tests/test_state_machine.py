# events/tests/test_state_machine.py
from datetime import timedelta

from django.test import SimpleTestCase
from django.utils import timezone

from events.models import Event, Registration, Ticket
from events.state_machine import (
    REGISTRATION_TRANSITIONS,
    TICKET_TRANSITIONS,
    can_cancel_registration,
    can_transition,
    is_open_for_registration,
    source_statuses,
)


class TransitionTableTests(SimpleTestCase):
    def test_registration_edges(self):
        self.assertTrue(can_transition(REGISTRATION_TRANSITIONS, "pending", "confirmed")[0])
        self.assertTrue(can_transition(REGISTRATION_TRANSITIONS, "confirmed", "cancelled")[0])

        ok, reason = can_transition(REGISTRATION_TRANSITIONS, "cancelled", "confirmed")
        self.assertFalse(ok)
        self.assertIn("cancelled", reason)

        ok, reason = can_transition(REGISTRATION_TRANSITIONS, "pending", "archived")
        self.assertFalse(ok)
        self.assertEqual(reason, "Invalid status: archived")

    def test_ticket_states_are_absorbing(self):
        self.assertEqual(source_statuses(TICKET_TRANSITIONS, Ticket.STATUS_USED), [Ticket.STATUS_VALID])
        self.assertEqual(source_statuses(TICKET_TRANSITIONS, Ticket.STATUS_CANCELLED), [Ticket.STATUS_VALID])
        self.assertFalse(can_transition(TICKET_TRANSITIONS, "used", "valid")[0])

    def test_cancellable_statuses(self):
        self.assertEqual(
            sorted(source_statuses(REGISTRATION_TRANSITIONS, Registration.STATUS_CANCELLED)),
            sorted(Registration.ACTIVE_STATUSES),
        )
        self.assertFalse(can_cancel_registration(Registration(status=Registration.STATUS_CANCELLED))[0])


class OpenForRegistrationTests(SimpleTestCase):
    def test_status_and_deadline(self):
        now = timezone.now()

        self.assertEqual(is_open_for_registration(Event(status=Event.STATUS_UPCOMING), now), (True, ""))
        self.assertTrue(is_open_for_registration(Event(status=Event.STATUS_LIVE), now)[0])
        self.assertEqual(is_open_for_registration(Event(status=Event.STATUS_DRAFT), now), (False, "Event is draft"))

        closed = Event(status=Event.STATUS_UPCOMING, registration_deadline=now - timedelta(seconds=1))
        self.assertEqual(is_open_for_registration(closed, now), (False, "Registration deadline has passed"))
