# events/tests/test_tasks.py
from datetime import timedelta
from decimal import Decimal

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone

from events.models import Event, Registration, Team, Ticket
from events.services import RegistrationService
from events.tasks import (
    finalize_closed_team_events,
    release_stale_pending_registrations,
    send_cancellation_email_task,
    send_ticket_email_task,
)
from .helpers import make_event, make_team_event, make_user


@override_settings(PENDING_PAYMENT_TIMEOUT_MINUTES=30)
class ReleaseStalePendingTests(TestCase):
    def setUp(self):
        self.organizer = make_user("org", role="organizer")
        self.event = make_event(self.organizer, capacity=2, price=Decimal("150"))

    def _age(self, registration, minutes):
        Registration.objects.filter(pk=registration.pk).update(
            registered_at=timezone.now() - timedelta(minutes=minutes),
        )

    def test_old_pending_registrations_are_released(self):
        stale = RegistrationService.register(make_user("stale"), self.event.id)
        fresh = RegistrationService.register(make_user("fresh"), self.event.id)
        self._age(stale, 45)

        released = release_stale_pending_registrations()

        self.assertEqual(released, [stale.id])
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Registration.STATUS_CANCELLED)
        self.assertEqual(stale.cancel_reason, "payment_timeout")
        self.assertEqual(fresh.status, Registration.STATUS_PENDING)

        self.event.refresh_from_db()
        self.assertEqual(self.event.registered_count, 1)

    def test_paid_registrations_are_left_alone(self):
        reg = RegistrationService.register(make_user("payer"), self.event.id)
        RegistrationService.confirm_payment(reg.id, "success")
        self._age(reg, 120)

        self.assertEqual(release_stale_pending_registrations(), [])
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.STATUS_CONFIRMED)


class FinalizeClosedTeamEventsTests(TestCase):
    def test_only_events_past_deadline_are_finalized(self):
        organizer = make_user("org", role="organizer")
        closed = make_team_event(organizer, min_size=2, max_size=3, title="Closed")
        still_open = make_team_event(organizer, min_size=2, max_size=3, title="Open")

        closed_team = RegistrationService.register(make_user("a"), closed.id, team_choice="create").team
        open_team = RegistrationService.register(make_user("b"), still_open.id, team_choice="create").team

        Event.objects.filter(pk=closed.pk).update(registration_deadline=timezone.now() - timedelta(hours=1))

        reports = finalize_closed_team_events()

        self.assertEqual(list(reports), [closed.id])
        self.assertEqual(reports[closed.id]["disbanded"], [closed_team.code])
        self.assertEqual(Team.objects.get(pk=closed_team.pk).status, Team.STATUS_DISBANDED)
        self.assertEqual(Team.objects.get(pk=open_team.pk).status, Team.STATUS_FORMING)

        # Nothing left to do on the next run
        self.assertEqual(finalize_closed_team_events(), {})


class TicketEmailTaskTests(TestCase):
    def setUp(self):
        self.organizer = make_user("org", role="organizer")
        self.attendee = make_user("att", first_name="Asha")
        self.event = make_event(self.organizer, title="Robotics Meetup")
        self.reg = RegistrationService.register(self.attendee, self.event.id)
        self.ticket = Ticket.objects.get(registration=self.reg)

    def test_ticket_email_has_qr_attachment(self):
        result = send_ticket_email_task(self.ticket.id)

        self.assertEqual(result, "sent")
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["att@example.com"])
        self.assertIn("Robotics Meetup", message.subject)
        self.assertIn(self.ticket.qr_code, message.body)

        filename, content, mimetype = message.attachments[0]
        self.assertEqual(filename, f"ticket_{self.ticket.qr_code}.png")
        self.assertEqual(mimetype, "image/png")
        self.assertTrue(content.startswith(b"\x89PNG"))

    def test_no_email_address(self):
        self.attendee.email = ""
        self.attendee.save(update_fields=["email"])

        self.assertEqual(send_ticket_email_task(self.ticket.id), "no_email")
        self.assertEqual(len(mail.outbox), 0)

    def test_cancelled_ticket_is_not_mailed(self):
        RegistrationService.cancel(self.reg.id)

        self.assertEqual(send_ticket_email_task(self.ticket.id), "ticket_not_valid")
        self.assertEqual(len(mail.outbox), 0)

    def test_missing_ticket(self):
        self.assertEqual(send_ticket_email_task(987654), "ticket_not_found")

    def test_cancellation_email(self):
        RegistrationService.cancel(self.reg.id, reason="organizer_request")

        self.assertEqual(send_cancellation_email_task(self.reg.id), "sent")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("organizer request", mail.outbox[0].body)
