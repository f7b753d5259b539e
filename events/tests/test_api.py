# events/tests/test_api.py
import csv
import io
import json
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from events.models import Registration, ScanLog, Team, Ticket
from events.services import RegistrationService
from events.services.payments import compute_signature
from .helpers import make_event, make_team_event, make_user


class RegistrationAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.organizer = make_user("org", role="organizer")
        self.attendee = make_user("att", first_name="Asha", last_name="Rao", college="VIT")
        self.outsider = make_user("outsider")
        self.event = make_event(self.organizer, capacity=1)

    def test_register_requires_authentication(self):
        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(resp.data["success"])

    def test_register_free_event(self):
        self.client.force_authenticate(user=self.attendee)

        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        self.assertEqual(resp.data["status"], Registration.STATUS_CONFIRMED)
        self.assertEqual(resp.data["user"]["username"], "att")
        self.assertRegex(resp.data["ticket"]["qr_code"], r"^QR_[A-Z0-9]{12}$")

    def test_full_event_error_envelope(self):
        RegistrationService.register(self.outsider, self.event.id)
        self.client.force_authenticate(user=self.attendee)

        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["success"], False)
        self.assertEqual(resp.data["status_code"], 409)
        self.assertEqual(resp.data["errors"]["code"], "capacity_exceeded")

    def test_unknown_event(self):
        self.client.force_authenticate(user=self.attendee)
        resp = self.client.post(reverse("event-register", args=[99999]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["errors"]["code"], "event_not_found")

    def test_bad_team_choice_is_validation_error(self):
        self.client.force_authenticate(user=self.attendee)
        resp = self.client.post(
            reverse("event-register", args=[self.event.id]), {"teamChoice": "adopt"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("teamChoice", resp.data["errors"])

    def test_registration_status(self):
        self.client.force_authenticate(user=self.attendee)
        url = reverse("event-registration-status", args=[self.event.id])

        resp = self.client.get(url)
        self.assertEqual(resp.data, {"registered": False})

        RegistrationService.register(self.attendee, self.event.id)
        resp = self.client.get(url)
        self.assertTrue(resp.data["registered"])
        self.assertEqual(resp.data["registration"]["status"], Registration.STATUS_CONFIRMED)

    def test_organizer_lists_registrations(self):
        RegistrationService.register(self.attendee, self.event.id)

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("event-registrations", args=[self.event.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["results"][0]["user"]["college"], "VIT")

    def test_registrations_are_paged(self):
        event = make_event(self.organizer, capacity=10)
        for name in ("p1", "p2", "p3"):
            RegistrationService.register(make_user(name), event.id)

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("event-registrations", args=[event.id]), {"limit": 2})

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 3)
        self.assertEqual([row["user"]["username"] for row in resp.data["results"]], ["p3", "p2"])
        self.assertIsNotNone(resp.data["next"])

        resp = self.client.get(resp.data["next"])
        self.assertEqual([row["user"]["username"] for row in resp.data["results"]], ["p1"])

    def test_attendee_cannot_list_registrations(self):
        self.client.force_authenticate(user=self.attendee)
        resp = self.client.get(reverse("event-registrations", args=[self.event.id]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_export_csv(self):
        RegistrationService.register(self.attendee, self.event.id)

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("event-registrations-export", args=[self.event.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp["Content-Type"], "text/csv")
        rows = list(csv.reader(io.StringIO(resp.content.decode())))
        self.assertEqual(rows[0], ["Name", "Email", "College", "Status", "Submitted At", "Team Size"])
        self.assertEqual(rows[1][:4], ["Asha Rao", "att@example.com", "VIT", "confirmed"])
        self.assertEqual(rows[1][5], "1")

    def test_cancel_own_registration(self):
        reg = RegistrationService.register(self.attendee, self.event.id)
        self.client.force_authenticate(user=self.attendee)

        resp = self.client.post(reverse("registration-cancel", args=[reg.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertEqual(resp.data["status"], Registration.STATUS_CANCELLED)
        self.assertEqual(resp.data["cancel_reason"], "attendee_request")

        resp = self.client.post(reverse("registration-cancel", args=[reg.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["errors"]["code"], "invalid_registration_state")

    def test_cannot_touch_someone_elses_registration(self):
        reg = RegistrationService.register(self.attendee, self.event.id)
        self.client.force_authenticate(user=self.outsider)

        resp = self.client.post(reverse("registration-cancel", args=[reg.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

        resp = self.client.get(reverse("registration-ticket", args=[reg.id]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_ticket_and_qr_image(self):
        reg = RegistrationService.register(self.attendee, self.event.id)
        self.client.force_authenticate(user=self.attendee)

        resp = self.client.get(reverse("registration-ticket", args=[reg.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], Ticket.STATUS_VALID)

        resp = self.client.get(reverse("registration-qr-image", args=[reg.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp["Content-Type"], "image/png")
        self.assertTrue(resp.content.startswith(b"\x89PNG"))

    def test_pending_registration_has_no_ticket(self):
        paid = make_event(self.organizer, price=Decimal("250"))
        reg = RegistrationService.register(self.attendee, paid.id)
        self.client.force_authenticate(user=self.attendee)

        resp = self.client.get(reverse("registration-ticket", args=[reg.id]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["errors"]["code"], "ticket_not_found")


class PaymentCallbackAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.organizer = make_user("org", role="organizer")
        self.attendee = make_user("att")
        self.event = make_event(self.organizer, price=Decimal("499"))
        self.reg = RegistrationService.register(self.attendee, self.event.id)
        self.url = reverse("payment-callback")

    def test_success_callback(self):
        resp = self.client.post(
            self.url,
            {"registrationId": self.reg.id, "outcome": "success", "transactionRef": "pay_1"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertTrue(resp.data["applied"])
        self.assertEqual(resp.data["status"], Registration.STATUS_CONFIRMED)
        self.assertTrue(Ticket.objects.filter(registration=self.reg).exists())

    def test_duplicate_callback_is_acknowledged(self):
        body = {"registrationId": self.reg.id, "outcome": "success", "transactionRef": "pay_1"}
        self.client.post(self.url, body, format="json")

        resp = self.client.post(self.url, body, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(resp.data["applied"])
        self.assertEqual(Ticket.objects.filter(registration=self.reg).count(), 1)

    def test_failure_callback_releases_seat(self):
        resp = self.client.post(
            self.url, {"registrationId": self.reg.id, "outcome": "failure"}, format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["paymentStatus"], Registration.PAYMENT_FAILED)
        self.event.refresh_from_db()
        self.assertEqual(self.event.registered_count, 0)

    def test_invalid_outcome(self):
        resp = self.client.post(
            self.url, {"registrationId": self.reg.id, "outcome": "pending"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(PAYMENT_WEBHOOK_SECRET="whsec_test")
    def test_signed_callback(self):
        body = json.dumps({"registrationId": self.reg.id, "outcome": "success"})

        resp = self.client.post(self.url, body, content_type="application/json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.data["errors"]["code"], "payment_signature_invalid")

        resp = self.client.post(
            self.url,
            body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=compute_signature(body, "whsec_test"),
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertTrue(resp.data["applied"])


class ScanAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.organizer = make_user("org", role="organizer")
        self.other_organizer = make_user("org2", role="organizer")
        self.crew = make_user("crew", role="crew")
        self.attendee = make_user("att")
        self.event = make_event(self.organizer)
        self.reg = RegistrationService.register(self.attendee, self.event.id)
        self.qr_code = Ticket.objects.get(registration=self.reg).qr_code

    def test_crew_checks_in_once(self):
        self.client.force_authenticate(user=self.crew)
        url = reverse("scan-qr", args=[self.qr_code])

        resp = self.client.post(url, {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertTrue(resp.data["valid"])
        self.assertEqual(resp.data["status"], "checked_in")
        self.assertEqual(resp.data["user"]["username"], "att")
        first_used_at = resp.data["usedAt"]

        resp = self.client.post(url, {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(resp.data["valid"])
        self.assertEqual(resp.data["status"], "already_used")
        self.assertEqual(resp.data["usedAt"], first_used_at)

        outcomes = list(ScanLog.objects.order_by("id").values_list("outcome", flat=True))
        self.assertEqual(outcomes, [ScanLog.OUTCOME_CHECKED_IN, ScanLog.OUTCOME_ALREADY_USED])

    def test_invalid_code(self):
        self.client.force_authenticate(user=self.crew)

        resp = self.client.post(reverse("scan-qr", args=["QR_UNKNOWN00000"]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data, {"valid": False, "status": "invalid", "message": "Invalid ticket"})
        log = ScanLog.objects.get()
        self.assertEqual(log.outcome, ScanLog.OUTCOME_INVALID)
        self.assertIsNone(log.ticket)

    def test_attendee_cannot_scan(self):
        self.client.force_authenticate(user=self.attendee)
        resp = self.client.post(reverse("scan-qr", args=[self.qr_code]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Ticket.objects.get(qr_code=self.qr_code).status, Ticket.STATUS_VALID)

    def test_other_organizer_cannot_scan(self):
        self.client.force_authenticate(user=self.other_organizer)
        resp = self.client.post(reverse("scan-qr", args=[self.qr_code]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_verify(self):
        self.client.force_authenticate(user=self.organizer)

        resp = self.client.get(reverse("ticket-verify", args=[self.qr_code]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["ticket"]["status"], Ticket.STATUS_VALID)
        self.assertEqual(resp.data["event"]["id"], self.event.id)

        resp = self.client.get(reverse("ticket-verify", args=["QR_NOPE"]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_repeat_scan_of_known_code_keeps_first_time(self):
        Ticket.objects.filter(registration=self.reg).update(qr_code="QR_ABC123DEF456")
        self.client.force_authenticate(user=self.crew)
        url = reverse("scan-qr", args=["QR_ABC123DEF456"])

        first = self.client.post(url, {}, format="json")
        self.assertEqual(first.data["status"], "checked_in")

        second = self.client.post(url, {}, format="json")
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data["status"], "already_used")
        self.assertEqual(second.data["message"], "Already checked in")
        self.assertEqual(second.data["usedAt"], first.data["usedAt"])

        ticket = Ticket.objects.get(qr_code="QR_ABC123DEF456")
        self.assertEqual(ticket.status, Ticket.STATUS_USED)
        self.assertEqual(ScanLog.objects.filter(ticket=ticket).count(), 2)

    def test_verify_after_check_in_changes_nothing(self):
        self.client.force_authenticate(user=self.crew)
        scan = self.client.post(reverse("scan-qr", args=[self.qr_code]), {}, format="json")
        used_at = Ticket.objects.get(qr_code=self.qr_code).used_at

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("ticket-verify", args=[self.qr_code]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["ticket"]["status"], Ticket.STATUS_USED)
        self.assertIsNotNone(scan.data["usedAt"])
        ticket = Ticket.objects.get(qr_code=self.qr_code)
        self.assertEqual(ticket.used_at, used_at)
        self.assertEqual(ScanLog.objects.count(), 1)


class TeamAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.organizer = make_user("org", role="organizer")
        self.leader = make_user("leader")
        self.joiner = make_user("joiner")
        self.event = make_team_event(self.organizer, min_size=2, max_size=2)

    def test_create_and_join_over_http(self):
        self.client.force_authenticate(user=self.leader)
        resp = self.client.post(
            reverse("event-register", args=[self.event.id]),
            {
                "teamChoice": "create",
                "teamName": "Null Pointers",
                "teamMembers": [{"name": "Joiner", "email": "joiner@example.com", "role": "Dev"}],
            },
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        code = resp.data["team_code"]

        self.client.force_authenticate(user=self.joiner)
        resp = self.client.get(reverse("team-detail", args=[code]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["name"], "Null Pointers")

        resp = self.client.post(
            reverse("event-register", args=[self.event.id]),
            {"teamChoice": "join", "teamCode": code},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)

        third = make_user("third")
        self.client.force_authenticate(user=third)
        resp = self.client.post(
            reverse("event-register", args=[self.event.id]),
            {"teamChoice": "join", "teamCode": code},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["errors"]["code"], "team_full")

    def test_team_listing_scoped_to_caller(self):
        RegistrationService.register(self.leader, self.event.id, team_choice="create")
        RegistrationService.register(make_user("other"), self.event.id, team_choice="create")

        self.client.force_authenticate(user=self.leader)
        resp = self.client.get(reverse("event-teams", args=[self.event.id]))
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]["leader"]["username"], "leader")

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("event-teams", args=[self.event.id]))
        self.assertEqual(len(resp.data), 2)

    def test_cancelled_member_frees_slot_over_http(self):
        team = RegistrationService.register(self.leader, self.event.id, team_choice="create").team
        joined = RegistrationService.register(self.joiner, self.event.id, team_choice="join", team_code=team.code)

        self.client.force_authenticate(user=self.joiner)
        resp = self.client.post(reverse("registration-cancel", args=[joined.id]), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.get(reverse("event-teams", args=[self.event.id]))
        self.assertEqual(resp.data[0]["member_count"], 1)
        self.assertEqual([m["user"]["username"] for m in resp.data[0]["members"]], ["leader"])

        resp = self.client.get(reverse("event-registrations-export", args=[self.event.id]))
        rows = list(csv.reader(io.StringIO(resp.content.decode())))
        team_sizes = {row[1]: row[5] for row in rows[1:]}
        self.assertEqual(team_sizes["leader@example.com"], "1")

        self.client.force_authenticate(user=make_user("third"))
        resp = self.client.post(
            reverse("event-register", args=[self.event.id]),
            {"teamChoice": "join", "teamCode": team.code},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)

    def test_finalize_requires_organizer(self):
        RegistrationService.register(self.leader, self.event.id, team_choice="create")
        url = reverse("event-teams-finalize", args=[self.event.id])

        self.client.force_authenticate(user=self.leader)
        resp = self.client.post(url, {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.organizer)
        resp = self.client.post(url, {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data["disbanded"]), 1)
        self.assertEqual(Team.objects.get().status, Team.STATUS_DISBANDED)
