# events/tests/helpers.py
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from events.models import Event

User = get_user_model()


def make_user(username, role="student", **extra):
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(username=username, password="pass1234", role=role, **extra)


def make_event(organizer, **overrides):
    now = timezone.now()
    fields = {
        "title": "Hack Night",
        "description": "Test event",
        "organizer": organizer,
        "venue": "Main Hall",
        "start_time": now + timedelta(days=7),
        "end_time": now + timedelta(days=7, hours=4),
        "status": Event.STATUS_UPCOMING,
        "capacity": 100,
        "price": Decimal("0"),
    }
    fields.update(overrides)
    return Event.objects.create(**fields)


def make_team_event(organizer, min_size=2, max_size=3, **overrides):
    return make_event(
        organizer,
        is_team_event=True,
        min_team_size=min_size,
        max_team_size=max_size,
        **overrides,
    )
