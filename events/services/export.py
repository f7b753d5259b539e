# events/services/export.py
import csv

from django.utils import timezone

from events.models import Registration

EXPORT_HEADERS = ["Name", "Email", "College", "Status", "Submitted At", "Team Size"]


def registrations_for_export(event, status=None):
    qs = (
        Registration.objects
        .filter(event=event)
        .select_related("user", "team")
        .order_by("registered_at", "id")
    )
    if status:
        qs = qs.filter(status=status)
    return qs


def write_registrations_csv(stream, event, status=None):
    """One row per registration; read-only."""
    writer = csv.writer(stream)
    writer.writerow(EXPORT_HEADERS)

    for reg in registrations_for_export(event, status=status):
        user = reg.user
        writer.writerow([
            user.display_name,
            user.email,
            user.college or "N/A",
            reg.status,
            timezone.localtime(reg.registered_at).strftime("%Y-%m-%d %H:%M:%S"),
            reg.team.member_count if reg.team_id else 1,
        ])

    return stream
