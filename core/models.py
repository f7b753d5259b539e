# core/models.py
from django.db import models
from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType


class DomainActivity(models.Model):
    """
    Append-only ledger of business-significant actions in the system.
    Written by domain-event subscribers, never by the ticketing core itself.
    """
    # Who did it? Null for system actors (janitor tasks, gateway callbacks).
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="activities",
        null=True,
        blank=True,
    )

    # What happened? (e.g., 'ticket.checked_in')
    verb = models.CharField(max_length=64, db_index=True)

    # To what? (Generic Foreign Key)
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey("content_type", "object_id")

    # context (Where?)
    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="activities",
    )

    # Snapshot data at time of logging (titles, statuses, codes)
    metadata = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name_plural = "Domain Activities"
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["event", "-timestamp"], name="activity_event_ts_idx"),
            models.Index(fields=["actor", "-timestamp"], name="activity_actor_ts_idx"),
        ]

    def __str__(self):
        return f"{self.actor} - {self.verb} - {self.timestamp}"
