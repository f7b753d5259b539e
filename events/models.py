# events/models.py
from django.db import models
from django.db.models import F, Q
from django.conf import settings


class Event(models.Model):
    """
    An organizer-owned event. Capacity, status, price and the team/form
    configuration are maintained by event-management flows; the ticketing
    core only moves ``registered_count``.
    """
    STATUS_DRAFT = "draft"
    STATUS_UPCOMING = "upcoming"
    STATUS_LIVE = "live"
    STATUS_ENDED = "ended"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_UPCOMING, "Upcoming"),
        (STATUS_LIVE, "Live"),
        (STATUS_ENDED, "Ended"),
    ]

    # Statuses in which registrations are accepted
    OPEN_STATUSES = (STATUS_UPCOMING, STATUS_LIVE)

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='organized_events'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    venue = models.CharField(max_length=255, blank=True, null=True)
    start_time = models.DateTimeField(blank=True, null=True)
    end_time = models.DateTimeField(blank=True, null=True)
    registration_deadline = models.DateTimeField(
        blank=True,
        null=True,
        help_text="Registrations close at this time (defaults to status-only gating)",
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    capacity = models.PositiveIntegerField(default=1)
    registered_count = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=10, default="INR")

    # Team events
    is_team_event = models.BooleanField(default=False)
    min_team_size = models.PositiveIntegerField(default=1)
    max_team_size = models.PositiveIntegerField(default=1)

    # Organizer-defined registration form: [{id, type, label, required, options?}]
    form_fields = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(capacity__gte=1),
                name="event_capacity_positive",
            ),
            models.CheckConstraint(
                condition=Q(registered_count__lte=F("capacity")),
                name="event_registered_within_capacity",
            ),
            models.CheckConstraint(
                condition=Q(price__gte=0),
                name="event_price_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(min_team_size__lte=F("max_team_size")),
                name="event_team_size_bounds",
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'start_time'], name='event_status_start_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def is_paid(self):
        return self.price > 0

    @property
    def seats_left(self):
        return max(0, self.capacity - self.registered_count)


class Registration(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Statuses that hold a capacity slot
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

    PAYMENT_NOT_REQUIRED = "not_required"
    PAYMENT_PENDING = "pending"
    PAYMENT_COMPLETED = "completed"
    PAYMENT_FAILED = "failed"

    PAYMENT_CHOICES = [
        (PAYMENT_NOT_REQUIRED, "Not required"),
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_COMPLETED, "Completed"),
        (PAYMENT_FAILED, "Failed"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")
    team = models.ForeignKey(
        "Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registrations",
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_CHOICES, default=PAYMENT_NOT_REQUIRED)
    payment_reference = models.CharField(max_length=255, blank=True, null=True)

    # Answers to the organizer-defined form, keyed by field id
    form_responses = models.JSONField(default=dict, blank=True)

    registered_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancel_reason = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        constraints = [
            # Cancelled rows are kept for audit; a user may register again after cancelling
            models.UniqueConstraint(
                fields=["user", "event"],
                condition=~Q(status="cancelled"),
                name="registration_active_user_event_uniq",
            ),
        ]
        indexes = [
            models.Index(fields=['event', 'registered_at'], name='reg_event_registered_idx'),
            models.Index(fields=['status', 'payment_status', 'registered_at'], name='reg_status_payment_idx'),
        ]

    def __str__(self):
        return f"{self.user} -> {self.event} ({self.status})"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def checked_in(self):
        ticket = getattr(self, "ticket", None)
        return ticket is not None and ticket.status == Ticket.STATUS_USED


class Team(models.Model):
    STATUS_FORMING = "forming"
    STATUS_FINALIZED = "finalized"
    STATUS_DISBANDED = "disbanded"

    STATUS_CHOICES = [
        (STATUS_FORMING, "Forming"),
        (STATUS_FINALIZED, "Finalized"),
        (STATUS_DISBANDED, "Disbanded"),
    ]

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='teams')
    name = models.CharField(max_length=100, blank=True, default="")
    leader = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='led_teams')

    # Join token handed out by the leader
    code = models.CharField(max_length=16, unique=True)

    # Copied from the event at creation so later event edits do not move the bounds
    min_size = models.PositiveIntegerField(default=1)
    max_size = models.PositiveIntegerField(default=1)
    # Active members; a cancelled registration gives its slot back
    member_count = models.PositiveIntegerField(default=0)
    # Next free position; only ever grows so positions are never reused
    next_position = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_FORMING)

    # Roster typed in by the leader at creation: [{name, email, role}]
    declared_members = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(member_count__lte=F("max_size")),
                name="team_members_within_max",
            ),
        ]
        indexes = [
            models.Index(fields=['event', 'created_at'], name='team_event_created_idx'),
        ]

    def __str__(self):
        return f"{self.name or self.code} ({self.event.title})"

    @property
    def is_full(self):
        return self.member_count >= self.max_size


class TeamMember(models.Model):
    ROLE_LEADER = "leader"
    ROLE_MEMBER = "member"

    ROLE_CHOICES = [
        (ROLE_LEADER, "Team Leader"),
        (ROLE_MEMBER, "Member"),
    ]

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    # Denormalised so "one active team per user per event" is a database constraint
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='team_memberships')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='team_memberships')
    registration = models.OneToOneField(
        Registration,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='team_membership',
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    # 0 is always the leader; joins append
    position = models.PositiveIntegerField()
    joined_at = models.DateTimeField(auto_now_add=True)
    # Set when the member's registration is cancelled
    left_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                condition=Q(left_at__isnull=True),
                name="team_member_event_user_uniq",
            ),
            models.UniqueConstraint(fields=["team", "position"], name="team_member_position_uniq"),
        ]

    def __str__(self):
        return f"{self.user} in {self.team} (#{self.position})"

    @property
    def is_active(self):
        return self.left_at is None


class Ticket(models.Model):
    STATUS_VALID = "valid"
    STATUS_USED = "used"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_VALID, "Valid"),
        (STATUS_USED, "Used"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tickets")
    # One ticket per registration; backs idempotent issuance
    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="ticket")
    qr_code = models.CharField(max_length=32, unique=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_VALID)
    generated_at = models.DateTimeField(auto_now_add=True)
    used_at = models.DateTimeField(blank=True, null=True)
    used_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="scanned_tickets",
    )
    cancelled_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        indexes = [
            models.Index(fields=['event', 'status'], name='ticket_event_status_idx'),
        ]

    def __str__(self):
        return f"{self.qr_code} ({self.status})"


class ScanLog(models.Model):
    """
    Audit log for QR scans.
    Stores who scanned, what QR, which event/ticket (if known),
    IP address, outcome, and timestamp.
    """
    OUTCOME_CHECKED_IN = "checked_in"
    OUTCOME_ALREADY_USED = "already_used"
    OUTCOME_INVALID = "invalid"

    OUTCOME_CHOICES = [
        (OUTCOME_CHECKED_IN, "Checked in"),
        (OUTCOME_ALREADY_USED, "Already used"),
        (OUTCOME_INVALID, "Invalid"),
    ]

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="scan_logs",
        null=True,
        blank=True,
    )
    ticket = models.ForeignKey(
        Ticket,
        on_delete=models.SET_NULL,
        related_name="scan_logs",
        null=True,
        blank=True,
    )
    scanned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="scan_logs",
        null=True,
        blank=True,
    )
    qr_code = models.CharField(max_length=128)
    ip_address = models.CharField(max_length=64, null=True, blank=True)
    outcome = models.CharField(max_length=32, choices=OUTCOME_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["event", "created_at"], name="scanlog_event_created_idx"),
            models.Index(fields=["qr_code"], name="scanlog_qrcode_idx"),
        ]

    def __str__(self):
        return f"{self.scanned_by} - {self.qr_code} - {self.outcome}"
