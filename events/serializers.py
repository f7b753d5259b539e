from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import Event, Registration, Team, TeamMember, Ticket
from .services.registration import PAYMENT_OUTCOMES, TEAM_CHOICES


# -----------------------------------------
# EVENT
# -----------------------------------------
class EventSummarySerializer(serializers.ModelSerializer):
    seats_left = serializers.IntegerField(read_only=True)

    class Meta:
        model = Event
        fields = [
            "id",
            "title",
            "venue",
            "start_time",
            "end_time",
            "status",
            "capacity",
            "registered_count",
            "seats_left",
            "price",
            "currency",
            "is_team_event",
            "min_team_size",
            "max_team_size",
        ]
        read_only_fields = fields


# -----------------------------------------
# TEAMS
# -----------------------------------------
class TeamMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TeamMember
        fields = ["id", "user", "role", "position", "joined_at"]
        read_only_fields = fields


class TeamSerializer(serializers.ModelSerializer):
    members = TeamMemberSerializer(many=True, read_only=True)
    leader = UserSummarySerializer(read_only=True)

    class Meta:
        model = Team
        fields = [
            "id",
            "event",
            "name",
            "code",
            "leader",
            "status",
            "min_size",
            "max_size",
            "member_count",
            "is_full",
            "members",
            "declared_members",
            "created_at",
        ]
        read_only_fields = fields


# -----------------------------------------
# TICKETS
# -----------------------------------------
class TicketSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ticket
        fields = [
            "id",
            "event",
            "user",
            "registration",
            "qr_code",
            "status",
            "generated_at",
            "used_at",
        ]
        read_only_fields = fields


# -----------------------------------------
# REGISTRATIONS
# -----------------------------------------
class RegistrationSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    team_code = serializers.CharField(source="team.code", read_only=True, default=None)
    checked_in = serializers.BooleanField(read_only=True)
    ticket = serializers.SerializerMethodField()

    class Meta:
        model = Registration
        fields = [
            "id",
            "event",
            "user",
            "status",
            "payment_status",
            "team",
            "team_code",
            "form_responses",
            "registered_at",
            "cancelled_at",
            "cancel_reason",
            "checked_in",
            "ticket",
        ]
        read_only_fields = fields

    def get_ticket(self, obj):
        ticket = getattr(obj, "ticket", None)
        if ticket is None:
            return None
        return {"qr_code": ticket.qr_code, "status": ticket.status}


class TeamMemberInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, allow_blank=True, required=False, default="")
    email = serializers.CharField(max_length=254, allow_blank=True, required=False, default="")
    role = serializers.CharField(max_length=100, allow_blank=True, required=False, default="")


class RegisterRequestSerializer(serializers.Serializer):
    """
    Body of POST /api/events/<event_id>/register/. The registering user is
    always the authenticated caller.
    """
    teamChoice = serializers.ChoiceField(
        choices=TEAM_CHOICES, required=False, allow_null=True, source="team_choice",
    )
    teamCode = serializers.CharField(
        max_length=16, required=False, allow_null=True, allow_blank=True, source="team_code",
    )
    teamName = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default="", source="team_name",
    )
    teamMembers = TeamMemberInputSerializer(many=True, required=False, source="team_members")
    formResponses = serializers.DictField(required=False, default=dict, source="form_responses")


class CancelRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")


class PaymentCallbackSerializer(serializers.Serializer):
    registrationId = serializers.IntegerField(min_value=1, source="registration_id")
    outcome = serializers.ChoiceField(choices=PAYMENT_OUTCOMES)
    transactionRef = serializers.CharField(
        max_length=255, required=False, allow_null=True, allow_blank=True, source="transaction_ref",
    )
