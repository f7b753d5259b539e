# events/views/teams.py - Team formation API views

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from django.db.models import Prefetch

from events.exceptions import EventNotFound, TeamCodeInvalid
from events.models import Event, Team, TeamMember
from events.serializers import TeamSerializer
from events.services import TeamService
from events.services.teams import normalize_team_code
from .generics import api_error, user_can_edit_event


def _teams_queryset():
    return (
        Team.objects
        .select_related("leader", "event")
        .prefetch_related(Prefetch(
            "members",
            queryset=TeamMember.objects.filter(left_at__isnull=True).select_related("user"),
        ))
    )


class EventTeamListView(APIView):
    """
    GET /api/events/<event_id>/teams/

    Managers see every team; participants see only their own.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = Event.objects.filter(pk=event_id).first()
        if event is None:
            raise EventNotFound(event_id=event_id)

        teams = _teams_queryset().filter(event=event).order_by("created_at", "id")
        if not user_can_edit_event(request.user, event):
            teams = teams.filter(members__user=request.user, members__left_at__isnull=True)

        return Response(TeamSerializer(teams, many=True).data)


class TeamDetailView(APIView):
    """
    GET /api/events/teams/<code>/

    Holding the join code is enough to preview the team before joining.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, code):
        code = normalize_team_code(code)
        team = _teams_queryset().filter(code=code).first()
        if team is None:
            raise TeamCodeInvalid(team_code=code)
        return Response(TeamSerializer(team).data)


class FinalizeTeamsView(APIView):
    """
    POST /api/events/<event_id>/teams/finalize/

    Closes team formation: under-filled teams are disbanded and their
    registrations cancelled.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = Event.objects.filter(pk=event_id).first()
        if event is None:
            raise EventNotFound(event_id=event_id)

        if not user_can_edit_event(request.user, event):
            return api_error("Only the organizer can finalize teams.", status.HTTP_403_FORBIDDEN)
        if not event.is_team_event:
            return api_error("This is not a team event.", status.HTTP_400_BAD_REQUEST)

        report = TeamService.finalize_teams(event)
        return Response(report, status=status.HTTP_200_OK)
