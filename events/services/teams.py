# events/services/teams.py
"""
Team formation for team events.

The leader creates a team and shares its join code; members join with the
code. Admission is a conditional increment of ``Team.member_count`` bounded
by ``max_size``. The lower bound is only enforced when registration closes
(``finalize_teams``).
A cancelled registration leaves its team (``leave_team``): the slot is
handed back but positions are never reused.
"""
import logging
import secrets
import string

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from events.domain_events import emit_on_commit, team_created, team_disbanded, team_joined
from events.exceptions import (
    AlreadyOnTeam,
    RegistrationFormInvalid,
    StorageConflict,
    TeamCodeInvalid,
    TeamFull,
    TeamSizeBelowMinimum,
)
from events.models import Registration, Team, TeamMember
from events.stores import atomic_unit, retry_on_conflict

logger = logging.getLogger('findmyevent.events')

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


def generate_team_code():
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_team_code(code):
    return (code or "").strip().upper()


def clean_declared_members(members, max_size):
    """
    Validate the roster the leader typed in: every entry needs a name and a
    valid email, and the roster cannot be larger than the team may grow.
    """
    members = members or []
    errors = {}
    roster = []

    for index, member in enumerate(members):
        name = str(member.get("name") or "").strip()
        email = str(member.get("email") or "").strip()
        role = str(member.get("role") or "").strip()

        if not name and not email:
            continue
        if not name:
            errors[f"team_{index}_name"] = "Name is required"
        if not email:
            errors[f"team_{index}_email"] = "Email is required"
        else:
            try:
                validate_email(email)
            except ValidationError:
                errors[f"team_{index}_email"] = "Email is invalid"

        roster.append({"name": name, "email": email, "role": role})

    if len(roster) > max_size:
        errors["team"] = f"Team cannot have more than {max_size} members"

    if errors:
        raise RegistrationFormInvalid("Team roster is invalid.", errors=errors)
    return roster


def active_member_count(team):
    """Members whose registration still holds a place."""
    return TeamMember.objects.filter(
        team=team,
        left_at__isnull=True,
        registration__status__in=Registration.ACTIVE_STATUSES,
    ).count()


class TeamService:

    @staticmethod
    def create_team(event, leader, declared_members=None, name=""):
        """Create a forming team with ``leader`` at position 0."""
        if TeamMember.objects.filter(event=event, user=leader, left_at__isnull=True).exists():
            raise AlreadyOnTeam(event_id=event.pk)

        roster = clean_declared_members(declared_members, event.max_team_size)

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_team_code()
            try:
                with transaction.atomic():
                    team = Team.objects.create(
                        event=event,
                        leader=leader,
                        name=(name or "").strip()[:100],
                        code=code,
                        min_size=event.min_team_size,
                        max_size=event.max_team_size,
                        member_count=1,
                        next_position=1,
                        declared_members=roster,
                    )
                    TeamMember.objects.create(
                        team=team,
                        event=event,
                        user=leader,
                        role=TeamMember.ROLE_LEADER,
                        position=0,
                    )
            except IntegrityError:
                if TeamMember.objects.filter(event=event, user=leader, left_at__isnull=True).exists():
                    raise AlreadyOnTeam(event_id=event.pk)
                if Team.objects.filter(code=code).exists():
                    logger.warning("Team code collision on %s, drawing a new one", code)
                    continue
                raise
            else:
                logger.info("Team %s created for event %s by user %s", team.code, event.pk, leader.pk)
                emit_on_commit(team_created, sender=Team, team=team, user=leader)
                return team

        raise StorageConflict("Could not allocate a unique team code.")

    @staticmethod
    def join_team(code, user, event=None):
        """
        Add ``user`` to the team behind ``code``. When ``event`` is given the
        team must belong to it.
        """
        code = normalize_team_code(code)
        team = Team.objects.select_related("event").filter(code=code).first()

        if team is None or (event is not None and team.event_id != event.pk):
            raise TeamCodeInvalid(team_code=code)
        if team.status != Team.STATUS_FORMING:
            raise TeamCodeInvalid("This team is no longer accepting members.", team_code=code)
        if TeamMember.objects.filter(event_id=team.event_id, user=user, left_at__isnull=True).exists():
            raise AlreadyOnTeam(event_id=team.event_id)

        with transaction.atomic():
            updated = Team.objects.filter(
                pk=team.pk,
                status=Team.STATUS_FORMING,
                member_count__lt=F("max_size"),
            ).update(
                member_count=F("member_count") + 1,
                next_position=F("next_position") + 1,
            )

            if not updated:
                team.refresh_from_db(fields=["status", "member_count"])
                if team.status != Team.STATUS_FORMING:
                    raise TeamCodeInvalid("This team is no longer accepting members.", team_code=code)
                logger.warning("Join rejected: team %s is full (%s/%s)", code, team.member_count, team.max_size)
                raise TeamFull(team_code=code, max_size=team.max_size)

            team.refresh_from_db(fields=["member_count", "next_position"])
            try:
                with transaction.atomic():
                    TeamMember.objects.create(
                        team=team,
                        event_id=team.event_id,
                        user=user,
                        role=TeamMember.ROLE_MEMBER,
                        position=team.next_position - 1,
                    )
            except IntegrityError as exc:
                raise AlreadyOnTeam(event_id=team.event_id) from exc

        logger.info("User %s joined team %s (%s/%s)", user.pk, code, team.member_count, team.max_size)
        emit_on_commit(team_joined, sender=Team, team=team, user=user)
        return team

    @staticmethod
    def attach_registration(team, user, registration):
        TeamMember.objects.filter(team=team, user=user, left_at__isnull=True).update(registration=registration)

    @staticmethod
    def leave_team(registration):
        """
        Hand back the team slot held by a cancelled registration. The member
        row stays for history with ``left_at`` set. Returns False when there
        was nothing to release.
        """
        if not registration.team_id:
            return False

        left = TeamMember.objects.filter(
            team_id=registration.team_id,
            user_id=registration.user_id,
            left_at__isnull=True,
        ).update(left_at=timezone.now())
        if not left:
            return False

        Team.objects.filter(
            pk=registration.team_id,
            member_count__gt=0,
        ).update(member_count=F("member_count") - 1)

        logger.info("User %s left team %s", registration.user_id, registration.team_id)
        return True

    @staticmethod
    def validate_team_size(team):
        count = active_member_count(team)
        if count < team.min_size:
            raise TeamSizeBelowMinimum(
                team_code=team.code,
                members=count,
                min_size=team.min_size,
            )
        return count

    @staticmethod
    @retry_on_conflict
    def finalize_teams(event):
        """
        Close team formation for ``event``. Teams that reached ``min_size``
        are finalized; the rest are disbanded and their registrations
        cancelled, which hands their seats back.
        """
        from events.services.registration import RegistrationService

        report = {"finalized": [], "disbanded": [], "cancelled_registrations": []}

        for team in Team.objects.filter(event=event, status=Team.STATUS_FORMING).order_by("pk"):
            with atomic_unit():
                try:
                    TeamService.validate_team_size(team)
                except TeamSizeBelowMinimum:
                    moved = Team.objects.filter(
                        pk=team.pk, status=Team.STATUS_FORMING,
                    ).update(status=Team.STATUS_DISBANDED)
                    if not moved:
                        continue

                    registration_ids = list(
                        Registration.objects.filter(
                            team=team,
                            status__in=Registration.ACTIVE_STATUSES,
                        ).values_list("id", flat=True)
                    )
                    for registration_id in registration_ids:
                        RegistrationService.cancel(registration_id, reason="team_below_minimum")

                    team.status = Team.STATUS_DISBANDED
                    report["disbanded"].append(team.code)
                    report["cancelled_registrations"].extend(registration_ids)
                    logger.warning(
                        "Team %s disbanded below minimum size %s; cancelled registrations %s",
                        team.code, team.min_size, registration_ids,
                    )
                    emit_on_commit(team_disbanded, sender=Team, team=team)
                else:
                    moved = Team.objects.filter(
                        pk=team.pk, status=Team.STATUS_FORMING,
                    ).update(status=Team.STATUS_FINALIZED)
                    if moved:
                        report["finalized"].append(team.code)

        logger.info(
            "Teams finalized for event %s: %s finalized, %s disbanded",
            event.pk, len(report["finalized"]), len(report["disbanded"]),
        )
        return report
