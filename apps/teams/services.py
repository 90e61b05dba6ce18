"""Services for Teams app."""
import logging
from datetime import timedelta
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.core.errors import ClientError, ConflictError, NotFoundError, store_errors
from apps.core.transactions import TransactionManager
from apps.identity.services import get_user_by_email
from .authorization import AuthorizationGate
from .dtos import TeamDTO, TeamMemberDTO, TeamStatsDTO, TopContributorDTO
from .models import Team, TeamMember, TeamRole

logger = logging.getLogger(__name__)

STATS_DONE_WINDOW = timedelta(days=7)
CONTRIBUTOR_WINDOW = timedelta(days=30)
TOP_CONTRIBUTOR_LIMIT = 3


def to_team_dto(team: Team) -> TeamDTO:
    return TeamDTO(
        id=team.id,
        name=team.name,
        description=team.description,
        owner_id=team.owner_id,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


def get_member(team_id, user_id) -> Optional[TeamMemberDTO]:
    """Membership row for (team, user), or None when the user is not a member."""
    if not team_id or not user_id:
        return None
    with store_errors("get team member"):
        member = TeamMember.objects.filter(team_id=team_id, user_id=user_id).first()
    if member is None:
        return None
    return TeamMemberDTO(team_id=member.team_id, user_id=member.user_id, role=member.role)


def create_team(user_id, name: str, description: str = "") -> TeamDTO:
    """Create a team owned by ``user_id``. Team and owner membership commit together."""
    name = (name or "").strip()
    if not name:
        raise ClientError("team name is required")

    def work():
        team = Team.objects.create(name=name, description=description or "", owner_id=user_id)
        TeamMember.objects.create(team=team, user_id=user_id, role=TeamRole.OWNER)
        return team

    team = TransactionManager().run_in_transaction(work)
    logger.info(f"Team {team.id} created by {user_id}")
    return to_team_dto(Team.objects.get(id=team.id))


def get_team(user_id, team_id) -> TeamDTO:
    AuthorizationGate().require_member(team_id, user_id)
    try:
        return to_team_dto(Team.objects.get(id=team_id))
    except Team.DoesNotExist:
        raise NotFoundError("team not found")


def list_teams_for_user(user_id) -> List[TeamDTO]:
    with store_errors("list teams"):
        teams = Team.objects.filter(members__user_id=user_id).order_by('-created_at')
        return [to_team_dto(t) for t in teams]


def invite_user(inviter_id, team_id, email: str, role: str = "") -> TeamMemberDTO:
    """
    Add an existing user to a team.

    Only owners and admins may invite. ``role`` may be "admin" or "member"
    (empty means member); owners are only ever created with the team.
    """
    email = (email or "").strip()
    if not email:
        raise ClientError("email is required")

    AuthorizationGate().require_role(team_id, inviter_id, (TeamRole.OWNER, TeamRole.ADMIN))

    invitee = get_user_by_email(email)
    if invitee is None:
        raise NotFoundError("user with this email not found")

    role = (role or TeamRole.MEMBER).lower()
    if role not in (TeamRole.ADMIN, TeamRole.MEMBER):
        raise ClientError("role must be admin or member")

    try:
        with transaction.atomic():
            member = TeamMember.objects.create(team_id=team_id, user=invitee, role=role)
    except IntegrityError as e:
        raise ConflictError("user is already a member of this team") from e

    logger.info(f"User {invitee.id} joined team {team_id} as {role} (invited by {inviter_id})")
    return TeamMemberDTO(team_id=member.team_id, user_id=member.user_id, role=member.role)


def get_team_stats(user_id) -> List[TeamStatsDTO]:
    """Per team the user belongs to: member count and tasks done in the last 7 days."""
    since = timezone.now() - STATS_DONE_WINDOW
    with store_errors("get team stats"):
        my_team_ids = TeamMember.objects.filter(user_id=user_id).values('team_id')
        teams = (
            Team.objects.filter(id__in=my_team_ids)
            .annotate(
                member_count=Count('members', distinct=True),
                done_last_7d=Count(
                    'tasks',
                    filter=Q(tasks__status='done', tasks__updated_at__gte=since),
                    distinct=True,
                ),
            )
            .order_by('name')
        )
        return [
            TeamStatsDTO(
                id=t.id,
                name=t.name,
                member_count=t.member_count,
                done_last_7d=t.done_last_7d,
            )
            for t in teams
        ]


def get_top_contributors(user_id, team_id) -> List[TopContributorDTO]:
    """Top three members by tasks created in the team over the last 30 days."""
    AuthorizationGate().require_member(team_id, user_id)

    since = timezone.now() - CONTRIBUTOR_WINDOW
    with store_errors("get top contributors"):
        members = (
            TeamMember.objects.filter(team_id=team_id)
            .select_related('user', 'team')
            .annotate(
                tasks_created=Count(
                    'user__created_tasks',
                    filter=Q(
                        user__created_tasks__team_id=team_id,
                        user__created_tasks__created_at__gte=since,
                    ),
                )
            )
            .order_by('-tasks_created', 'user__full_name')[:TOP_CONTRIBUTOR_LIMIT]
        )
        return [
            TopContributorDTO(
                user_id=m.user_id,
                full_name=m.user.full_name,
                team_id=m.team_id,
                team_name=m.team.name,
                tasks_created=m.tasks_created,
                rank=rank,
            )
            for rank, m in enumerate(members, start=1)
        ]
