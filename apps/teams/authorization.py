"""
Team-scoped authorization.

Checks are evaluated against the membership table on every call and never
cached: a removed member loses access on their next request.
"""
import logging
from typing import Callable, Iterable, Optional
from uuid import UUID

from apps.core.errors import InsufficientRoleError, NotAMemberError
from .dtos import TeamMemberDTO
from .models import TeamRole

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = (TeamRole.OWNER, TeamRole.ADMIN)


class AuthorizationGate:

    def __init__(self, member_lookup: Optional[Callable[[UUID, UUID], Optional[TeamMemberDTO]]] = None):
        if member_lookup is None:
            from .services import get_member
            member_lookup = get_member
        self.member_lookup = member_lookup

    def require_member(self, team_id, user_id) -> TeamMemberDTO:
        member = self.member_lookup(team_id, user_id)
        if member is None:
            logger.info(f"User {user_id} denied: not a member of team {team_id}")
            raise NotAMemberError()
        return member

    def require_role(self, team_id, user_id, roles: Iterable[str] = PRIVILEGED_ROLES) -> TeamMemberDTO:
        member = self.require_member(team_id, user_id)
        if member.role not in {str(r) for r in roles}:
            logger.info(f"User {user_id} denied: role {member.role} in team {team_id}")
            raise InsufficientRoleError()
        return member
