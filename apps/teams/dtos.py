"""DTOs for Teams app."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from ninja import Schema


@dataclass(frozen=True)
class TeamDTO:
    id: UUID
    name: str
    description: str
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TeamMemberDTO:
    team_id: UUID
    user_id: UUID
    role: str


@dataclass(frozen=True)
class TeamStatsDTO:
    id: UUID
    name: str
    member_count: int
    done_last_7d: int


@dataclass(frozen=True)
class TopContributorDTO:
    user_id: UUID
    full_name: str
    team_id: UUID
    team_name: str
    tasks_created: int
    rank: int


class CreateTeamRequest(Schema):
    name: str = ""
    description: str = ""


class InviteRequest(Schema):
    email: str = ""
    role: str = ""


class MessageResponse(Schema):
    message: str
