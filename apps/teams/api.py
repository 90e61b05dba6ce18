from typing import List
from uuid import UUID
from django.http import HttpRequest
from ninja import Router

from apps.identity.api import require_auth
from .dtos import (
    CreateTeamRequest,
    InviteRequest,
    MessageResponse,
    TeamDTO,
    TeamStatsDTO,
    TopContributorDTO,
)
from . import services

router = Router(tags=["Teams"])


@router.post("/", response={201: TeamDTO}, auth=None)
def create_team(request: HttpRequest, payload: CreateTeamRequest):
    """Create a team; the caller becomes its owner."""
    user = require_auth(request)
    return 201, services.create_team(user.id, payload.name, payload.description)


@router.get("/", response=List[TeamDTO], auth=None)
def list_teams(request: HttpRequest):
    user = require_auth(request)
    return services.list_teams_for_user(user.id)


@router.get("/stats", response=List[TeamStatsDTO], auth=None)
def team_stats(request: HttpRequest):
    user = require_auth(request)
    return services.get_team_stats(user.id)


@router.get("/{team_id}", response=TeamDTO, auth=None)
def get_team(request: HttpRequest, team_id: UUID):
    user = require_auth(request)
    return services.get_team(user.id, team_id)


@router.post("/{team_id}/invite", response=MessageResponse, auth=None)
def invite(request: HttpRequest, team_id: UUID, payload: InviteRequest):
    """Add an existing user to the team. Owners and admins only."""
    user = require_auth(request)
    services.invite_user(user.id, team_id, payload.email, payload.role)
    return {"message": "user invited successfully"}


@router.get("/{team_id}/top-contributors", response=List[TopContributorDTO], auth=None)
def top_contributors(request: HttpRequest, team_id: UUID):
    user = require_auth(request)
    return services.get_top_contributors(user.id, team_id)
