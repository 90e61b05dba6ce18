"""Shared builders for the tasks test modules."""
from uuid import uuid4

import fakeredis

from apps.identity.models import User
from apps.teams import services as team_services
from apps.teams.models import TeamMember, TeamRole
from apps.tasks.cache import TaskCache
from apps.tasks.models import Task


def make_user(name=None):
    name = name or f"user_{uuid4().hex[:8]}"
    return User.objects.create(username=name, email=f"{name}@test.com", full_name=name.title())


def make_team(owner, name="Core Team"):
    return team_services.create_team(owner.id, name)


def add_member(team_id, user, role=TeamRole.MEMBER):
    return TeamMember.objects.create(team_id=team_id, user=user, role=role)


def make_task(team_id, creator, **kwargs):
    kwargs.setdefault('title', f"task {uuid4().hex[:6]}")
    return Task.objects.create(team_id=team_id, creator=creator, **kwargs)


def fake_cache():
    client = fakeredis.FakeRedis()
    client.flushall()
    return TaskCache(client=client, ttl_seconds=300)
