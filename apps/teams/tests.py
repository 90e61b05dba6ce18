"""
Tests for teams: creation, membership, invitations, authorization gate,
stats and top contributors.
"""
from datetime import timedelta
from unittest import mock
from uuid import uuid4

import fakeredis
from django.test import TestCase
from django.utils import timezone

from apps.core.errors import (
    ClientError,
    ConflictError,
    InsufficientRoleError,
    NotAMemberError,
    NotFoundError,
)
from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User
from apps.tasks.models import Task, TaskStatus
from .authorization import AuthorizationGate
from .dtos import TeamMemberDTO
from .models import Team, TeamMember, TeamRole
from . import services


def make_user(name=None):
    name = name or f"user_{uuid4().hex[:8]}"
    return User.objects.create(username=name, email=f"{name}@test.com", full_name=name.title())


def make_team(owner, name="Core Team"):
    return services.create_team(owner.id, name, "test team")


def add_member(team_id, user, role=TeamRole.MEMBER):
    return TeamMember.objects.create(team_id=team_id, user=user, role=role)


class CreateTeamTest(TestCase):

    def test_creator_becomes_owner(self):
        owner = make_user("owner")
        team = make_team(owner)

        self.assertEqual(team.owner_id, owner.id)
        member = services.get_member(team.id, owner.id)
        self.assertEqual(member.role, TeamRole.OWNER)

    def test_name_required(self):
        owner = make_user("owner")
        with self.assertRaises(ClientError):
            services.create_team(owner.id, "   ")
        self.assertEqual(Team.objects.count(), 0)

    def test_list_teams_only_returns_memberships(self):
        alice, bob = make_user("alice"), make_user("bob")
        mine = make_team(alice, "Mine")
        make_team(bob, "Theirs")

        teams = services.list_teams_for_user(alice.id)
        self.assertEqual([t.id for t in teams], [mine.id])


class GetTeamTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.team = make_team(self.owner)

    def test_member_can_read(self):
        self.assertEqual(services.get_team(self.owner.id, self.team.id).name, "Core Team")

    def test_non_member_rejected(self):
        with self.assertRaises(NotAMemberError):
            services.get_team(make_user("stranger").id, self.team.id)


class InviteTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.team = make_team(self.owner)
        self.invitee = make_user("invitee")

    def test_owner_invites_member(self):
        member = services.invite_user(self.owner.id, self.team.id, self.invitee.email)
        self.assertEqual(member.role, TeamRole.MEMBER)
        self.assertEqual(member.user_id, self.invitee.id)

    def test_admin_role_when_requested(self):
        member = services.invite_user(self.owner.id, self.team.id, self.invitee.email, "admin")
        self.assertEqual(member.role, TeamRole.ADMIN)

    def test_admin_can_invite(self):
        admin = make_user("admin")
        add_member(self.team.id, admin, TeamRole.ADMIN)
        services.invite_user(admin.id, self.team.id, self.invitee.email)
        self.assertIsNotNone(services.get_member(self.team.id, self.invitee.id))

    def test_plain_member_cannot_invite(self):
        member = make_user("member")
        add_member(self.team.id, member)
        with self.assertRaises(InsufficientRoleError):
            services.invite_user(member.id, self.team.id, self.invitee.email)
        self.assertIsNone(services.get_member(self.team.id, self.invitee.id))

    def test_non_member_cannot_invite(self):
        with self.assertRaises(NotAMemberError):
            services.invite_user(make_user("stranger").id, self.team.id, self.invitee.email)

    def test_unknown_email(self):
        with self.assertRaises(NotFoundError):
            services.invite_user(self.owner.id, self.team.id, "ghost@test.com")

    def test_email_required(self):
        with self.assertRaises(ClientError):
            services.invite_user(self.owner.id, self.team.id, "")

    def test_owner_role_cannot_be_granted(self):
        with self.assertRaises(ClientError):
            services.invite_user(self.owner.id, self.team.id, self.invitee.email, "owner")

    def test_duplicate_membership_conflicts(self):
        services.invite_user(self.owner.id, self.team.id, self.invitee.email)
        with self.assertRaises(ConflictError):
            services.invite_user(self.owner.id, self.team.id, self.invitee.email)
        self.assertEqual(TeamMember.objects.filter(team_id=self.team.id).count(), 2)


class AuthorizationGateTest(TestCase):

    def test_membership_is_checked_on_every_call(self):
        owner, user = make_user("owner"), make_user("user")
        team = make_team(owner)
        gate = AuthorizationGate()

        with self.assertRaises(NotAMemberError):
            gate.require_member(team.id, user.id)

        row = add_member(team.id, user)
        self.assertEqual(gate.require_member(team.id, user.id).role, TeamRole.MEMBER)

        row.delete()
        with self.assertRaises(NotAMemberError):
            gate.require_member(team.id, user.id)

    def test_require_role(self):
        gate = AuthorizationGate(member_lookup=lambda team_id, user_id: TeamMemberDTO(
            team_id=team_id, user_id=user_id, role=TeamRole.MEMBER,
        ))
        with self.assertRaises(InsufficientRoleError):
            gate.require_role(uuid4(), uuid4(), (TeamRole.OWNER, TeamRole.ADMIN))
        self.assertEqual(gate.require_role(uuid4(), uuid4(), (TeamRole.MEMBER,)).role, TeamRole.MEMBER)

    def test_anonymous_is_never_a_member(self):
        owner = make_user("owner")
        team = make_team(owner)
        with self.assertRaises(NotAMemberError):
            AuthorizationGate().require_member(team.id, None)


class StatsTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.member = make_user("member")
        self.team = make_team(self.owner, "Alpha")
        add_member(self.team.id, self.member)

    def _task(self, creator, status=TaskStatus.TODO, **kwargs):
        return Task.objects.create(
            title="t", team_id=self.team.id, creator=creator, status=status, **kwargs
        )

    def test_member_count_and_recent_done(self):
        self._task(self.owner, TaskStatus.DONE)
        self._task(self.owner, TaskStatus.DONE)
        self._task(self.member, TaskStatus.IN_PROGRESS)
        stale = self._task(self.member, TaskStatus.DONE)
        Task.objects.filter(id=stale.id).update(updated_at=timezone.now() - timedelta(days=8))

        stats = services.get_team_stats(self.member.id)

        self.assertEqual(len(stats), 1)
        self.assertEqual(stats[0].name, "Alpha")
        self.assertEqual(stats[0].member_count, 2)
        self.assertEqual(stats[0].done_last_7d, 2)

    def test_stats_cover_only_my_teams(self):
        make_team(make_user("other"), "Other")
        self.assertEqual([s.name for s in services.get_team_stats(self.owner.id)], ["Alpha"])

    def test_top_contributors_ranked(self):
        third = make_user("third")
        fourth = make_user("fourth")
        add_member(self.team.id, third)
        add_member(self.team.id, fourth)
        for _ in range(3):
            self._task(self.member)
        for _ in range(2):
            self._task(self.owner)
        self._task(third)
        old = self._task(fourth)
        self._task(fourth)
        Task.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=31))

        top = services.get_top_contributors(self.owner.id, self.team.id)

        self.assertEqual(len(top), 3)
        self.assertEqual([c.user_id for c in top[:2]], [self.member.id, self.owner.id])
        self.assertEqual([c.tasks_created for c in top], [3, 2, 1])
        self.assertEqual([c.rank for c in top], [1, 2, 3])
        self.assertEqual(top[0].team_name, "Alpha")

    def test_top_contributors_requires_membership(self):
        with self.assertRaises(NotAMemberError):
            services.get_top_contributors(make_user("stranger").id, self.team.id)


class TeamsAPITest(TestCase):

    def setUp(self):
        redis_client = fakeredis.FakeRedis()
        redis_client.flushall()
        patcher = mock.patch("apps.core.redis_client._client", redis_client)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.owner = make_user("owner")
        self.auth = {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(self.owner.id)}"}

    def test_create_and_invite_over_http(self):
        response = self.client.post(
            '/api/teams/', data={"name": "HTTP Team"}, content_type='application/json', **self.auth
        )
        self.assertEqual(response.status_code, 201)
        team_id = response.json()['id']

        invitee = make_user("invitee")
        response = self.client.post(
            f'/api/teams/{team_id}/invite',
            data={"email": invitee.email, "role": "admin"},
            content_type='application/json',
            **self.auth,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(services.get_member(team_id, invitee.id).role, TeamRole.ADMIN)

        response = self.client.post(
            f'/api/teams/{team_id}/invite',
            data={"email": invitee.email},
            content_type='application/json',
            **self.auth,
        )
        self.assertEqual(response.status_code, 409)

    def test_non_member_gets_403(self):
        team = make_team(make_user("other"))
        response = self.client.get(f'/api/teams/{team.id}', **self.auth)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"detail": "user is not a member of this team"})
