"""
HTTP-level tests for the tasks endpoints, the health check and the
orphaned-assignee management command.
"""
from io import StringIO
from unittest import mock

import fakeredis
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase, override_settings

from apps.identity.jwt_auth import create_access_token
from apps.tasks.models import Task, TaskHistory
from apps.teams.models import TeamMember
from .factories import add_member, make_task, make_team, make_user


@override_settings(JOB_BACKEND='local')
class TasksAPITest(TestCase):

    def setUp(self):
        redis_client = fakeredis.FakeRedis()
        redis_client.flushall()
        patcher = mock.patch("apps.core.redis_client._client", redis_client)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.owner = make_user("owner")
        self.member = make_user("member")
        self.outsider = make_user("outsider")
        self.team = make_team(self.owner)
        add_member(self.team.id, self.member)

    def auth(self, user):
        return {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(user.id)}"}

    def post(self, url, data, user):
        return self.client.post(url, data=data, content_type='application/json', **self.auth(user))

    def put(self, url, data, user):
        return self.client.put(url, data=data, content_type='application/json', **self.auth(user))

    def test_requires_authentication(self):
        response = self.client.get('/api/tasks/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"detail": "authentication required"})

        response = self.client.get('/api/tasks/', HTTP_AUTHORIZATION="Bearer not-a-token")
        self.assertEqual(response.status_code, 401)

    def test_create_list_update_history(self):
        response = self.post('/api/tasks/', {
            "title": "Ship it",
            "team_id": str(self.team.id),
            "assignee_id": str(self.member.id),
            "due_date": "2025-06-30",
        }, self.owner)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual((body['status'], body['priority']), ("todo", "medium"))
        self.assertEqual(body['due_date'], "2025-06-30")
        task_id = body['id']

        response = self.client.get(f'/api/tasks/?team_id={self.team.id}', **self.auth(self.member))
        self.assertEqual(response.status_code, 200)
        listing = response.json()
        self.assertEqual(listing['total'], 1)
        self.assertEqual((listing['page'], listing['page_size'], listing['total_pages']), (1, 20, 1))

        response = self.put(f'/api/tasks/{task_id}', {"status": "review", "assignee_id": None}, self.member)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], "review")
        self.assertIsNone(response.json()['assignee_id'])

        response = self.client.get(f'/api/tasks/{task_id}/history', **self.auth(self.owner))
        self.assertEqual(response.status_code, 200)
        entries = {e['field']: e['new_value'] for e in response.json()}
        self.assertEqual(entries, {"status": "review", "assignee_id": "unassigned"})

        # The update invalidated the cached page.
        response = self.client.get(f'/api/tasks/?team_id={self.team.id}', **self.auth(self.member))
        self.assertEqual(response.json()['tasks'][0]['status'], "review")

    def test_validation_errors_are_400(self):
        response = self.post('/api/tasks/', {"title": "", "team_id": str(self.team.id)}, self.owner)
        self.assertEqual(response.status_code, 400)

        response = self.post(
            '/api/tasks/', {"title": "x", "team_id": str(self.team.id), "due_date": "30-06-2025"}, self.owner
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"detail": "invalid due_date format, use YYYY-MM-DD"})

    def test_non_member_is_403(self):
        task = make_task(self.team.id, self.owner)

        response = self.put(f'/api/tasks/{task.id}', {"title": "mine now"}, self.outsider)
        self.assertEqual(response.status_code, 403)
        response = self.client.get(f'/api/tasks/?team_id={self.team.id}', **self.auth(self.outsider))
        self.assertEqual(response.status_code, 403)
        response = self.client.get(f'/api/tasks/{task.id}/history', **self.auth(self.outsider))
        self.assertEqual(response.status_code, 403)

        self.assertEqual(Task.objects.get(id=task.id).title, task.title)
        self.assertEqual(TaskHistory.objects.count(), 0)

    def test_unknown_task_is_404(self):
        response = self.put(f'/api/tasks/{self.team.id}', {"title": "x"}, self.owner)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"detail": "task not found"})

    def test_comments(self):
        task = make_task(self.team.id, self.owner)

        response = self.post(f'/api/tasks/{task.id}/comments', {"content": "On it"}, self.member)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['content'], "On it")

        response = self.post(f'/api/tasks/{task.id}/comments', {"content": " "}, self.member)
        self.assertEqual(response.status_code, 400)

        response = self.client.get(f'/api/tasks/{task.id}/comments', **self.auth(self.owner))
        self.assertEqual([c['content'] for c in response.json()], ["On it"])

        response = self.client.get(f'/api/tasks/{task.id}/comments', **self.auth(self.outsider))
        self.assertEqual(response.status_code, 403)

    def test_orphaned_assignees(self):
        task = make_task(self.team.id, self.owner, title="Left behind", assignee=self.member)
        TeamMember.objects.filter(team_id=self.team.id, user=self.member).delete()

        response = self.client.get('/api/tasks/orphaned-assignees', **self.auth(self.outsider))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{
            "task_id": str(task.id),
            "task_title": "Left behind",
            "team_id": str(self.team.id),
            "assignee_id": str(self.member.id),
            "assignee_name": "Member",
        }])

    def test_internal_errors_hide_details(self):
        with mock.patch("apps.tasks.services.Task.objects.create") as create:
            create.side_effect = OperationalError("connection to 10.0.0.5 refused")
            response = self.post('/api/tasks/', {"title": "x", "team_id": str(self.team.id)}, self.owner)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "internal server error"})

    def test_health(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "database": "ok", "redis": "ok"})


class ReportOrphanedAssigneesCommandTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.team = make_team(self.owner)

    def test_reports_nothing(self):
        out = StringIO()
        call_command('report_orphaned_assignees', stdout=out)
        self.assertIn("No orphaned assignees", out.getvalue())

    def test_lists_orphans(self):
        leaver = make_user("leaver")
        task = make_task(self.team.id, self.owner, title="Abandoned", assignee=leaver)

        out = StringIO()
        call_command('report_orphaned_assignees', stdout=out)

        output = out.getvalue()
        self.assertIn(str(task.id), output)
        self.assertIn("Leaver", output)
        self.assertIn("1 task(s) with orphaned assignees", output)
