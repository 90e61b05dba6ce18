from datetime import timedelta
from django.utils import timezone
from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model
from apps.teams.models import Team, TeamMember, TeamRole
from apps.tasks.dtos import CreateTaskRequest, UpdateTaskRequest
from apps.tasks.models import Task, TaskPriority, TaskStatus
from apps.tasks.services import get_task_service

User = get_user_model()

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    # email, full name, role in the demo team
    ("owner@example.com", "Olivia Owner", TeamRole.OWNER),
    ("admin@example.com", "Adam Admin", TeamRole.ADMIN),
    ("member@example.com", "Mia Member", TeamRole.MEMBER),
    ("member2@example.com", "Noah Member", TeamRole.MEMBER),
]

DEMO_TASKS = [
    # title, priority, assignee email, days until due, final status
    ("Set up CI pipeline", TaskPriority.HIGH, "admin@example.com", 3, TaskStatus.DONE),
    ("Write onboarding guide", TaskPriority.MEDIUM, "member@example.com", 10, TaskStatus.IN_PROGRESS),
    ("Review API error codes", TaskPriority.LOW, "member2@example.com", None, TaskStatus.REVIEW),
    ("Plan Q3 roadmap", TaskPriority.HIGH, None, 21, TaskStatus.TODO),
    ("Fix flaky login test", TaskPriority.MEDIUM, "admin@example.com", 1, TaskStatus.TODO),
]


class Command(BaseCommand):
    help = 'Seeds the database with sample users, a team and tasks.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            action='store_true',
            help='Seed users only',
        )
        parser.add_argument(
            '--teams',
            action='store_true',
            help='Seed the demo team and memberships only',
        )

    def handle(self, *args, **options):
        seed_all = not any([options['users'], options['teams']])

        users = self._seed_users()

        if seed_all or options['teams']:
            team = self._seed_team(users)
            if seed_all:
                self._seed_tasks(team, users)

        self.stdout.write(self.style.SUCCESS('Seeding completed successfully.'))

    def _seed_users(self):
        self.stdout.write('Seeding Users...')
        users = {}
        for email, full_name, _ in DEMO_USERS:
            user = User.objects.filter(email=email).first()
            if user is None:
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=DEMO_PASSWORD,
                    full_name=full_name,
                )
                self.stdout.write(f' - Created {email} ({DEMO_PASSWORD})')
            users[email] = user
        return users

    def _seed_team(self, users):
        self.stdout.write('Seeding Team...')
        owner_email = DEMO_USERS[0][0]
        team, created = Team.objects.get_or_create(
            name="Platform Team",
            defaults={
                'description': 'Demo team created by the seed command',
                'owner': users[owner_email],
            }
        )
        if created:
            self.stdout.write(f'Created Team: {team.name}')
        else:
            self.stdout.write(f'Using existing Team: {team.name}')

        for email, _, role in DEMO_USERS:
            TeamMember.objects.get_or_create(team=team, user=users[email], defaults={'role': role})
        return team

    def _seed_tasks(self, team, users):
        self.stdout.write('Seeding Tasks...')
        if Task.objects.filter(team=team).exists():
            self.stdout.write(self.style.WARNING(' - Skipped: team already has tasks'))
            return

        service = get_task_service()
        owner = users[DEMO_USERS[0][0]]
        today = timezone.now().date()

        for title, priority, assignee_email, due_in, final_status in DEMO_TASKS:
            task = service.create(owner.id, CreateTaskRequest(
                title=title,
                priority=priority.value,
                team_id=team.id,
                assignee_id=users[assignee_email].id if assignee_email else None,
                due_date=(today + timedelta(days=due_in)).isoformat() if due_in else None,
            ))
            if final_status != TaskStatus.TODO:
                service.update(owner.id, task.id, UpdateTaskRequest(status=final_status.value))
            self.stdout.write(f' - {title} [{final_status}]')
