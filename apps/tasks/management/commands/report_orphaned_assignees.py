from django.core.management.base import BaseCommand

from apps.tasks.services import get_task_service


class Command(BaseCommand):
    help = 'Lists tasks whose assignee is no longer a member of the task team.'

    def handle(self, *args, **options):
        orphans = get_task_service().get_orphaned_assignees()
        for o in orphans:
            self.stdout.write(
                f"{o.task_id}  {o.task_title}  (team {o.team_id})  -> {o.assignee_name} ({o.assignee_id})"
            )

        if orphans:
            self.stdout.write(self.style.WARNING(f'{len(orphans)} task(s) with orphaned assignees.'))
        else:
            self.stdout.write(self.style.SUCCESS('No orphaned assignees.'))
