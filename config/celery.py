"""
Celery configuration for Task Nexus.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'report-orphaned-assignees': {
        'task': 'apps.tasks.tasks.report_orphaned_assignees',
        'schedule': crontab(hour='3', minute='0'),  # Daily at 03:00 UTC
    },
}
