"""
Lambda Handlers - Entry points for AWS Lambda functions.

This module provides Lambda handlers for:
1. SQS Job Processing - Consumes messages sent by the lambda job backend
2. Django API (via Mangum) - HTTP requests through API Gateway
3. Scheduled Events - EventBridge triggers

The handlers use Django's setup to access models and services.
"""

import os
import json
import logging

# Configure Django before importing any models
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

import django
django.setup()

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def sqs_job_handler(event, context):
    """
    AWS Lambda handler for SQS job messages.

    Processes messages from the job queue and dispatches
    to the handler registered for the job name.

    Event structure:
    {
        "Records": [
            {
                "body": "{\"job_id\": \"...\", \"job_name\": \"...\", \"payload\": {...}}"
            }
        ]
    }
    """
    from apps.core.backends.local_backend import JOB_HANDLERS

    processed = 0
    failed = 0

    for record in event.get('Records', []):
        try:
            message = json.loads(record['body'])
            job_id = message.get('job_id', 'unknown')
            job_name = message['job_name']
            payload = message.get('payload', {})

            logger.info(f"Processing job {job_name} (id={job_id})")

            handler = JOB_HANDLERS.get(job_name)
            if handler:
                result = handler(**payload)
                logger.info(f"Job {job_name} completed: {result}")
                processed += 1
            else:
                logger.error(f"No handler for job: {job_name}")
                failed += 1

        except Exception as e:
            logger.exception(f"Failed to process message: {e}")
            # Re-raise so SQS retries the batch and eventually moves it to the DLQ
            raise

    return {
        'statusCode': 200,
        'body': json.dumps({
            'processed': processed,
            'failed': failed
        })
    }


def scheduled_report_orphaned_assignees(event, context):
    """
    EventBridge scheduled handler: Report tasks with orphaned assignees.

    Schedule: Daily at 03:00 UTC
    """
    from apps.tasks import services

    logger.info("Running scheduled report_orphaned_assignees")
    count = services.report_orphaned_assignees()

    return {
        'statusCode': 200,
        'body': json.dumps({
            'orphaned_count': count
        })
    }


# =============================================================================
# Django API Handler (Mangum)
# =============================================================================

_asgi_handler = None


def api_handler(event, context):
    """
    AWS Lambda handler for HTTP requests via API Gateway.

    Uses Mangum to wrap Django's ASGI application.
    """
    global _asgi_handler

    if _asgi_handler is None:
        from config.asgi import get_lambda_handler
        _asgi_handler = get_lambda_handler()

    return _asgi_handler(event, context)
