"""
Lambda Job Backend - Async execution via AWS SQS + Lambda.

Jobs are sent to SQS; lambda_handlers.sqs_job_handler consumes them.

Usage:
    Set JOB_BACKEND=lambda in your .env file.

Environment Variables:
    TASK_QUEUE_URL: SQS queue URL for job messages
    AWS_REGION: AWS region (default: ap-southeast-1)
"""

import os
import json
import uuid
import logging
from typing import Any, Dict
from apps.core.job_service import JobServiceInterface

logger = logging.getLogger(__name__)

SQS_MAX_DELAY_SECONDS = 900


class LambdaJobService(JobServiceInterface):
    """Execute jobs via AWS SQS + Lambda."""

    def __init__(self):
        self._sqs_client = None
        self._queue_url = os.getenv('TASK_QUEUE_URL')

        if not self._queue_url:
            logger.warning(
                "[LAMBDA] TASK_QUEUE_URL not set. "
                "Lambda backend will fail on send_job."
            )

    @property
    def sqs_client(self):
        """Lazy initialization of SQS client."""
        if self._sqs_client is None:
            import boto3
            self._sqs_client = boto3.client(
                'sqs',
                region_name=os.getenv('AWS_REGION', 'ap-southeast-1')
            )
        return self._sqs_client

    def send_job(
        self,
        job_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue job via SQS."""
        job_id = str(uuid.uuid4())

        if not self._queue_url:
            raise RuntimeError(
                "TASK_QUEUE_URL environment variable not set. "
                "Cannot send jobs to Lambda backend."
            )

        message_body = json.dumps({
            "job_id": job_id,
            "job_name": job_name,
            "payload": payload,
        })

        logger.info(f"[LAMBDA] Sending job {job_name} to SQS (id={job_id})")

        response = self.sqs_client.send_message(
            QueueUrl=self._queue_url,
            MessageBody=message_body,
            DelaySeconds=min(delay_seconds, SQS_MAX_DELAY_SECONDS),
            MessageAttributes={
                'JobName': {
                    'DataType': 'String',
                    'StringValue': job_name,
                },
            },
        )

        logger.info(
            f"[LAMBDA] Job {job_name} queued. "
            f"SQS MessageId: {response['MessageId']}"
        )

        return job_id
