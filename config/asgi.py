"""
ASGI config for Task Nexus.

Runs under Uvicorn/Daphne, or on AWS Lambda through Mangum.
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Initialize Django at import time so Lambda pays the cost on container
# startup rather than on the first request.
from django.core.asgi import get_asgi_application

application = get_asgi_application()


def get_lambda_handler():
    """Returns a Mangum-wrapped handler for AWS Lambda."""
    from mangum import Mangum
    return Mangum(application, lifespan="off")
