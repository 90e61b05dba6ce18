"""
Core app - Shared infrastructure for all other apps.

- Error taxonomy (errors)
- Unit of work over the ORM (transactions)
- Redis client, sliding-window rate limiter and its middleware
- Background job execution (job_service + backends)
"""
