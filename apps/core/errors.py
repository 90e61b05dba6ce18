"""
Application error taxonomy.

Services raise these; the API layer turns them into HTTP responses using
``status_code``. Only InternalError carries an underlying ``cause``.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from django.db import DatabaseError, IntegrityError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ClientError(AppError):
    """Invalid input. Reported, never retried."""
    status_code = 400
    default_message = "bad request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "unauthorized"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "forbidden"


class NotAMemberError(AuthorizationError):
    default_message = "user is not a member of this team"


class InsufficientRoleError(AuthorizationError):
    default_message = "insufficient role for this action"


class NotFoundError(AppError):
    status_code = 404
    default_message = "resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "resource already exists"


class RateLimitedError(AppError):
    status_code = 429
    default_message = "rate limit exceeded"


class InternalError(AppError):
    """Store, transaction, or decoding failure, wrapped with operation context."""
    status_code = 500

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"{operation}: {cause}" if cause is not None else operation
        super().__init__(message)


class CacheDecodeError(InternalError):
    pass


class TransactionRollbackError(InternalError):
    """
    Rolling back after a failed unit of work also failed.

    Both the error raised by the work (``original``) and the error raised by
    the rollback (``rollback_error``) stay available to the caller.
    """

    def __init__(self, original: BaseException, rollback_error: BaseException):
        self.original = original
        self.rollback_error = rollback_error
        super().__init__(
            f"rollback failed: {rollback_error}, original error: {original}",
            cause=original,
        )


def translate_database_error(exc: DatabaseError, operation: str) -> AppError:
    """Map a Django database error to ConflictError or InternalError."""
    if isinstance(exc, IntegrityError):
        return ConflictError(f"{operation}: resource already exists")
    return InternalError(operation, exc)


@contextmanager
def store_errors(operation: str):
    """
    Wrap persistent-store calls so database failures surface as AppErrors.

    Usage:
        with store_errors("get task"):
            task = Task.objects.get(id=task_id)
    """
    try:
        yield
    except DatabaseError as exc:
        logger.error(f"[STORE] {operation} failed: {exc}")
        raise translate_database_error(exc, operation) from exc
