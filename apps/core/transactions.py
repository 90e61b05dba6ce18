"""
TransactionManager - unit of work over the Django ORM.

Usage:
    from apps.core.transactions import TransactionManager

    def work():
        task.save()
        TaskHistory.objects.create(...)

    TransactionManager().run_in_transaction(work)

ORM calls made inside ``work`` use the connection Django keeps for the
current thread, so they join the open transaction without the handle
being passed around. Outside ``run_in_transaction`` the same calls run in
autocommit mode.

Outcomes:
- ``work`` returns      -> commit; a failed commit raises InternalError
- ``work`` raises       -> rollback, then the same exception propagates
                           (database errors translated to AppErrors)
- rollback also fails   -> TransactionRollbackError carrying both errors

When called inside an existing atomic block (nested service calls, or
Django's TestCase) the work runs in a savepoint of the outer transaction.
"""
import logging
from typing import Callable, Optional, TypeVar

from django.db import DatabaseError, transaction

from .errors import InternalError, TransactionRollbackError, translate_database_error

logger = logging.getLogger(__name__)

T = TypeVar('T')


class TransactionManager:

    def __init__(self, using: Optional[str] = None):
        self.using = using

    def run_in_transaction(self, work: Callable[[], T]) -> T:
        connection = transaction.get_connection(self.using)
        if connection.in_atomic_block:
            return self._run_in_savepoint(work)

        try:
            transaction.set_autocommit(False, using=self.using)
        except DatabaseError as exc:
            raise InternalError("begin transaction", exc) from exc

        try:
            try:
                result = work()
            except BaseException as exc:
                # BaseException: a worker timeout must not leave the
                # transaction half-applied either.
                self._rollback(exc)
                if isinstance(exc, DatabaseError):
                    raise translate_database_error(exc, "transaction work") from exc
                raise
            self._commit()
            return result
        finally:
            self._restore_autocommit()

    def _run_in_savepoint(self, work: Callable[[], T]) -> T:
        try:
            with transaction.atomic(using=self.using):
                return work()
        except DatabaseError as exc:
            raise translate_database_error(exc, "transaction work") from exc

    def _rollback(self, original: BaseException) -> None:
        try:
            transaction.rollback(using=self.using)
        except DatabaseError as rollback_error:
            logger.error(f"[TX] Rollback failed after {original!r}: {rollback_error}")
            raise TransactionRollbackError(original, rollback_error) from rollback_error

    def _commit(self) -> None:
        try:
            transaction.commit(using=self.using)
        except DatabaseError as exc:
            logger.error(f"[TX] Commit failed: {exc}")
            try:
                transaction.rollback(using=self.using)
            except DatabaseError as rollback_error:
                logger.error(f"[TX] Rollback after failed commit also failed: {rollback_error}")
            raise InternalError("commit transaction", exc) from exc

    def _restore_autocommit(self) -> None:
        try:
            transaction.set_autocommit(True, using=self.using)
        except DatabaseError as exc:
            # The connection is in an unknown state; drop it so the next
            # request starts from a fresh one.
            logger.error(f"[TX] Could not restore autocommit, closing connection: {exc}")
            transaction.get_connection(self.using).close()


def run_in_transaction(work: Callable[[], T], using: Optional[str] = None) -> T:
    """Shortcut for ``TransactionManager(using).run_in_transaction(work)``."""
    return TransactionManager(using).run_in_transaction(work)
