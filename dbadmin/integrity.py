from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from adapters.db.base import DbSession
from adapters.metrics.base import Metrics

log = logging.getLogger(__name__)

DISABLE_FK_CHECKS = "SET FOREIGN_KEY_CHECKS = 0"
ENABLE_FK_CHECKS = "SET FOREIGN_KEY_CHECKS = 1"


@contextmanager
def foreign_key_checks_suspended(
    session: DbSession,
    *,
    operation: str = "mutation",
    metrics: Optional[Metrics] = None,
) -> Iterator[None]:
    """
    Turn FOREIGN_KEY_CHECKS off for the wrapped block and back on afterwards.

    The flag is session-scoped on the borrowed connection. It is restored on
    every exit path; if restoring itself fails the connection is invalidated
    so it never goes back to the pool with checks disabled.
    """
    session.execute(DISABLE_FK_CHECKS)
    if metrics is not None:
        metrics.inc_integrity_bypass(operation=operation)
    log.warning("Foreign key checks suspended", extra={"operation": operation})
    failed = False
    try:
        yield
    except BaseException:
        failed = True
        raise
    finally:
        try:
            session.execute(ENABLE_FK_CHECKS)
        except Exception:
            log.exception(
                "Failed to restore foreign key checks; discarding connection",
                extra={"operation": operation},
            )
            session.invalidate()
            # The statement's own error wins over the restore failure.
            if not failed:
                raise
        else:
            log.debug("Foreign key checks restored", extra={"operation": operation})
