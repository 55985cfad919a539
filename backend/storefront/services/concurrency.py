# Overview: Row locking and optimistic-lock conflict translation for order writes.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    Commit everything written inside the block as one DB transaction.

    Any exception rolls the whole block back. Optimistic-lock conflicts
    (version_id mismatch) surface as ConflictError.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConflictError("Record was modified by another request; reload and retry")
    except Exception:
        db.session.rollback()
        raise
