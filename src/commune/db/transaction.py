"""Transactional boundary shared by every membership operation."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commune.errors import ConflictError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(
    db: Session,
    *,
    conflict_message: str = "The request conflicts with a concurrent change",
) -> Iterator[Session]:
    """Run the enclosed block as one atomic unit of work.

    The block's pending changes are flushed and committed on success. Any
    exception rolls the session back before propagating. Unique and check
    constraint violations raised by the storage layer surface as
    ``ConflictError`` so callers only ever see domain errors.

    Args:
        db: Session the block operates on.
        conflict_message: Message used when a constraint violation is translated.
    """
    try:
        yield db
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Constraint violation translated to conflict: %s", exc.orig)
        raise ConflictError(conflict_message) from exc
    except Exception:
        db.rollback()
        raise
