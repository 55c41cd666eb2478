"""Two-phase writes.

The caller computes a tentative snapshot locally, then hands it to ``persist``
together with the snapshot it replaces. If the store rejects the write the
session is rolled back and the caller gets the prior snapshot back to restore.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("dental_clinic.writes")

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[T]):
    prior: T
    reason: str
    conflict: bool = False


Outcome = Union[Ok[T], Err[T]]


def persist(
    db: Session,
    *,
    prior: T,
    tentative: T,
    write: Callable[[Session, T], None],
    label: str = "write",
) -> Outcome[T]:
    try:
        write(db, tentative)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("%s rejected by a constraint: %s", label, exc.orig)
        return Err(prior, "The record conflicts with an existing one.", conflict=True)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("%s failed: %s", label, exc)
        return Err(prior, "The change could not be saved.")
    return Ok(tentative)
