"""
Submission dispatch.

The email intake hands over an already-parsed (email, command, payload)
triple; this module resolves the submitter and applies the command.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple, Union
import logging

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import StoreFailure
from core.logging import log_event
from models import Rep
from services.identity import OfficeCatalog, OfficeResolution, resolve_or_create_user, set_user_office
from services.team_membership import add_membership, remove_membership

logger = logging.getLogger(__name__)

RepCounts = Union[Mapping[str, int], Iterable[Tuple[str, int]]]


class SubmissionCommand(str, Enum):
    LOG_REPS = "log-reps"
    ADD_TEAM = "add-team"
    REMOVE_TEAM = "remove-team"
    SET_OFFICE = "set-office"


def log_reps(db: Session, email: str, counts: RepCounts, now: Optional[datetime] = None) -> int:
    """
    Record one rep event per (exercise, count) pair for the user.

    Returns:
        Number of events written

    Raises:
        ValueError: a count is negative
        StoreFailure: the user or the events could not be written
    """
    pairs = list(counts.items()) if isinstance(counts, Mapping) else list(counts)
    for exercise, count in pairs:
        if count < 0:
            raise ValueError(f"rep count for {exercise!r} must be >= 0, got {count}")
    if not pairs:
        return 0

    user_id = resolve_or_create_user(db, email)
    created_at = now or datetime.now()
    rows = [
        {"user_id": user_id, "exercise": exercise, "count": count, "created_at": created_at}
        for exercise, count in pairs
    ]
    try:
        db.execute(insert(Rep), rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure(
            "INSERT INTO reps (user_id, exercise, count, created_at) VALUES "
            + ",".join(["(?,?,?,?)"] * len(rows)),
            [value for row in rows for value in (user_id, row["exercise"], row["count"], created_at)],
        ) from e

    log_event(logger, "reps_logged", email=email, counts=dict(pairs))
    return len(rows)


def handle_submission(
    db: Session,
    catalog: OfficeCatalog,
    email: str,
    command: Union[SubmissionCommand, str],
    payload,
    now: Optional[datetime] = None,
) -> Union[int, OfficeResolution, None]:
    """
    Apply one parsed submission.

    Payload by command:
    - log-reps: exercise -> count mapping, or (exercise, count) pairs
    - add-team / remove-team: team name
    - set-office: office name

    Raises:
        ValueError: unknown command or invalid rep counts
        TeamNotFoundError: remove-team for a team that was never created
        StoreFailure: a write failed
    """
    command = SubmissionCommand(command)

    if command == SubmissionCommand.LOG_REPS:
        return log_reps(db, email, payload, now=now)

    if command == SubmissionCommand.SET_OFFICE:
        return set_user_office(db, catalog, email, payload)

    user_id = resolve_or_create_user(db, email)
    if command == SubmissionCommand.ADD_TEAM:
        add_membership(db, payload, user_id)
    else:
        remove_membership(db, payload, user_id)
    return None
