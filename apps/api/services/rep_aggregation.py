"""
Aggregation Engine

Folds raw rep submissions into day series for a user, an office or a team.

Read failures never reach the caller: they are logged and the caller gets
an empty series instead.

Day assignment:
- today-only path: submissions are shifted by the submitter's office offset
- window path: submissions land on their stored date, unless
  APPLY_OFFSET_TO_WINDOWS is set
"""

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Dict, List, Optional
import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models import Office, Rep, Team, User, UserTeam
from services.day_buckets import DayBucket, ReportWindow, build_day_skeleton, local_day_offset
from services.identity import OfficeCatalog
from services.team_membership import get_teams

logger = logging.getLogger(__name__)


class SubjectKind(str, Enum):
    USER = "user"
    OFFICE = "office"
    TEAM = "team"


def _subject_condition(kind: SubjectKind, identifier: str):
    if kind == SubjectKind.USER:
        return User.email == identifier
    if kind == SubjectKind.OFFICE:
        return Office.name == identifier
    if kind == SubjectKind.TEAM:
        members = (
            select(UserTeam.user_id)
            .join(Team, Team.id == UserTeam.team_id)
            .where(Team.name == identifier.strip())
        )
        return Rep.user_id.in_(members)
    raise ValueError(f"unknown subject kind: {kind!r}")


def window_condition(catalog: OfficeCatalog, window: ReportWindow, apply_offset: bool):
    """
    SQL filter keeping submissions whose (optionally offset-shifted) time is
    inside the window.

    With offsets, each office gets the window bounds moved back by its own
    offset; users outside the catalog keep the raw bounds. Needs Office in
    the FROM clause.
    """
    if not apply_offset:
        return and_(Rep.created_at >= window.lower_bound, Rep.created_at < window.upper_bound)

    by_offset: Dict[int, List[str]] = {}
    for office in catalog.offices:
        by_offset.setdefault(office.day_offset_hours, []).append(office.name)

    clauses = []
    for hours, names in by_offset.items():
        shift = timedelta(hours=hours)
        clauses.append(and_(
            Office.name.in_(names),
            Rep.created_at >= window.lower_bound - shift,
            Rep.created_at < window.upper_bound - shift,
        ))
    uncataloged = Office.name.is_(None)
    if catalog.names:
        uncataloged = or_(uncataloged, ~Office.name.in_(catalog.names))
    clauses.append(and_(
        uncataloged,
        Rep.created_at >= window.lower_bound,
        Rep.created_at < window.upper_bound,
    ))
    return or_(*clauses)


def _rep_rows():
    return (
        select(Rep.exercise, Rep.count, Rep.created_at, Office.name)
        .join(User, User.id == Rep.user_id)
        .outerjoin(Office, Office.id == User.office_id)
    )


def clock_label(ts: datetime) -> str:
    """12-hour clock label such as ``3:04PM``."""
    return ts.strftime("%I:%M%p").lstrip("0")


def reps_for_subject(
    db: Session,
    catalog: OfficeCatalog,
    kind: SubjectKind,
    identifier: str,
    window: ReportWindow,
    apply_offset: Optional[bool] = None,
) -> List[DayBucket]:
    """
    Day series of per-exercise totals for one subject over the window.

    Every day in the window gets a bucket, oldest first. Submissions that
    fall outside the window after any offset are dropped.

    Args:
        db: Database session
        catalog: Office catalog, used for per-office day offsets
        kind: user (identifier is an email), office (office name) or team (team name)
        identifier: Subject identifier
        window: Inclusive date window
        apply_offset: Shift submissions by their office offset before bucketing;
            defaults to settings.APPLY_OFFSET_TO_WINDOWS

    Returns:
        List of DayBucket; empty if the query failed
    """
    if apply_offset is None:
        apply_offset = settings.APPLY_OFFSET_TO_WINDOWS

    stmt = _rep_rows().where(
        _subject_condition(kind, identifier),
        window_condition(catalog, window, apply_offset),
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"unable to query for {kind.value} reps of {identifier!r}: {e}",
            extra={"extra_fields": {"subject_kind": kind.value, "subject": identifier}},
        )
        return []

    buckets = build_day_skeleton(window.start, window.end)
    by_day = {b.day: b for b in buckets}
    for exercise, count, created_at, office_name in rows:
        if apply_offset:
            created_at = created_at + local_day_offset(catalog, office_name)
        bucket = by_day.get(created_at.date())
        if bucket is None:
            continue
        bucket.add(exercise, count)
    return buckets


def todays_reps(
    db: Session,
    catalog: OfficeCatalog,
    email: str,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[DayBucket]:
    """
    The user's latest submissions of the current (server-local) day.

    At most ``limit`` (default settings.TODAYS_REPS_LIMIT) submissions, one
    bucket each, labeled with the submitter's local clock time and ordered
    earliest first.
    """
    now = now or datetime.now()
    if limit is None:
        limit = settings.TODAYS_REPS_LIMIT
    midnight = datetime.combine(now.date(), time.min)

    stmt = (
        _rep_rows()
        .where(User.email == email, Rep.created_at >= midnight)
        .order_by(Rep.created_at.desc(), Rep.id.desc())
        .limit(limit)
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"unable to get today's reps for {email!r}: {e}")
        return []

    latest_first = [
        DayBucket(
            label=clock_label(created_at + local_day_offset(catalog, office_name)),
            exercise_counts={exercise: count},
        )
        for exercise, count, created_at, office_name in rows
    ]
    latest_first.reverse()
    return latest_first


def office_reps(db: Session, catalog: OfficeCatalog, window: ReportWindow) -> Dict[str, List[DayBucket]]:
    """Day series for every catalog office, keyed by office name."""
    return {
        name: reps_for_subject(db, catalog, SubjectKind.OFFICE, name, window)
        for name in catalog.names
    }


def team_reps(db: Session, catalog: OfficeCatalog, window: ReportWindow) -> Dict[str, List[DayBucket]]:
    """Day series for every team, keyed by team name."""
    return {
        team.name: reps_for_subject(db, catalog, SubjectKind.TEAM, team.name, window)
        for team in get_teams(db)
    }
