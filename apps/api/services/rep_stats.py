"""
Stats Calculator

Summary statistics for offices and teams over a reporting window:
- head count and total reps
- percent of the head count participating
- reps per person / per participant, overall and per day

All ratios use integer floor division ("whole reps"). Zero head counts and
zero participation are replaced by 1 in denominators so an empty office or
team reports degenerate numbers instead of failing.

For teams, everyone on the team counts as participating.

Submissions are counted against the same window filter the day series use,
so APPLY_OFFSET_TO_WINDOWS moves stats and series together.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models import Office, Rep, User, UserTeam
from services.day_buckets import ReportWindow
from services.identity import OfficeCatalog
from services.rep_aggregation import window_condition
from services.team_membership import get_teams

logger = logging.getLogger(__name__)


@dataclass
class Stats:
    head_count: int
    total_reps: int
    participating: int
    percent_participating: int
    reps_per_person: int
    reps_per_person_participating: int
    reps_per_person_per_day: int
    reps_per_person_participating_per_day: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_stats(head_count: int, total_reps: int, participating: int, window_days: int) -> Stats:
    """
    Derive the summary metrics.

    Args:
        head_count: People in the office or team
        total_reps: Reps submitted in the window
        participating: People with at least one submission in the window
        window_days: Days in the window; values below 1 are treated as 1
    """
    window_days = max(1, window_days)
    head_denominator = head_count if head_count > 0 else 1
    participating_denominator = participating if participating > 0 else 1

    return Stats(
        head_count=head_denominator,
        total_reps=total_reps,
        participating=participating,
        percent_participating=participating * 100 // head_denominator,
        reps_per_person=total_reps // head_denominator,
        reps_per_person_participating=total_reps // participating_denominator,
        reps_per_person_per_day=total_reps // head_denominator // window_days,
        reps_per_person_participating_per_day=total_reps // participating_denominator // window_days,
    )


def _window_filter(catalog: OfficeCatalog, window: ReportWindow, apply_offset: Optional[bool]):
    if apply_offset is None:
        apply_offset = settings.APPLY_OFFSET_TO_WINDOWS
    return window_condition(catalog, window, apply_offset)


def _office_stats(db: Session, office_name: str, window_filter, window: ReportWindow) -> Optional[Stats]:
    row = db.execute(
        select(Office.head_count).where(Office.name == office_name)
    ).first()
    if row is None:
        return None
    head_count = row[0] or 0

    in_office = (
        select(Rep.user_id, Rep.count.label("reps"))
        .join(User, User.id == Rep.user_id)
        .join(Office, Office.id == User.office_id)
        .where(Office.name == office_name, window_filter)
        .subquery()
    )
    participating, total = db.execute(
        select(
            func.count(func.distinct(in_office.c.user_id)),
            func.coalesce(func.sum(in_office.c.reps), 0),
        )
    ).one()

    return calculate_stats(head_count, int(total), int(participating), window.days)


def _team_stats(db: Session, team_id: int, window_filter, window: ReportWindow) -> Stats:
    head_count = db.execute(
        select(func.count()).select_from(UserTeam).where(UserTeam.team_id == team_id)
    ).scalar() or 0

    members = select(UserTeam.user_id).where(UserTeam.team_id == team_id)
    total = db.execute(
        select(func.coalesce(func.sum(Rep.count), 0))
        .select_from(Rep)
        .join(User, User.id == Rep.user_id)
        .outerjoin(Office, Office.id == User.office_id)
        .where(Rep.user_id.in_(members), window_filter)
    ).scalar() or 0

    # Team membership is participation
    return calculate_stats(head_count, int(total), head_count, window.days)


def office_stats(
    db: Session,
    catalog: OfficeCatalog,
    window: ReportWindow,
    apply_offset: Optional[bool] = None,
) -> Dict[str, Stats]:
    """
    Stats for every catalog office, keyed by office name.

    Offices with no office row, or whose queries fail, are left out.
    """
    window_filter = _window_filter(catalog, window, apply_offset)
    result: Dict[str, Stats] = {}
    for office_name in catalog.names:
        try:
            stats = _office_stats(db, office_name, window_filter, window)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"unable to compute office stats for {office_name!r}: {e}")
            continue
        if stats is not None:
            result[office_name] = stats
    return result


def team_stats(
    db: Session,
    catalog: OfficeCatalog,
    window: ReportWindow,
    apply_offset: Optional[bool] = None,
) -> Dict[str, Stats]:
    """Stats for every team, keyed by team name. Teams whose queries fail are left out."""
    window_filter = _window_filter(catalog, window, apply_offset)
    result: Dict[str, Stats] = {}
    for team in get_teams(db):
        try:
            result[team.name] = _team_stats(db, team.id, window_filter, window)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"unable to compute team stats for {team.name!r}: {e}")
    return result
