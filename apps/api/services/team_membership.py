"""
Team Membership Manager

Teams are created the first time someone joins them. Team names are trimmed
before every lookup or mutation and matched with the database's own string
equality (no case folding).

Membership changes are idempotent: joining twice leaves one row, leaving a
team you were never on is a no-op.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import insert_ignore
from core.exceptions import StoreFailure, TeamNotFoundError
from core.logging import log_event
from models import Team, User, UserTeam

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamRef:
    id: int
    name: str


def _find_team_id(db: Session, team_name: str) -> Optional[int]:
    return db.execute(
        select(Team.id).where(Team.name == team_name).limit(1)
    ).scalar_one_or_none()


def resolve_or_create_team(db: Session, team_name: str, create_if_missing: bool) -> int:
    """
    Return the id of the named team.

    Raises:
        TeamNotFoundError: the team does not exist and create_if_missing is False
        StoreFailure: a lookup or the insert failed
    """
    team_name = team_name.strip()
    try:
        team_id = _find_team_id(db, team_name)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure("SELECT id FROM team WHERE name=? LIMIT 1", (team_name,)) from e

    if team_id is not None:
        return team_id
    if not create_if_missing:
        raise TeamNotFoundError(team_name)

    try:
        created = insert_ignore(db, Team.__table__, {"name": team_name}, index_elements=["name"])
        db.commit()
        team_id = _find_team_id(db, team_name)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure("INSERT INTO team (name) VALUES (?)", (team_name,)) from e

    if created:
        log_event(logger, "team_created", team=team_name)
    return team_id


def is_member(db: Session, team_name: str, user_id: int) -> bool:
    """True if the user is on the named team. Lookup failures count as False."""
    team_name = team_name.strip()
    team_id = select(Team.id).where(Team.name == team_name).scalar_subquery()
    stmt = (
        select(func.count())
        .select_from(UserTeam)
        .where(UserTeam.team_id == team_id, UserTeam.user_id == user_id)
    )
    try:
        count = db.execute(stmt).scalar() or 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"unable to check for team membership of user {user_id} in {team_name!r}: {e}")
        return False
    return count > 0


def add_membership(db: Session, team_name: str, user_id: int) -> None:
    """
    Put the user on the team, creating the team if needed.

    Calling this again for the same pair has no further effect.

    Raises:
        StoreFailure: the team or the membership could not be written
    """
    team_name = team_name.strip()
    team_id = resolve_or_create_team(db, team_name, create_if_missing=True)

    if is_member(db, team_name, user_id):
        return

    try:
        added = insert_ignore(
            db,
            UserTeam.__table__,
            {"user_id": user_id, "team_id": team_id},
            index_elements=["user_id", "team_id"],
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure("INSERT INTO user_team (user_id, team_id) VALUES (?,?)", (user_id, team_id)) from e

    if added:
        log_event(logger, "membership_added", team=team_name, user_id=user_id)


def remove_membership(db: Session, team_name: str, user_id: int) -> None:
    """
    Take the user off the team.

    Never creates the team. Removing a membership that does not exist is
    not an error.

    Raises:
        TeamNotFoundError: the team has never been created
        StoreFailure: the delete failed
    """
    team_name = team_name.strip()
    team_id = resolve_or_create_team(db, team_name, create_if_missing=False)

    try:
        result = db.execute(
            delete(UserTeam).where(UserTeam.user_id == user_id, UserTeam.team_id == team_id)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure("DELETE FROM user_team WHERE user_id=? AND team_id=?", (user_id, team_id)) from e

    if result.rowcount:
        log_event(logger, "membership_removed", team=team_name, user_id=user_id)


def get_user_teams(db: Session, email: str) -> List[str]:
    """Names of the teams the user is on; empty when the lookup fails."""
    stmt = (
        select(Team.name)
        .join(UserTeam, UserTeam.team_id == Team.id)
        .join(User, User.id == UserTeam.user_id)
        .where(User.email == email)
        .order_by(Team.name)
    )
    try:
        return list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"unable to query for user teams of {email!r}: {e}")
        return []


def get_teams(db: Session) -> List[TeamRef]:
    """Every team; empty when the lookup fails."""
    try:
        rows = db.execute(select(Team.id, Team.name).order_by(Team.id)).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"unable to query teams: {e}")
        return []
    return [TeamRef(id=team_id, name=name) for team_id, name in rows]
