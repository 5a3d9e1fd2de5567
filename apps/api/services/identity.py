"""
Identity Resolver

Resolves the identities reports are scoped to:
- Users, looked up by exact email and created on first sight
- Offices, normalized case-insensitively against a catalog loaded once

The office catalog is an immutable snapshot built at startup and handed to
whatever needs it; it is never refreshed mid-run.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import insert_ignore
from core.exceptions import StoreFailure
from core.logging import log_event
from models import Office, User, UNASSIGNED_OFFICE

logger = logging.getLogger(__name__)

# Returned when an office name matches nothing in the catalog
UNKNOWN_OFFICE = "Unknown"


@dataclass(frozen=True)
class OfficeEntry:
    name: str
    day_offset_hours: int = 0


@dataclass(frozen=True)
class OfficeResolution:
    """
    Result of normalizing an office name.

    ``degraded`` is True when the input matched nothing and ``name`` is the
    "Unknown" fallback, so callers can tell it apart from an office that is
    really called "Unknown".
    """
    name: str
    degraded: bool = False


@dataclass(frozen=True)
class OfficeCatalog:
    """Read-only snapshot of the known (non-empty) office names."""
    offices: Tuple[OfficeEntry, ...] = ()

    @property
    def names(self) -> List[str]:
        return [office.name for office in self.offices]

    def normalize(self, value: str) -> OfficeResolution:
        wanted = (value or "").strip().lower()
        for office in self.offices:
            if office.name.lower() == wanted:
                return OfficeResolution(name=office.name)
        logger.error(
            f"unable to determine office; attempting to set office to {value!r}",
            extra={"extra_fields": {"office_input": value}},
        )
        return OfficeResolution(name=UNKNOWN_OFFICE, degraded=True)

    def day_offset(self, office_name: Optional[str]) -> timedelta:
        """Clock offset for an office; offices not in the catalog get zero."""
        for office in self.offices:
            if office.name == office_name:
                return timedelta(hours=office.day_offset_hours)
        return timedelta(0)


def load_office_catalog(db: Session) -> OfficeCatalog:
    """
    Load every office name in one query.

    The "" sentinel office is left out. Meant to be called once before
    request handling starts.

    Raises:
        StoreFailure: the office query failed
    """
    stmt = select(Office.name, Office.day_offset_hours).order_by(Office.id)
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as e:
        raise StoreFailure("SELECT name, day_offset_hours FROM office") from e

    entries = tuple(
        OfficeEntry(name=name, day_offset_hours=offset or 0)
        for name, offset in rows
        if name != UNASSIGNED_OFFICE
    )
    logger.info(f"Loaded office catalog: {[e.name for e in entries]}")
    return OfficeCatalog(offices=entries)


def normalize_office_name(catalog: OfficeCatalog, value: str) -> OfficeResolution:
    """Trim and case-fold ``value`` and return the catalog's spelling of it."""
    return catalog.normalize(value)


def _find_user_id(db: Session, email: str) -> Optional[int]:
    return db.execute(
        select(User.id).where(User.email == email).limit(1)
    ).scalar_one_or_none()


def resolve_or_create_user(db: Session, email: str) -> int:
    """
    Return the id of the user with this exact email, creating it if needed.

    New users are attached to the unassigned ("") office.

    Raises:
        StoreFailure: a lookup or the insert failed
    """
    try:
        user_id = _find_user_id(db, email)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure("SELECT id FROM user WHERE email=? LIMIT 1", (email,)) from e
    if user_id is not None:
        return user_id

    unassigned = select(Office.id).where(Office.name == UNASSIGNED_OFFICE).scalar_subquery()
    try:
        created = insert_ignore(
            db,
            User.__table__,
            {"email": email, "office": unassigned},
            index_elements=["email"],
        )
        db.commit()
        user_id = _find_user_id(db, email)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure(
            'INSERT INTO user (email, office) VALUES (?, (SELECT id FROM office WHERE name=""))',
            (email,),
        ) from e

    if created:
        log_event(logger, "new_user", email=email)
    return user_id


def get_user_office(db: Session, email: str) -> str:
    """
    Display name of the user's office.

    Returns "" for unknown users, users still in the unassigned office,
    and when the lookup fails.
    """
    stmt = (
        select(Office.name)
        .join(User, User.office_id == Office.id)
        .where(User.email == email)
    )
    try:
        name = db.execute(stmt).scalar_one_or_none()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"unable to query for office name of {email!r}: {e}")
        return ""
    return name or ""


def set_user_office(db: Session, catalog: OfficeCatalog, email: str, office: str) -> OfficeResolution:
    """
    Move a user to the catalog office matching ``office``.

    A degraded (unmatched) resolution is returned without touching the user.

    Raises:
        StoreFailure: the user could not be resolved or updated
    """
    resolution = catalog.normalize(office)
    if resolution.degraded:
        return resolution

    user_id = resolve_or_create_user(db, email)
    office_id = select(Office.id).where(Office.name == resolution.name).scalar_subquery()
    try:
        db.execute(
            User.__table__.update()
            .where(User.__table__.c.id == user_id)
            .values(office=office_id)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreFailure(
            "UPDATE user SET office=(SELECT id FROM office WHERE name=?) WHERE id=?",
            (resolution.name, user_id),
        ) from e

    log_event(logger, "office_set", email=email, office=resolution.name)
    return resolution

