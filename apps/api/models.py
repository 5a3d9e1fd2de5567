from sqlalchemy import Column, Integer, CheckConstraint, DateTime, ForeignKey, Text, String, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from core.database import Base
from datetime import datetime


# Name of the office row new users are attached to until they pick one.
UNASSIGNED_OFFICE = ""


class Office(Base):
    __tablename__ = "office"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # "" is the reserved "unassigned" office
    name = Column(String(255), nullable=False, unique=True)
    head_count = Column(Integer, nullable=False, default=0)
    # Hours to add to a server-clock timestamp to get the office's local day
    day_offset_hours = Column(Integer, nullable=False, default=0)

    users = relationship("User", back_populates="office")

    def __repr__(self) -> str:
        return f"<Office {self.name!r} head_count={self.head_count}>"


class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Stored exactly as submitted
    email = Column(String(255), nullable=False, unique=True)
    office_id = Column("office", Integer, ForeignKey("office.id"), nullable=True)

    office = relationship("Office", back_populates="users")
    reps = relationship("Rep", back_populates="user")
    teams = relationship("Team", secondary="user_team", back_populates="members")

    def __repr__(self) -> str:
        return f"<User {self.email!r}>"


class Team(Base):
    __tablename__ = "team"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)

    members = relationship("User", secondary="user_team", back_populates="teams")

    def __repr__(self) -> str:
        return f"<Team {self.name!r}>"


class UserTeam(Base):
    """Membership join row; existence is the only state."""
    __tablename__ = "user_team"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("team.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_user_team_user_id_team_id"),
        Index("ix_user_team_team_id", "team_id"),
    )


class Rep(Base):
    """One submitted set of an exercise. Append-only."""
    __tablename__ = "reps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    exercise = Column(Text, nullable=False)
    count = Column(Integer, nullable=False)
    # Server-local wall clock, no tz
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    user = relationship("User", back_populates="reps")

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_reps_count_non_negative"),
        Index("ix_reps_user_id_created_at", "user_id", "created_at"),
    )
