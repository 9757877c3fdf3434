"""Core SQLAlchemy models (2.x style) for the missions catalog schema.

Rockets and missions are independent aggregates linked by a nullable
foreign key: removing a rocket leaves its missions in place with
``rocket_id`` set to NULL.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored and returned as UTC.

    Naive values are taken to be UTC already. SQLite drops tzinfo on the way
    out, so it is reattached on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return to_utc(value)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return to_utc(value)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Rocket(Base):
    """Launch vehicles table."""
    __tablename__ = "rockets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Back-reference only; missions outlive their rocket.
    missions: Mapped[list[Mission]] = relationship(
        "Mission",
        back_populates="rocket",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"Rocket(id={self.id!r}, name={self.name!r}, is_active={self.is_active!r})"


class Mission(Base):
    """Launch attempts table."""
    __tablename__ = "missions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    location: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    launch_datetime: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    mission_name: Mapped[str] = mapped_column(String(200), nullable=False)
    mission_status: Mapped[str | None] = mapped_column(String(50))
    price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), default=None)
    rocket_id: Mapped[int | None] = mapped_column(
        ForeignKey("rockets.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationship
    rocket: Mapped[Rocket | None] = relationship("Rocket", back_populates="missions")

    __table_args__ = (
        Index("ix_missions_launch_datetime", "launch_datetime"),
    )


class User(Base):
    """API users allowed to modify the catalog."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    password_hash: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    password_salt: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


# Rocket names are unique regardless of case.
Index("uq_rockets_name_lower", func.lower(Rocket.name), unique=True)
