"""
Declarative base and shared mixins for all models.
"""

from datetime import date, datetime, timezone

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Monetary columns; four places keep fee fractions of two-decimal prices exact
MONEY = Numeric(18, 4)


def enum_values(enum_cls) -> list:
    """Persist enums by value rather than member name."""
    return [member.value for member in enum_cls]


def utc_now() -> datetime:
    """Naive UTC timestamp; the store keeps wall-clock values without tz info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class Base(DeclarativeBase):
    """Declarative base holding the shared metadata."""


class BaseModel(Base):
    """Abstract base for all tables."""

    __abstract__ = True


class TimestampMixin:
    """Adds created/updated timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        index=True,
        comment="Creation time (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        comment="Last update time (UTC)"
    )
