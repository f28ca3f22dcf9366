"""SQLAlchemy ORM models for the PersonaBook database."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from personabook.core.timezone import utc_now


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ============================================================================
# User State Table
# ============================================================================


class UserStateRecord(Base):
    """Per-user conversational state, written as a whole row (last write wins).

    The structured fields are JSON blobs whose serialized size is capped by the
    state access layer before they reach this table.
    """

    __tablename__ = "user_states"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    persona_id: Mapped[str] = mapped_column(String(255), default="")
    session: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


# ============================================================================
# Booking Table
# ============================================================================


class BookingRecord(Base):
    """One reservation attempt.

    The partial unique index on (persona_id, scheduled_start) is what keeps two
    users from holding the same persona at the same time. Rows without a
    schedule and cancelled rows are outside the index.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, index=True)
    persona_id: Mapped[str] = mapped_column(String(255))
    duration_minutes: Mapped[int] = mapped_column(Integer)
    total_price: Mapped[float] = mapped_column(Float)
    invoice_token: Mapped[str] = mapped_column(String(128), unique=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_message_ref: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        Index(
            "uq_bookings_persona_slot",
            "persona_id",
            "scheduled_start",
            unique=True,
            sqlite_where=text("scheduled_start IS NOT NULL AND cancelled_at IS NULL"),
            postgresql_where=text("scheduled_start IS NOT NULL AND cancelled_at IS NULL"),
        ),
        Index("ix_bookings_user_persona_paid", "user_id", "persona_id", "is_paid"),
    )


# ============================================================================
# Catalog Tables
# ============================================================================


class PersonaPrice(Base):
    """Live per-minute price for a persona, overriding the static catalog."""

    __tablename__ = "persona_prices"

    persona_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    price_per_minute: Mapped[float] = mapped_column(Float)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class TimeSlotRecord(Base):
    """Bookable session length, managed outside the bot."""

    __tablename__ = "time_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    duration_minutes: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text, default="")
    price_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
