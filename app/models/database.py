"""
Database Models

SQLAlchemy ORM models for the scheduling engine: weekly availability,
blocked times, bookings with optional recurrence, customers and human
handover state. All identifiers are opaque strings.
"""

import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time,
    Enum as SQLEnum, text
)
from sqlalchemy.dialects.postgresql import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Frequency(str, Enum):
    """Recurrence frequency enumeration."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class WeeklyAvailability(Base, TimestampMixin):
    """
    Opening hours for one weekday.

    A client may have several ranges per weekday (split shifts).
    Weekday 0 = Sunday ... 6 = Saturday.
    """

    __tablename__ = "weekly_availability"
    __table_args__ = (
        Index("idx_availability_client_weekday", "client_id", "weekday"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)


class BlockedTime(Base, TimestampMixin):
    """Blocked range on a date. Null start/end blocks the whole day."""

    __tablename__ = "blocked_times"
    __table_args__ = (
        Index("idx_blocked_client_date", "client_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class RecurrenceRule(Base, TimestampMixin):
    """
    Recurrence definition for a booking series.

    by_weekday / by_monthday are comma-separated lists ("1,3").
    """

    __tablename__ = "recurrence_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    frequency: Mapped[Frequency] = mapped_column(SQLEnum(Frequency), nullable=False)
    interval: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    by_weekday: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    by_monthday: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    occurrences: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        back_populates="recurrence_rule"
    )


class Booking(Base, TimestampMixin):
    """
    Booking model.

    start/end describe the first instance when recurrence_rule is set.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_booking_client_start", "client_id", "start"),
        Index("idx_booking_status", "client_id", "status"),
        Index("idx_booking_conversation", "conversation_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus),
        default=BookingStatus.CONFIRMED
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    conversation_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    booked_via: Mapped[str] = mapped_column(String(50), default="scheduling_engine")
    recurrence_rule_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("recurrence_rules.id", ondelete="SET NULL"),
        nullable=True
    )

    # Relationships
    recurrence_rule: Mapped[Optional["RecurrenceRule"]] = relationship(
        "RecurrenceRule",
        back_populates="bookings",
        lazy="selectin"
    )


class Customer(Base, TimestampMixin):
    """Customer known to a client, keyed by phone number."""

    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customer_client_phone", "client_id", "phone", unique=True),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_vip: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class HandoverState(Base, TimestampMixin):
    """Human handover state, one row per conversation."""

    __tablename__ = "handover_states"
    __table_args__ = (
        Index("idx_handover_client_active", "client_id", "active"),
    )

    conversation_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    urgency_score: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    triggers: Mapped[list] = mapped_column(JSON, default=list)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
