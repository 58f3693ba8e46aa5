"""SQLAlchemy implementation of SchedulingStore."""

import logging
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.database import get_db_context
from app.models.database import (
    BlockedTime,
    Booking,
    BookingStatus,
    Customer,
    HandoverState,
    RecurrenceRule as RecurrenceRuleRow,
    WeeklyAvailability,
)
from .recurrence import RecurrenceFrequency, RecurrenceRule
from .store import (
    AvailabilityRange,
    BlockedRange,
    BookingRecord,
    HandoverRecord,
    SchedulingStore,
    StoreError,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _rule_from_row(row: RecurrenceRuleRow) -> RecurrenceRule:
    return RecurrenceRule(
        frequency=RecurrenceFrequency(row.frequency.value),
        interval=row.interval,
        by_weekday=RecurrenceRule.parse_day_list(row.by_weekday),
        by_monthday=RecurrenceRule.parse_day_list(row.by_monthday),
        end_date=row.end_date,
        occurrences=row.occurrences,
        id=row.id,
    )


def _booking_from_row(row: Booking) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        client_id=row.client_id,
        start=row.start,
        end=row.end,
        status=row.status.value,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        conversation_id=row.conversation_id,
        recurrence_rule=_rule_from_row(row.recurrence_rule) if row.recurrence_rule else None,
    )


def _handover_from_row(row: HandoverState) -> HandoverRecord:
    return HandoverRecord(
        conversation_id=row.conversation_id,
        client_id=row.client_id,
        active=row.active,
        reason=row.reason,
        urgency_score=row.urgency_score,
        triggers=list(row.triggers or []),
        customer_phone=row.customer_phone,
        customer_name=row.customer_name,
        started_at=row.started_at,
        ended_at=row.ended_at,
        last_notified_at=row.last_notified_at,
    )


class SqlSchedulingStore(SchedulingStore):
    """
    Relational store backed by the async SQLAlchemy session factory.

    Every SQLAlchemy failure is re-raised as StoreError.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        """Initialize store.

        Args:
            session_factory: Async context manager yielding a session (for testing)
        """
        self._session = session_factory or get_db_context

    async def get_availability(self, client_id: str, weekday: int) -> list[AvailabilityRange]:
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(WeeklyAvailability)
                    .where(
                        WeeklyAvailability.client_id == client_id,
                        WeeklyAvailability.weekday == weekday,
                    )
                    .order_by(WeeklyAvailability.start_time)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load availability for client {client_id}: {e}")
            raise StoreError("availability query failed") from e

        return [AvailabilityRange(r.weekday, r.start_time, r.end_time) for r in rows]

    async def get_blocked_times(self, client_id: str, day: date) -> list[BlockedRange]:
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(BlockedTime).where(
                        BlockedTime.client_id == client_id,
                        BlockedTime.date == day,
                    )
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load blocked times for client {client_id}: {e}")
            raise StoreError("blocked time query failed") from e

        return [BlockedRange(r.date, r.start_time, r.end_time, r.reason) for r in rows]

    async def list_bookings(
        self,
        client_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BookingRecord]:
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(Booking)
                    .where(
                        Booking.client_id == client_id,
                        Booking.status != BookingStatus.CANCELLED,
                        or_(
                            and_(Booking.start < end, Booking.end > start),
                            and_(
                                Booking.recurrence_rule_id.is_not(None),
                                Booking.start < end,
                            ),
                        ),
                    )
                    .order_by(Booking.start)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load bookings for client {client_id}: {e}")
            raise StoreError("booking query failed") from e

        return [_booking_from_row(r) for r in rows]

    async def create_booking(
        self,
        client_id: str,
        start: datetime,
        end: datetime,
        customer_phone: Optional[str] = None,
        customer_name: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> BookingRecord:
        booking = Booking(
            client_id=client_id,
            start=start,
            end=end,
            status=BookingStatus.CONFIRMED,
            customer_phone=customer_phone,
            customer_name=customer_name,
            conversation_id=conversation_id,
        )
        try:
            async with self._session() as db:
                db.add(booking)
                await db.flush()
                record = BookingRecord(
                    id=booking.id,
                    client_id=client_id,
                    start=start,
                    end=end,
                    status=BookingStatus.CONFIRMED.value,
                    customer_name=customer_name,
                    customer_phone=customer_phone,
                    conversation_id=conversation_id,
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to create booking for client {client_id}: {e}")
            raise StoreError("booking insert failed") from e

        logger.info(f"Booking created: {record.id} ({client_id} at {start.isoformat()})")
        return record

    async def is_vip_customer(self, client_id: str, customer_phone: Optional[str]) -> bool:
        if not customer_phone:
            return False
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(Customer.is_vip).where(
                        Customer.client_id == client_id,
                        Customer.phone == customer_phone,
                    )
                )
                is_vip = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up customer for client {client_id}: {e}")
            raise StoreError("customer query failed") from e
        return bool(is_vip)

    async def get_handover(self, conversation_id: str) -> Optional[HandoverRecord]:
        try:
            async with self._session() as db:
                row = await db.get(HandoverState, conversation_id)
                return _handover_from_row(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load handover for {conversation_id}: {e}")
            raise StoreError("handover query failed") from e

    async def upsert_handover(self, record: HandoverRecord) -> HandoverRecord:
        try:
            async with self._session() as db:
                row = await db.get(HandoverState, record.conversation_id)
                if row is None:
                    row = HandoverState(conversation_id=record.conversation_id)
                    db.add(row)
                row.client_id = record.client_id
                row.active = record.active
                row.reason = record.reason
                row.urgency_score = record.urgency_score
                row.triggers = list(record.triggers)
                row.customer_phone = record.customer_phone
                row.customer_name = record.customer_name
                row.started_at = record.started_at
                row.ended_at = record.ended_at
                row.last_notified_at = record.last_notified_at
        except SQLAlchemyError as e:
            logger.error(f"Failed to save handover for {record.conversation_id}: {e}")
            raise StoreError("handover upsert failed") from e
        return record

    async def mark_handover_notified(self, conversation_id: str, at: datetime) -> None:
        try:
            async with self._session() as db:
                await db.execute(
                    update(HandoverState)
                    .where(HandoverState.conversation_id == conversation_id)
                    .values(last_notified_at=at)
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark handover notified for {conversation_id}: {e}")
            raise StoreError("handover update failed") from e

    async def end_handover(self, conversation_id: str, at: datetime) -> Optional[HandoverRecord]:
        try:
            async with self._session() as db:
                row = await db.get(HandoverState, conversation_id)
                if row is None:
                    return None
                row.active = False
                row.ended_at = at
                return _handover_from_row(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to end handover for {conversation_id}: {e}")
            raise StoreError("handover update failed") from e

    async def list_active_handovers(self, client_id: str) -> list[HandoverRecord]:
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(HandoverState).where(
                        HandoverState.client_id == client_id,
                        HandoverState.active.is_(True),
                    )
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list handovers for client {client_id}: {e}")
            raise StoreError("handover query failed") from e
        return [_handover_from_row(r) for r in rows]
