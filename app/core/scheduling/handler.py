"""
Inbound message handler.

Entry point for channel webhooks: serializes work per conversation,
resolves VIP status, runs the SchedulingBrain and creates the booking
row when the customer confirms a slot.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.config import settings
from app.core.intelligence.session import ConversationMemory
from .engine import SchedulingBrain, SchedulingRequest, get_scheduling_brain
from .events import AdminEvent, log_event
from .store import HandoverRecord

logger = logging.getLogger(__name__)


@dataclass
class InboundResult:
    """Reply to deliver back over the original channel."""

    reply: str
    proposed_slot: Optional[datetime] = None
    should_book: bool = False
    booking_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "reply": self.reply,
            "proposed_slot": self.proposed_slot.isoformat() if self.proposed_slot else None,
            "should_book": self.should_book,
            "booking_id": self.booking_id,
        }


class SchedulingHandler:
    """Runs inbound messages through the brain, one at a time per conversation."""

    def __init__(self, brain: SchedulingBrain):
        self.brain = brain
        # conversation_id -> (lock, number of tasks holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def memory(self) -> ConversationMemory:
        return self.brain.memory

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str):
        """Hold the conversation's lock; the entry is dropped once nobody uses it."""
        lock, users = self._locks.get(conversation_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[conversation_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[conversation_id]
            if users <= 1:
                del self._locks[conversation_id]
            else:
                self._locks[conversation_id] = (lock, users - 1)

    async def handle_inbound(
        self,
        message: str,
        conversation_id: str,
        client_id: str,
        customer_phone: Optional[str] = None,
        customer_name: Optional[str] = None,
        default_duration_minutes: Optional[int] = None,
    ) -> InboundResult:
        """
        Process one inbound customer message.

        Args:
            message: Customer's message
            conversation_id: Conversation identifier
            client_id: Business identifier
            customer_phone: Sender phone, used for VIP lookup and alerts
            customer_name: Sender name, if known
            default_duration_minutes: Booking length override

        Returns:
            InboundResult with reply and booking id when a booking was made
        """
        async with self._conversation_lock(conversation_id):
            is_vip = await self._is_vip(client_id, customer_phone)

            decision = await self.brain.process(
                SchedulingRequest(
                    message=message,
                    conversation_id=conversation_id,
                    client_id=client_id,
                    default_duration_minutes=default_duration_minutes,
                    customer_phone=customer_phone,
                    customer_name=customer_name,
                    is_vip=is_vip,
                )
            )

            result = InboundResult(
                reply=decision.reply,
                proposed_slot=decision.proposed_slot,
                should_book=decision.should_book,
            )

            if decision.should_book and decision.proposed_slot is not None:
                if await self.brain.handovers.is_in_handover(conversation_id):
                    logger.info(f"Skipping booking for {conversation_id}: conversation in handover")
                    return result

                result.booking_id = await self._create_booking(
                    client_id,
                    conversation_id,
                    decision.proposed_slot,
                    default_duration_minutes or settings.default_duration_minutes,
                    customer_phone,
                    customer_name,
                )
                if result.booking_id is None:
                    result.reply = self.brain.templates.fallback()
                    result.should_book = False

            return result

    async def _is_vip(self, client_id: str, customer_phone: Optional[str]) -> bool:
        if not customer_phone:
            return False
        try:
            return await self.brain.store.is_vip_customer(client_id, customer_phone)
        except Exception as e:
            logger.warning(f"VIP lookup failed for client {client_id}: {e}")
            return False

    async def _create_booking(
        self,
        client_id: str,
        conversation_id: str,
        start: datetime,
        duration_minutes: int,
        customer_phone: Optional[str],
        customer_name: Optional[str],
    ) -> Optional[str]:
        try:
            booking = await self.brain.store.create_booking(
                client_id=client_id,
                start=start,
                end=start + timedelta(minutes=duration_minutes),
                customer_phone=customer_phone,
                customer_name=customer_name,
                conversation_id=conversation_id,
            )
        except Exception as e:
            logger.error(f"Booking failed for {conversation_id}: {e}", exc_info=True)
            log_event(
                AdminEvent.BOOKING_ERROR, conversation_id, client_id,
                {"error": str(e), "slot": start.isoformat()},
                level=logging.ERROR,
            )
            return None

        log_event(
            AdminEvent.BOOKING_CREATED, conversation_id, client_id,
            {"booking_id": booking.id, "slot": start.isoformat()},
        )
        return booking.id

    async def close_handover(self, conversation_id: str) -> str:
        """
        Return a conversation to automated handling.

        Returns:
            Reply to send to the customer
        """
        async with self._conversation_lock(conversation_id):
            record = await self.brain.handovers.end_handover(conversation_id)
            await self.memory.unsilence(conversation_id)
            if record is not None:
                log_event(AdminEvent.HANDOVER_CLOSED, conversation_id, record.client_id)
            return self.brain.templates.handover_closed()

    async def list_active_handovers(self, client_id: str) -> list[HandoverRecord]:
        return await self.brain.handovers.get_active_handovers(client_id)


_handler: Optional[SchedulingHandler] = None


def get_scheduling_handler() -> SchedulingHandler:
    """Get singleton SchedulingHandler."""
    global _handler
    if _handler is None:
        _handler = SchedulingHandler(get_scheduling_brain())
    return _handler
