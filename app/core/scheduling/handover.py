"""Human handover state management."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.config import settings
from .store import HandoverRecord, SchedulingStore

logger = logging.getLogger(__name__)


class HandoverManager:
    """
    Starts, ends and queries handovers, and throttles owner notifications
    to one per conversation per handover_notify_throttle_minutes.
    """

    def __init__(
        self,
        store: SchedulingStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self._clock = clock or datetime.now
        self._throttle = timedelta(minutes=settings.handover_notify_throttle_minutes)

    async def start_handover(
        self,
        conversation_id: str,
        client_id: str,
        reason: str,
        urgency_score: int,
        triggers: list[str],
        customer_phone: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> HandoverRecord:
        """
        Activate handover for a conversation.

        An existing record is reactivated and keeps its notification
        timestamp so the throttle still applies.
        """
        existing = await self.store.get_handover(conversation_id)
        now = self._clock()

        record = HandoverRecord(
            conversation_id=conversation_id,
            client_id=client_id,
            active=True,
            reason=reason,
            urgency_score=urgency_score,
            triggers=list(triggers),
            customer_phone=customer_phone or (existing.customer_phone if existing else None),
            customer_name=customer_name or (existing.customer_name if existing else None),
            started_at=existing.started_at if existing and existing.active else now,
            ended_at=None,
            last_notified_at=existing.last_notified_at if existing else None,
        )

        saved = await self.store.upsert_handover(record)
        logger.info(
            f"Handover started for {conversation_id} (client {client_id}): "
            f"score={urgency_score} reason={reason}"
        )
        return saved

    async def end_handover(self, conversation_id: str) -> Optional[HandoverRecord]:
        """Deactivate handover. Returns the closed record, if any."""
        record = await self.store.end_handover(conversation_id, self._clock())
        if record is not None:
            logger.info(f"Handover ended for {conversation_id}")
        return record

    async def get_handover_state(self, conversation_id: str) -> Optional[HandoverRecord]:
        """Active handover for the conversation, or None."""
        record = await self.store.get_handover(conversation_id)
        if record is None or not record.active:
            return None
        return record

    async def is_in_handover(self, conversation_id: str) -> bool:
        return await self.get_handover_state(conversation_id) is not None

    async def should_notify(self, conversation_id: str) -> bool:
        """True unless the owner was notified within the throttle window."""
        record = await self.get_handover_state(conversation_id)
        if record is None or record.last_notified_at is None:
            return True
        return self._clock() - record.last_notified_at >= self._throttle

    async def mark_notified(self, conversation_id: str) -> None:
        await self.store.mark_handover_notified(conversation_id, self._clock())

    async def get_active_handovers(self, client_id: str) -> list[HandoverRecord]:
        """Active handovers for a client, most urgent first."""
        records = await self.store.list_active_handovers(client_id)
        return sorted(records, key=lambda r: r.urgency_score, reverse=True)

    async def get_active_handover_count(self, client_id: str) -> int:
        return len(await self.store.list_active_handovers(client_id))
