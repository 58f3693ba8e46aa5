"""
Scheduling Brain - Main Orchestrator.

Runs one inbound customer message through a fixed sequence of checks
(handover, safety, memory expiry, loops, parsing, escalation,
confirm/decline, clarification) and then dispatches to a slot search
path. Every outcome is one reply drawn from MessageTemplates.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from app.config import settings
from app.core.intelligence.handover import HandoverDetectionEngine
from app.core.intelligence.intent import ReplyClassifier, ReplyIntent, get_reply_classifier
from app.core.intelligence.session import (
    ConversationMemory,
    ConversationState,
    MessageSender,
    get_conversation_memory,
)
from app.core.intelligence.slots import (
    ExtractedSlots,
    SlotExtractor,
    TimeParser,
    TimeWindow,
    UrgencyLevel,
    get_slot_extractor,
    get_time_parser,
)
from app.infra.notifications import (
    HandoverNotification,
    NotificationService,
    build_dashboard_link,
    get_notification_service,
)
from app.safety.safety_filter import SafetyFilter, get_safety_filter
from .events import AdminEvent, log_event, preview
from .handover import HandoverManager
from .slot_finder import SlotFinder, SlotRequest
from .store import SchedulingStore
from .templates import MessageTemplates

logger = logging.getLogger(__name__)

UNSAFE_CONTENT_SCORE = 10
NOTIFICATION_HISTORY = 10


@dataclass
class SchedulingRequest:
    """One inbound customer message."""

    message: str
    conversation_id: str
    client_id: str
    default_duration_minutes: Optional[int] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    is_vip: bool = False

    @property
    def duration_minutes(self) -> int:
        return self.default_duration_minutes or settings.default_duration_minutes


@dataclass
class SchedulingDecision:
    """Reply for the customer plus the slot under discussion."""

    reply: str
    proposed_slot: Optional[datetime] = None
    should_book: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "reply": self.reply,
            "proposed_slot": self.proposed_slot.isoformat() if self.proposed_slot else None,
            "should_book": self.should_book,
        }


class SchedulingBrain:
    """
    Deterministic scheduling state machine.

    The caller must serialize process() calls per conversation; see
    SchedulingHandler.
    """

    def __init__(
        self,
        store: SchedulingStore,
        memory: Optional[ConversationMemory] = None,
        slot_finder: Optional[SlotFinder] = None,
        handovers: Optional[HandoverManager] = None,
        detector: Optional[HandoverDetectionEngine] = None,
        safety: Optional[SafetyFilter] = None,
        extractor: Optional[SlotExtractor] = None,
        replies: Optional[ReplyClassifier] = None,
        time_parser: Optional[TimeParser] = None,
        templates: Optional[MessageTemplates] = None,
        notifications: Optional[NotificationService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize brain with optional dependencies.

        Args:
            store: Calendar and handover data source
            memory: Conversation memory (default: shared instance)
            slot_finder: Slot search (default: built over store)
            handovers: Handover state manager (default: built over store)
            detector: Escalation detector (default: built over memory)
            safety: Unsafe content filter
            extractor: Date/time/urgency extraction
            replies: Confirmation/decline classifier
            time_parser: Used for the too-broad window check
            templates: Reply wording
            notifications: Owner alerting
            clock: Returns the current local time (for testing)
        """
        self._clock = clock or datetime.now
        self.store = store
        self.memory = memory or get_conversation_memory()
        self.slot_finder = slot_finder or SlotFinder(store, clock=self._clock)
        self.handovers = handovers or HandoverManager(store, clock=self._clock)
        self.detector = detector or HandoverDetectionEngine(self.memory)
        self.safety = safety or get_safety_filter()
        self.extractor = extractor or get_slot_extractor()
        self.replies = replies or get_reply_classifier()
        self.times = time_parser or get_time_parser()
        self.templates = templates or MessageTemplates(clock=self._clock)
        self.notifications = notifications or get_notification_service()

    async def process(self, request: SchedulingRequest) -> SchedulingDecision:
        """
        Produce exactly one reply for an inbound message.

        Never raises: unexpected failures are logged and answered with
        the fallback prompt.

        Args:
            request: Inbound message and conversation identifiers

        Returns:
            SchedulingDecision
        """
        cid, client_id = request.conversation_id, request.client_id

        try:
            decision = await self._decide(request)
        except Exception as e:
            logger.error(f"Error processing message for {cid}: {e}", exc_info=True)
            log_event(
                AdminEvent.ERROR, cid, client_id,
                {"error": str(e), "message": preview(request.message)},
                level=logging.ERROR,
            )
            log_event(AdminEvent.FALLBACK_TRIGGERED, cid, client_id, {"reason": "internal_error"})
            decision = SchedulingDecision(reply=self.templates.fallback())

        try:
            await self.memory.add_message(cid, decision.reply, MessageSender.AI)
        except Exception as e:
            logger.error(f"Could not record reply for {cid}: {e}", exc_info=True)

        return decision

    async def _decide(self, request: SchedulingRequest) -> SchedulingDecision:
        message = request.message
        cid, client_id = request.conversation_id, request.client_id

        # 1. A human owns the conversation
        if await self.handovers.is_in_handover(cid):
            log_event(AdminEvent.AI_SILENCED_FOR_HANDOVER, cid, client_id, {"message": preview(message)})
            return SchedulingDecision(reply=self.templates.handover_silent())

        # 2. Unsafe content
        safety = self.safety.check(message)
        if not safety.safe:
            category = safety.category.value if safety.category else "unknown"
            log_event(
                AdminEvent.UNSAFE_CONTENT, cid, client_id,
                {"type": category, "message": preview(message)},
                level=logging.WARNING,
            )
            await self.trigger_handover(
                request,
                reason=f"Unsafe content detected: {category}",
                urgency_score=UNSAFE_CONTENT_SCORE,
                triggers=["unsafe_content", category],
            )
            return SchedulingDecision(reply=self.safety.get_deflection_message(safety.category))

        # 3. Stale conversation
        if await self.memory.needs_reset(cid):
            await self.memory.reset(cid)
            log_event(AdminEvent.MEMORY_RESET, cid, client_id, {"reason": "24h_elapsed"})
            return SchedulingDecision(reply=self.templates.memory_reset())

        # 4. Loops
        if await self.memory.detect_loop(cid, message):
            loop_count = await self.memory.get_loop_count(cid)
            if await self.memory.needs_hard_reset(cid):
                await self.memory.reset_loop_count(cid)
                log_event(AdminEvent.LOOP_DETECTED, cid, client_id, {"loop_count": loop_count, "hard_reset": True})
                return SchedulingDecision(reply=self.templates.loop_hard_reset())

            log_event(AdminEvent.LOOP_DETECTED, cid, client_id, {"loop_count": loop_count})
            return SchedulingDecision(reply=self.templates.loop_reset())

        # 5. Parse and remember
        state = await self.memory.touch(cid)
        slots = self.extractor.extract(message, self._clock().date())
        await self._remember(request, state, slots)

        # 6. Escalation
        handover = await self.detector.detect_handover(message, cid, is_vip=request.is_vip)
        if handover.should_escalate:
            await self.trigger_handover(
                request,
                reason=handover.reason or "Handover requested",
                urgency_score=handover.urgency_score,
                triggers=handover.triggers,
            )
            return SchedulingDecision(reply=self.templates.handover_escalated())

        state = await self.memory.get_or_create(cid)
        intent = self.replies.classify(message)

        # 7. Confirmation
        if intent == ReplyIntent.CONFIRM and state.last_proposed_slot is not None:
            slot = state.last_proposed_slot
            log_event(AdminEvent.BOOKING_SUCCESS, cid, client_id, {"slot": slot.isoformat()})
            return SchedulingDecision(
                reply=self.templates.confirm_booking(slot),
                proposed_slot=slot,
                should_book=True,
            )

        # 8. Decline
        if intent == ReplyIntent.DECLINE and state.last_proposed_slot is not None:
            return await self._handle_decline(request, state)

        # 9. Clarification
        clarification = await self._clarify(request, state, slots)
        if clarification is not None:
            return clarification

        # 10. Dispatch on what this message contained
        return await self._dispatch(request, state, slots)

    async def _remember(
        self,
        request: SchedulingRequest,
        state: ConversationState,
        slots: ExtractedSlots,
    ) -> None:
        cid, client_id = request.conversation_id, request.client_id

        if slots.date is not None:
            log_event(AdminEvent.PARSED_DATE, cid, client_id, {"date": slots.date.isoformat()})
            if state.preferred_date is not None and state.preferred_date != slots.date:
                await self.memory.track_contradiction(cid)
                log_event(
                    AdminEvent.CONTRADICTION_DETECTED, cid, client_id,
                    {"previous": state.preferred_date.isoformat(), "new": slots.date.isoformat()},
                )
        if slots.time_window is not None:
            log_event(AdminEvent.PARSED_TIME, cid, client_id, {"window": self.times.format_window(slots.time_window)})

        urgency = None
        if slots.is_urgent:
            urgency = UrgencyLevel.HIGH.value
        elif slots.urgency_level != UrgencyLevel.NONE:
            urgency = slots.urgency_level.value
        if urgency is not None:
            log_event(AdminEvent.URGENCY_DETECTED, cid, client_id, {"urgency": urgency})

        await self.memory.set_preferences(
            cid,
            preferred_date=slots.date,
            preferred_time_window=slots.time_window,
            urgency=urgency,
        )
        await self.memory.add_message(cid, request.message, MessageSender.CUSTOMER)

    async def _handle_decline(
        self,
        request: SchedulingRequest,
        state: ConversationState,
    ) -> SchedulingDecision:
        cid, client_id = request.conversation_id, request.client_id
        declined = state.last_proposed_slot
        await self.memory.decline_slot(cid, declined)

        next_slot = await self.slot_finder.find_earliest_slot(
            SlotRequest(
                client_id=client_id,
                duration_minutes=request.duration_minutes,
                preferred_date=state.preferred_date,
                time_window=state.preferred_time_window,
                search_days_ahead=settings.broad_search_days,
                not_before=declined + timedelta(minutes=settings.decline_offset_minutes),
            )
        )

        if next_slot is None:
            log_event(AdminEvent.FALLBACK_TRIGGERED, cid, client_id, {"reason": "no_next_slot"})
            return SchedulingDecision(reply=self.templates.no_availability())

        await self._propose(request, next_slot, reason="after_decline")
        return SchedulingDecision(reply=self.templates.next_slot(next_slot), proposed_slot=next_slot)

    async def _clarify(
        self,
        request: SchedulingRequest,
        state: ConversationState,
        slots: ExtractedSlots,
    ) -> Optional[SchedulingDecision]:
        """Clarification prompt when the request cannot be searched as stated."""
        cid, client_id = request.conversation_id, request.client_id

        if slots.time_window is not None and self.times.is_too_broad(slots.time_window):
            reason, reply = "time_window_too_broad", self.templates.clarify_time_window()
        elif slots.is_ambiguous_time:
            reason, reply = "ambiguous_time", self.templates.clarify_time()
        elif slots.time_window is not None and slots.date is None and state.preferred_date is None:
            reason, reply = "date_missing", self.templates.clarify_date()
        else:
            return None

        log_event(AdminEvent.CLARIFICATION_NEEDED, cid, client_id, {"reason": reason})
        return SchedulingDecision(reply=reply)

    async def _dispatch(
        self,
        request: SchedulingRequest,
        state: ConversationState,
        slots: ExtractedSlots,
    ) -> SchedulingDecision:
        cid, client_id = request.conversation_id, request.client_id

        if slots.is_urgent:
            path = "urgent"
        elif slots.date is not None and slots.time_window is None:
            path = "date_only"
        elif slots.time_window is not None and slots.date is None:
            path = "time_only"
        elif slots.date is not None and slots.time_window is not None:
            path = "date_and_time"
        elif state.last_proposed_slot is None:
            path = "initial_request"
        else:
            path = "fallback"

        log_event(AdminEvent.PATH_CHOSEN, cid, client_id, {"path": path})

        if path == "urgent":
            return await self._handle_urgent(request)
        if path == "date_only":
            return await self._handle_date_only(request, slots.date)
        if path == "time_only":
            await self.memory.ask_question(cid, "date")
            return SchedulingDecision(reply=self.templates.clarify_date())
        if path == "date_and_time":
            return await self._handle_date_and_time(request, slots.date, slots.time_window)
        if path == "initial_request":
            return await self._handle_initial(request)
        return SchedulingDecision(reply=self.templates.clarify_general())

    async def _earliest(
        self,
        request: SchedulingRequest,
        day: Optional[date] = None,
        days: int = 1,
        window: Optional[TimeWindow] = None,
    ) -> Optional[datetime]:
        return await self.slot_finder.find_earliest_slot(
            SlotRequest(
                client_id=request.client_id,
                duration_minutes=request.duration_minutes,
                preferred_date=day,
                time_window=window,
                search_days_ahead=days,
            )
        )

    async def _propose(self, request: SchedulingRequest, slot: datetime, reason: Optional[str] = None) -> None:
        await self.memory.propose_slot(request.conversation_id, slot)
        data = {"slot": slot.isoformat()}
        if reason:
            data["reason"] = reason
        log_event(AdminEvent.SLOT_CHOSEN, request.conversation_id, request.client_id, data)

    async def _handle_urgent(self, request: SchedulingRequest) -> SchedulingDecision:
        today = self._clock().date()

        for day in (today, today + timedelta(days=1)):
            slot = await self._earliest(request, day)
            if slot is not None:
                await self._propose(request, slot, reason="urgent")
                return SchedulingDecision(reply=self.templates.urgent_slot(slot), proposed_slot=slot)

        return SchedulingDecision(reply=self.templates.no_availability())

    async def _handle_date_only(self, request: SchedulingRequest, day: date) -> SchedulingDecision:
        if await self.slot_finder.is_day_closed(request.client_id, day):
            open_day = await self.slot_finder.find_next_open_day(request.client_id, day)
            slot = await self._earliest(request, open_day) if open_day else None
            if slot is None:
                return SchedulingDecision(reply=self.templates.no_availability())

            await self._propose(request, slot, reason="closed_day")
            return SchedulingDecision(reply=self.templates.closed_day(day, slot), proposed_slot=slot)

        slot = await self._earliest(request, day)
        if slot is not None:
            await self._propose(request, slot)
            return SchedulingDecision(reply=self.templates.offer_slot(slot), proposed_slot=slot)

        next_slot = await self._earliest(request, day, days=settings.broad_search_days)
        if next_slot is None:
            return SchedulingDecision(reply=self.templates.no_availability())

        await self._propose(request, next_slot, reason="fully_booked")
        return SchedulingDecision(reply=self.templates.fully_booked(day, next_slot), proposed_slot=next_slot)

    async def _handle_date_and_time(
        self,
        request: SchedulingRequest,
        day: date,
        window: TimeWindow,
    ) -> SchedulingDecision:
        slot = await self._earliest(request, day, window=window)
        if slot is not None:
            await self._propose(request, slot)
            return SchedulingDecision(reply=self.templates.offer_slot(slot), proposed_slot=slot)

        next_slot = await self._earliest(request, day, days=settings.broad_search_days)
        if next_slot is None:
            return SchedulingDecision(reply=self.templates.no_availability())

        await self._propose(request, next_slot, reason="window_unavailable")
        return SchedulingDecision(reply=self.templates.window_unavailable(next_slot), proposed_slot=next_slot)

    async def _handle_initial(self, request: SchedulingRequest) -> SchedulingDecision:
        slot = await self._earliest(request, days=settings.broad_search_days)
        if slot is None:
            return SchedulingDecision(reply=self.templates.no_availability())

        await self._propose(request, slot, reason="initial_request")
        return SchedulingDecision(reply=self.templates.offer_slot(slot), proposed_slot=slot)

    async def trigger_handover(
        self,
        request: SchedulingRequest,
        reason: str,
        urgency_score: int,
        triggers: list[str],
    ) -> None:
        """
        Hand the conversation to the owner and alert them.

        Failures are logged; the customer still gets a reply.
        """
        cid, client_id = request.conversation_id, request.client_id

        try:
            await self.handovers.start_handover(
                conversation_id=cid,
                client_id=client_id,
                reason=reason,
                urgency_score=urgency_score,
                triggers=triggers,
                customer_phone=request.customer_phone,
                customer_name=request.customer_name,
            )
            await self.memory.mark_silenced_for_handover(cid)
            log_event(
                AdminEvent.HANDOVER_TRIGGERED, cid, client_id,
                {"reason": reason, "urgency_score": urgency_score, "triggers": triggers},
            )

            if not await self.handovers.should_notify(cid):
                log_event(AdminEvent.HANDOVER_SUPPRESSED, cid, client_id, {"reason": "throttled"})
                return

            payload = HandoverNotification(
                conversation_id=cid,
                client_id=client_id,
                urgency_score=urgency_score,
                urgency_level=self.detector.get_urgency_level(urgency_score),
                reason=reason,
                triggers=list(triggers),
                last_messages=await self.memory.last_messages(cid, NOTIFICATION_HISTORY),
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                dashboard_link=build_dashboard_link(client_id, cid),
            )
            result = await self.notifications.send_handover_notification(payload)

            if result.delivered:
                await self.handovers.mark_notified(cid)
                log_event(AdminEvent.HANDOVER_NOTIFIED, cid, client_id, result.to_dict())
            else:
                log_event(AdminEvent.ERROR, cid, client_id, {
                    "context": "handover_notification",
                    "errors": result.errors,
                }, level=logging.WARNING)
        except Exception as e:
            logger.error(f"Handover trigger failed for {cid}: {e}", exc_info=True)
            log_event(
                AdminEvent.ERROR, cid, client_id,
                {"error": str(e), "context": "trigger_handover"},
                level=logging.ERROR,
            )


_brain: Optional[SchedulingBrain] = None


def get_scheduling_brain() -> SchedulingBrain:
    """Get singleton SchedulingBrain backed by the SQL store."""
    global _brain
    if _brain is None:
        from .sql_store import SqlSchedulingStore

        _brain = SchedulingBrain(store=SqlSchedulingStore())
    return _brain
