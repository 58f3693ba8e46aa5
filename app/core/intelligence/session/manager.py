"""Conversation memory for the scheduling engine."""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from app.config import settings
from app.core.intelligence.slots.types import TimeWindow
from .models import ConversationMessage, ConversationState, MessageSender
from .store import ConversationStore, create_conversation_store

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Replies with no scheduling content
AMBIGUOUS_REPLIES = {"ok", "yes", "yeah", "yep", "sure", "???", "??"}

EMOJI_ONLY = re.compile(
    "^[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F900-\U0001F9FF\U0001F1E0-\U0001F1FF☀-➿️‍\\s]+$"
)

# Messages longer than this count as substantive and clear the loop counter
SUBSTANTIVE_LENGTH = 10


def normalize_message(message: str) -> str:
    return (message or "").lower().strip()


class ConversationMemory:
    """
    Per-conversation scheduling memory.

    State older than memory_max_age_hours is discarded on next access.
    Updates within one conversation must be serialized by the caller.
    """

    def __init__(
        self,
        store: Optional[ConversationStore] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize memory.

        Args:
            store: Conversation store (default: configured backend)
            clock: Returns the current local time (for testing)
        """
        self.store = store or create_conversation_store()
        self._clock = clock or datetime.now
        self._max_age = timedelta(hours=settings.memory_max_age_hours)
        self._recent_limit = settings.recent_message_limit

    def now(self) -> datetime:
        return self._clock()

    def _is_expired(self, state: ConversationState) -> bool:
        return self.now() - state.last_interaction > self._max_age

    async def get(self, conversation_id: str) -> Optional[ConversationState]:
        """Get stored state without creating or expiring it."""
        return await self.store.get(conversation_id)

    async def _init(self, conversation_id: str) -> ConversationState:
        now = self.now()
        state = ConversationState(
            conversation_id=conversation_id,
            last_interaction=now,
            created_at=now,
        )
        await self.store.set(state)
        return state

    async def get_or_create(self, conversation_id: str) -> ConversationState:
        """
        Get conversation state, creating it lazily.

        State idle for longer than the liveness window is replaced with a
        fresh one under the same id.
        """
        existing = await self.store.get(conversation_id)

        if existing is not None:
            if self._is_expired(existing):
                logger.info(f"Conversation {conversation_id} expired, resetting memory")
                await self.store.delete(conversation_id)
                return await self._init(conversation_id)
            return existing

        return await self._init(conversation_id)

    async def _update(self, state: ConversationState) -> ConversationState:
        state.last_interaction = self.now()
        await self.store.set(state)
        return state

    async def touch(self, conversation_id: str) -> ConversationState:
        """Refresh the liveness timestamp."""
        state = await self.get_or_create(conversation_id)
        return await self._update(state)

    async def needs_reset(self, conversation_id: str) -> bool:
        """True if stored state is older than the liveness window."""
        state = await self.store.get(conversation_id)
        if state is None:
            return False
        return self._is_expired(state)

    async def reset(self, conversation_id: str) -> ConversationState:
        """Discard all state for the conversation."""
        await self.store.delete(conversation_id)
        return await self._init(conversation_id)

    async def clear(self, conversation_id: str) -> None:
        await self.store.delete(conversation_id)

    # Slot history

    async def propose_slot(self, conversation_id: str, slot: datetime) -> ConversationState:
        """Record the slot just offered. Overwrites any previous proposal."""
        state = await self.get_or_create(conversation_id)
        state.last_proposed_slot = slot
        return await self._update(state)

    async def decline_slot(self, conversation_id: str, slot: datetime) -> ConversationState:
        """Record a declined slot and bump the decline counter."""
        state = await self.get_or_create(conversation_id)
        state.declined_slots.append(slot)
        state.decline_count += 1
        return await self._update(state)

    async def get_declined_slot_count(self, conversation_id: str) -> int:
        state = await self.store.get(conversation_id)
        return len(state.declined_slots) if state else 0

    # Questions

    async def ask_question(self, conversation_id: str, question: str) -> ConversationState:
        state = await self.get_or_create(conversation_id)
        state.previous_questions.append(question)
        return await self._update(state)

    async def has_asked_question(self, conversation_id: str, question_type: str) -> bool:
        """Check if a question of this type was already asked."""
        state = await self.store.get(conversation_id)
        if state is None:
            return False
        return any(question_type in q for q in state.previous_questions)

    # Preferences

    async def set_preferences(
        self,
        conversation_id: str,
        preferred_date: Optional[date] = None,
        preferred_time_window: Optional[TimeWindow] = None,
        urgency: Optional[str] = None,
    ) -> ConversationState:
        """
        Store customer preferences.

        Only values that are not None overwrite stored ones.
        """
        state = await self.get_or_create(conversation_id)
        if preferred_date is not None:
            state.preferred_date = preferred_date
        if preferred_time_window is not None:
            state.preferred_time_window = preferred_time_window
        if urgency is not None:
            state.urgency = urgency
        return await self._update(state)

    async def get_preferences(self, conversation_id: str) -> dict:
        state = await self.store.get(conversation_id)
        if state is None:
            return {}
        return state.get_preferences()

    # Loop detection

    async def detect_loop(self, conversation_id: str, message: str) -> bool:
        """
        Record a message and report whether the customer is looping.

        A loop is the same message appearing twice in the recent ring, or
        a second consecutive contentless reply ("ok", "??", emoji only).

        Args:
            conversation_id: Conversation identifier
            message: Raw inbound message

        Returns:
            True if the conversation is looping
        """
        state = await self.get_or_create(conversation_id)
        normalized = normalize_message(message)

        state.recent_messages.append(normalized)
        if len(state.recent_messages) > self._recent_limit:
            state.recent_messages = state.recent_messages[-self._recent_limit:]

        is_loop = False
        exact_repeats = state.recent_messages.count(normalized)

        if exact_repeats >= 2:
            state.loop_count += 1
            is_loop = True
        elif normalized in AMBIGUOUS_REPLIES or EMOJI_ONLY.match(normalized):
            state.loop_count += 1
            is_loop = state.loop_count >= 2
        elif len(normalized) > SUBSTANTIVE_LENGTH:
            state.loop_count = 0

        await self.store.set(state)

        if is_loop:
            logger.debug(
                f"Loop detected in {conversation_id}: loop_count={state.loop_count}"
            )
        return is_loop

    async def needs_hard_reset(self, conversation_id: str) -> bool:
        state = await self.store.get(conversation_id)
        return state is not None and state.loop_count >= settings.loop_hard_reset_threshold

    async def reset_loop_count(self, conversation_id: str) -> None:
        state = await self.store.get(conversation_id)
        if state is not None:
            state.loop_count = 0
            await self.store.set(state)

    async def get_loop_count(self, conversation_id: str) -> int:
        state = await self.store.get(conversation_id)
        return state.loop_count if state else 0

    # Counters

    async def get_decline_count(self, conversation_id: str) -> int:
        state = await self.store.get(conversation_id)
        return state.decline_count if state else 0

    async def track_contradiction(self, conversation_id: str) -> None:
        state = await self.get_or_create(conversation_id)
        state.contradiction_count += 1
        await self.store.set(state)

    async def get_contradiction_count(self, conversation_id: str) -> int:
        state = await self.store.get(conversation_id)
        return state.contradiction_count if state else 0

    # History

    async def add_message(
        self,
        conversation_id: str,
        text: str,
        sender: MessageSender,
    ) -> None:
        """Append a message to the conversation history."""
        state = await self.get_or_create(conversation_id)
        state.all_messages.append(
            ConversationMessage(text=text, sender=sender, timestamp=self.now())
        )
        await self.store.set(state)

    async def last_messages(self, conversation_id: str, count: int = 10) -> list[str]:
        """Last N messages formatted as "[sender] text"."""
        state = await self.store.get(conversation_id)
        if state is None:
            return []
        return [f"[{m.sender.value}] {m.text}" for m in state.all_messages[-count:]]

    async def get_urgency_score(self, conversation_id: str) -> int:
        """
        Conversation urgency on a 1-10 scale.

        Weighted sum of the stored urgency preference and the
        decline/loop/contradiction counters.
        """
        state = await self.store.get(conversation_id)
        if state is None:
            return 1

        score = 1
        if state.urgency == "high":
            score += 3
        elif state.urgency == "medium":
            score += 2
        if state.decline_count >= 3:
            score += 2
        if state.loop_count >= 3:
            score += 2
        if state.contradiction_count >= 2:
            score += 1

        return min(score, 10)

    # Handover silencing

    async def mark_silenced_for_handover(self, conversation_id: str) -> None:
        state = await self.get_or_create(conversation_id)
        state.silenced = True
        await self.store.set(state)

    async def unsilence(self, conversation_id: str) -> None:
        state = await self.store.get(conversation_id)
        if state is not None:
            state.silenced = False
            await self.store.set(state)

    async def is_silenced(self, conversation_id: str) -> bool:
        state = await self.store.get(conversation_id)
        return bool(state and state.silenced)

    async def sweep(self) -> int:
        """Remove every conversation idle past the liveness window."""
        removed = await self.store.sweep(self._max_age, self.now())
        if removed:
            logger.info(f"Swept {removed} expired conversations")
        return removed


_memory: Optional[ConversationMemory] = None


def get_conversation_memory() -> ConversationMemory:
    """Get singleton ConversationMemory."""
    global _memory
    if _memory is None:
        _memory = ConversationMemory()
    return _memory
