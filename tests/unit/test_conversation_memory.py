"""Tests for conversation memory."""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

from app.core.intelligence.session import (
    ConversationMemory,
    ConversationState,
    InMemoryConversationStore,
    MessageSender,
    RedisConversationStore,
)
from app.core.intelligence.slots import TimeWindow

from tests.conftest import NOW

CID = "conv-1"


class TestConversationMemory:
    """Test ConversationMemory state handling."""

    @pytest.mark.asyncio
    async def test_lazy_creation(self, memory):
        assert await memory.get(CID) is None

        state = await memory.get_or_create(CID)

        assert state.conversation_id == CID
        assert state.last_interaction == NOW
        assert state.last_proposed_slot is None

    @pytest.mark.asyncio
    async def test_propose_overwrites(self, memory):
        await memory.propose_slot(CID, datetime(2026, 10, 19, 10))
        await memory.propose_slot(CID, datetime(2026, 10, 19, 11))

        state = await memory.get(CID)
        assert state.last_proposed_slot == datetime(2026, 10, 19, 11)

    @pytest.mark.asyncio
    async def test_decline_accumulates_and_counts(self, memory):
        await memory.decline_slot(CID, datetime(2026, 10, 19, 10))
        await memory.decline_slot(CID, datetime(2026, 10, 19, 11))

        assert await memory.get_declined_slot_count(CID) == 2
        assert await memory.get_decline_count(CID) == 2

    @pytest.mark.asyncio
    async def test_set_preferences_keeps_unset_values(self, memory):
        await memory.set_preferences(CID, preferred_date=date(2026, 10, 20))
        await memory.set_preferences(CID, preferred_time_window=TimeWindow(8, 0, 12, 0))

        prefs = await memory.get_preferences(CID)
        assert prefs["preferred_date"] == date(2026, 10, 20)
        assert prefs["preferred_time_window"] == TimeWindow(8, 0, 12, 0)

    @pytest.mark.asyncio
    async def test_questions(self, memory):
        assert not await memory.has_asked_question(CID, "date")
        await memory.ask_question(CID, "date")
        assert await memory.has_asked_question(CID, "date")

    @pytest.mark.asyncio
    async def test_expired_state_is_fully_reset(self, memory, clock):
        await memory.propose_slot(CID, datetime(2026, 10, 19, 10))
        await memory.decline_slot(CID, datetime(2026, 10, 19, 10))
        await memory.detect_loop(CID, "ok")

        clock.advance(hours=24, minutes=1)

        assert await memory.needs_reset(CID)
        state = await memory.get_or_create(CID)
        assert state.declined_slots == []
        assert state.loop_count == 0
        assert state.last_proposed_slot is None
        assert state.conversation_id == CID

    @pytest.mark.asyncio
    async def test_not_expired_within_window(self, memory, clock):
        await memory.touch(CID)
        clock.advance(hours=23)
        assert not await memory.needs_reset(CID)

    @pytest.mark.asyncio
    async def test_history_and_last_messages(self, memory):
        await memory.add_message(CID, "Hi", MessageSender.CUSTOMER)
        await memory.add_message(CID, "Hello!", MessageSender.AI)

        assert await memory.last_messages(CID) == ["[customer] Hi", "[ai] Hello!"]
        assert await memory.last_messages(CID, 1) == ["[ai] Hello!"]

    @pytest.mark.asyncio
    async def test_silencing(self, memory):
        await memory.mark_silenced_for_handover(CID)
        assert await memory.is_silenced(CID)
        await memory.unsilence(CID)
        assert not await memory.is_silenced(CID)

    @pytest.mark.asyncio
    async def test_urgency_score(self, memory):
        assert await memory.get_urgency_score(CID) == 1

        await memory.set_preferences(CID, urgency="high")
        for hour in (10, 11, 12):
            await memory.decline_slot(CID, datetime(2026, 10, 19, hour))
        await memory.track_contradiction(CID)
        await memory.track_contradiction(CID)

        assert await memory.get_urgency_score(CID) == 1 + 3 + 2 + 1

    @pytest.mark.asyncio
    async def test_sweep_removes_idle_conversations(self, memory, clock):
        await memory.touch("old")
        clock.advance(hours=25)
        await memory.touch("fresh")

        assert await memory.sweep() == 1
        assert await memory.get("old") is None
        assert await memory.get("fresh") is not None


class TestLoopDetection:
    """Test loop detection."""

    @pytest.mark.asyncio
    async def test_repeated_ok(self, memory):
        assert not await memory.detect_loop(CID, "ok")
        assert await memory.detect_loop(CID, "ok")
        assert not await memory.needs_hard_reset(CID)
        assert await memory.detect_loop(CID, "ok")
        assert await memory.detect_loop(CID, "ok")
        assert await memory.needs_hard_reset(CID)

    @pytest.mark.asyncio
    async def test_substantive_message_clears_counter(self, memory):
        await memory.detect_loop(CID, "ok")
        await memory.detect_loop(CID, "??")

        assert not await memory.detect_loop(CID, "Can I come in on Friday morning?")
        assert await memory.get_loop_count(CID) == 0

    @pytest.mark.asyncio
    async def test_exact_repeat_is_a_loop(self, memory):
        assert not await memory.detect_loop(CID, "What about Friday morning?")
        assert await memory.detect_loop(CID, "what about friday morning?")

    @pytest.mark.asyncio
    async def test_emoji_only(self, memory):
        assert not await memory.detect_loop(CID, "👍")
        assert await memory.detect_loop(CID, "🙂")

    @pytest.mark.asyncio
    async def test_ring_is_bounded(self, memory):
        for i in range(8):
            await memory.detect_loop(CID, f"message number {i} here")
        state = await memory.get(CID)
        assert len(state.recent_messages) == 5

    @pytest.mark.asyncio
    async def test_reset_loop_count(self, memory):
        await memory.detect_loop(CID, "ok")
        await memory.detect_loop(CID, "ok")
        await memory.reset_loop_count(CID)
        assert await memory.get_loop_count(CID) == 0


class TestConversationStores:
    """Test ConversationStore implementations."""

    @pytest.mark.asyncio
    async def test_in_memory_store(self):
        store = InMemoryConversationStore()
        state = ConversationState(conversation_id=CID, last_interaction=NOW, created_at=NOW)

        await store.set(state)
        assert await store.get(CID) is state
        assert await store.keys() == [CID]
        assert await store.delete(CID)
        assert not await store.delete(CID)

    @pytest.mark.asyncio
    async def test_redis_store_serializes_with_ttl(self):
        redis = AsyncMock()
        store = RedisConversationStore(redis_client=redis)
        state = ConversationState(
            conversation_id=CID,
            last_interaction=NOW,
            created_at=NOW,
            last_proposed_slot=datetime(2026, 10, 20, 14),
            preferred_time_window=TimeWindow(12, 0, 17, 0),
        )

        await store.set(state)

        key, ttl, payload = redis.setex.call_args.args
        assert key == "scheduling:v1:conversation:conv-1"
        assert ttl == timedelta(hours=24)

        redis.get = AsyncMock(return_value=payload)
        loaded = await store.get(CID)
        assert loaded.last_proposed_slot == datetime(2026, 10, 20, 14)
        assert loaded.preferred_time_window == TimeWindow(12, 0, 17, 0)

    @pytest.mark.asyncio
    async def test_redis_store_missing_key(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)
        store = RedisConversationStore(redis_client=redis)

        assert await store.get(CID) is None
