"""End-to-end tests for the scheduling state machine."""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from app.core.scheduling import MessageTemplates, SchedulingBrain, SchedulingRequest
from app.infra.notifications import NotificationResult, NotificationService
from app.safety.safety_filter import SafetyCategory, SafetyFilter

from tests.conftest import CLIENT_ID, NOW, FakeSchedulingStore

CONV = "conv-1"


@pytest.fixture
def notifications():
    service = AsyncMock(spec=NotificationService)
    service.send_handover_notification.return_value = NotificationResult(sms_sent=True)
    return service


@pytest.fixture
def brain(store, memory, clock, notifications):
    return SchedulingBrain(store=store, memory=memory, notifications=notifications, clock=clock)


@pytest.fixture
def templates(clock):
    return MessageTemplates(clock=clock)


async def send(brain, message, conversation_id=CONV, **kwargs):
    return await brain.process(
        SchedulingRequest(message=message, conversation_id=conversation_id, client_id=CLIENT_ID, **kwargs)
    )


class TestBookingFlow:
    """Offer, confirm and decline."""

    @pytest.mark.asyncio
    async def test_initial_request_offers_earliest_slot(self, brain):
        decision = await send(brain, "Hi, I'd like to book an appointment")

        assert decision.proposed_slot == datetime(2026, 10, 19, 10)
        assert not decision.should_book
        assert decision.reply == "The earliest I can offer is today at 10 AM. Does that work for you?"

    @pytest.mark.asyncio
    async def test_confirmation_books_proposed_slot(self, brain, memory):
        offer = await send(brain, "Hi, I'd like to book an appointment")

        decision = await send(brain, "yes perfect")

        assert decision.should_book
        assert decision.proposed_slot == offer.proposed_slot
        assert decision.reply == "Perfect — I've booked you for today at 10 AM. See you then!"

    @pytest.mark.asyncio
    async def test_uppercase_confirmation_books(self, brain, notifications):
        offer = await send(brain, "Hi, I'd like to book an appointment")

        decision = await send(brain, "YES PERFECT")

        assert decision.should_book
        assert decision.proposed_slot == offer.proposed_slot
        notifications.send_handover_notification.assert_not_called()

    @pytest.mark.asyncio
    async def test_decline_offers_next_slot(self, brain, memory):
        await send(brain, "Hi, I'd like to book an appointment")

        decision = await send(brain, "no, that doesn't work for me")

        assert decision.proposed_slot == datetime(2026, 10, 19, 11)
        assert decision.reply == "No problem — the next available time is today at 11 AM. Does that work?"
        assert await memory.get_declined_slot_count(CONV) == 1

    @pytest.mark.asyncio
    async def test_confirmation_without_proposal(self, brain):
        decision = await send(brain, "sounds good, Tuesday at 2pm")

        assert not decision.should_book
        assert decision.proposed_slot == datetime(2026, 10, 20, 14)

    @pytest.mark.asyncio
    async def test_conversation_history(self, brain, memory):
        await send(brain, "Hi, I'd like to book an appointment")

        history = await memory.last_messages(CONV)

        assert history[0] == "[customer] Hi, I'd like to book an appointment"
        assert history[1].startswith("[ai] The earliest I can offer")


class TestPaths:
    """Dispatch on what the message contains."""

    @pytest.mark.asyncio
    async def test_broad_window_needs_clarification(self, brain, templates):
        decision = await send(brain, "Tuesday afternoon please")

        assert decision.reply == templates.clarify_time_window()
        assert decision.proposed_slot is None

    @pytest.mark.asyncio
    async def test_date_and_time(self, brain):
        decision = await send(brain, "Can I come in Tuesday at 2pm?")

        assert decision.proposed_slot == datetime(2026, 10, 20, 14)
        assert decision.reply == "The earliest I can offer is tomorrow at 2 PM. Does that work for you?"

    @pytest.mark.asyncio
    async def test_date_and_time_with_minutes(self, brain):
        decision = await send(brain, "Can I come in Tuesday at 3:30?")

        assert decision.proposed_slot == datetime(2026, 10, 20, 15, 30)
        assert decision.reply == (
            "The earliest I can offer is tomorrow at 3:30 PM. Does that work for you?"
        )

    @pytest.mark.asyncio
    async def test_window_unavailable(self, brain, store):
        store.book(datetime(2026, 10, 20, 14), datetime(2026, 10, 20, 15))

        decision = await send(brain, "Can I come in Tuesday at 2pm?")

        assert decision.proposed_slot == datetime(2026, 10, 20, 9)
        assert decision.reply.startswith("I don't have availability in that time window")

    @pytest.mark.asyncio
    async def test_closed_day(self, brain):
        decision = await send(brain, "Do you have anything Saturday?")

        assert decision.proposed_slot == datetime(2026, 10, 26, 9)
        assert decision.reply == (
            "We're closed Saturday — but I can fit you in on Oct 26 at 9 AM. Does that work?"
        )

    @pytest.mark.asyncio
    async def test_fully_booked_day(self, brain, store):
        store.book(datetime(2026, 10, 20, 9), datetime(2026, 10, 20, 17))

        decision = await send(brain, "Do you have anything Tuesday?")

        assert decision.proposed_slot == datetime(2026, 10, 21, 9)
        assert decision.reply.startswith("We're fully booked tomorrow")

    @pytest.mark.asyncio
    async def test_time_without_date_asks_for_date(self, brain, templates):
        decision = await send(brain, "How about 3pm?")

        assert decision.reply == templates.clarify_date()

    @pytest.mark.asyncio
    async def test_time_only_after_date_asks_for_date(self, brain, memory, templates):
        await send(brain, "Do you have anything Wednesday?")

        decision = await send(brain, "what about 3pm?")

        assert decision.reply == templates.clarify_date()
        assert await memory.has_asked_question(CONV, "date")

    @pytest.mark.asyncio
    async def test_urgent_request(self, brain):
        decision = await send(brain, "I need something asap")

        assert decision.proposed_slot == datetime(2026, 10, 19, 10)
        assert decision.reply == "I can fit you in today at 10 AM. Does that work?"

    @pytest.mark.asyncio
    async def test_no_availability(self, memory, clock, notifications, templates):
        brain = SchedulingBrain(
            store=FakeSchedulingStore(), memory=memory, notifications=notifications, clock=clock
        )

        decision = await send(brain, "Hi, I'd like to book an appointment")

        assert decision.reply == templates.no_availability()


class TestResets:
    """Loop detection and memory expiry."""

    @pytest.mark.asyncio
    async def test_repeated_ok_loops_then_hard_resets(self, brain, templates, memory):
        replies = [(await send(brain, "ok")).reply for _ in range(4)]

        assert replies[1] == templates.loop_reset()
        assert replies[2] == templates.loop_reset()
        assert replies[3] == templates.loop_hard_reset()
        assert await memory.get_loop_count(CONV) == 0

    @pytest.mark.asyncio
    async def test_stale_conversation_resets(self, brain, clock, templates, memory):
        await send(brain, "Hi, I'd like to book an appointment")
        clock.advance(hours=25)

        decision = await send(brain, "Can I come in Thursday at 2pm?")

        assert decision.reply == templates.memory_reset()
        state = await memory.get_or_create(CONV)
        assert state.last_proposed_slot is None


class TestEscalation:
    """Safety and human handover."""

    @pytest.mark.asyncio
    async def test_self_harm_deflects_and_hands_over(self, brain, store):
        decision = await send(brain, "I want to die")

        assert decision.reply == SafetyFilter.get_deflection_message(SafetyCategory.SELF_HARM)
        record = store.handovers[CONV]
        assert record.active
        assert record.urgency_score == 10
        assert "unsafe_content" in record.triggers

    @pytest.mark.asyncio
    async def test_explicit_human_request(self, brain, store, notifications, templates, memory):
        decision = await send(
            brain, "Can I talk to a real person?", customer_phone="+15550001111"
        )

        assert decision.reply == templates.handover_escalated()
        assert store.handovers[CONV].last_notified_at == NOW
        assert await memory.is_silenced(CONV)
        payload = notifications.send_handover_notification.call_args.args[0]
        assert payload.urgency_score == 8
        assert payload.customer_phone == "+15550001111"
        assert payload.last_messages == ["[customer] Can I talk to a real person?"]

    @pytest.mark.asyncio
    async def test_silent_while_in_handover(self, brain, templates):
        await send(brain, "Can I talk to a real person?")

        decision = await send(brain, "Tuesday at 2pm?")

        assert decision.reply == templates.handover_silent()
        assert decision.proposed_slot is None

    @pytest.mark.asyncio
    async def test_notifications_throttled(self, brain, notifications, clock):
        await send(brain, "I want to die")
        await brain.handovers.end_handover(CONV)
        clock.advance(minutes=2)

        await send(brain, "I want to die")

        assert notifications.send_handover_notification.await_count == 1

    @pytest.mark.asyncio
    async def test_notification_failure_still_replies(self, brain, notifications, store, templates):
        notifications.send_handover_notification.side_effect = RuntimeError("gateway down")

        decision = await send(brain, "Can I talk to a real person?")

        assert decision.reply == templates.handover_escalated()
        assert store.handovers[CONV].last_notified_at is None

    @pytest.mark.asyncio
    async def test_vip_escalates_on_abandoning(self, brain, templates):
        decision = await send(brain, "never mind", is_vip=True)

        assert decision.reply == templates.handover_escalated()

    @pytest.mark.asyncio
    async def test_non_vip_abandoning_does_not_escalate(self, brain, templates):
        decision = await send(brain, "never mind")

        assert decision.reply != templates.handover_escalated()


class TestFailures:
    """Internal errors never reach the customer."""

    @pytest.mark.asyncio
    async def test_store_failure_returns_fallback(self, brain, store, templates, memory):
        store.fail = True

        decision = await send(brain, "Hi, I'd like to book an appointment")

        assert decision.reply == templates.fallback()
        assert not decision.should_book
        assert (await memory.last_messages(CONV))[-1] == f"[ai] {templates.fallback()}"
