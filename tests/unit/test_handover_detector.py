"""Tests for handover detection."""

import pytest
from datetime import datetime

from app.core.intelligence.handover import HandoverDetectionEngine

CID = "conv-1"


class TestHandoverSignals:
    """Test individual detectors."""

    @pytest.fixture
    def detector(self, memory):
        return HandoverDetectionEngine(memory)

    def test_explicit_request(self, detector):
        assert detector.is_explicit_human_request("Can I speak to a real person?")
        assert not detector.is_explicit_human_request("Tuesday at 3pm")

    def test_frustration(self, detector):
        assert detector.is_frustrated("I already told you that")
        assert not detector.is_frustrated("I said Tuesday earlier, is that free?")

    def test_anger(self, detector):
        assert detector.is_angry("this is unacceptable")
        assert detector.is_angry("THIS IS UNACCEPTABLE")
        assert detector.is_angry("hello???")
        assert not detector.is_angry("OK")
        assert not detector.is_angry("Friday at 2pm works")

    def test_capitals_alone_are_not_anger(self, detector):
        assert not detector.is_angry("YES PERFECT")
        assert not detector.is_angry("TUESDAY 2PM")

    def test_confusion(self, detector):
        assert detector.is_confused("I don't understand")
        assert detector.is_confused("what? when? where?")
        assert not detector.is_confused("Is Friday free?")

    def test_complex_request(self, detector):
        assert detector.is_complex_request("how much does it cost")
        assert not detector.is_complex_request("I'm a returning customer")

    def test_abandoning(self, detector):
        assert detector.is_abandoning("never mind")
        assert not detector.is_abandoning("maybe next week")


class TestDetectHandover:
    """Test escalation decisions."""

    @pytest.fixture
    def detector(self, memory):
        return HandoverDetectionEngine(memory)

    @pytest.mark.asyncio
    async def test_plain_message_does_not_escalate(self, detector):
        decision = await detector.detect_handover("Friday morning please", CID)

        assert not decision.should_escalate
        assert decision.reason is None
        assert decision.triggers == []
        assert 1 <= decision.urgency_score <= 10

    @pytest.mark.asyncio
    async def test_explicit_request_escalates(self, detector):
        decision = await detector.detect_handover("I want to talk to a human", CID)

        assert decision.should_escalate
        assert decision.urgency_score == 8
        assert "explicit_human_request" in decision.triggers

    @pytest.mark.asyncio
    async def test_highest_severity_sets_score(self, detector):
        decision = await detector.detect_handover("this is ridiculous, let me speak to the owner", CID)

        assert decision.should_escalate
        assert decision.urgency_score == 9
        assert decision.reason == "Customer showing signs of anger"

    @pytest.mark.asyncio
    async def test_abandoning_alone_does_not_escalate(self, detector):
        decision = await detector.detect_handover("never mind", CID)

        assert not decision.should_escalate
        assert decision.triggers == ["abandoning"]

    @pytest.mark.asyncio
    async def test_vip_escalates_at_lower_severity(self, detector):
        decision = await detector.detect_handover("never mind", CID, is_vip=True)

        assert decision.should_escalate
        assert "vip_customer" in decision.triggers
        assert decision.urgency_score >= 8

    @pytest.mark.asyncio
    async def test_repeated_declines(self, detector, memory):
        for hour in (10, 11, 12):
            await memory.decline_slot(CID, datetime(2026, 10, 19, hour))

        decision = await detector.detect_handover("what about Friday", CID)

        assert decision.should_escalate
        assert decision.triggers == ["repeated_declines"]
        assert decision.urgency_score == 7

    @pytest.mark.asyncio
    async def test_loop_threshold(self, detector, memory):
        for _ in range(4):
            await memory.detect_loop(CID, "ok")

        decision = await detector.detect_handover("ok", CID)

        assert decision.should_escalate
        assert "loop_detected" in decision.triggers

    @pytest.mark.parametrize("score,level", [(10, "CRITICAL"), (9, "CRITICAL"), (7, "HIGH"), (5, "MEDIUM"), (2, "LOW")])
    def test_urgency_level(self, score, level):
        assert HandoverDetectionEngine.get_urgency_level(score) == level
