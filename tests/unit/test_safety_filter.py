"""Tests for the unsafe content filter."""

import pytest

from app.safety import SafetyCategory, SafetyFilter, check_message

SELF_HARM_REPLY = (
    "I'm really sorry you're feeling this way — I'm not able to help. "
    "Please contact local emergency services or someone you trust."
)


class TestSafetyFilter:
    """Test SafetyFilter."""

    @pytest.fixture
    def safety(self):
        return SafetyFilter()

    def test_self_harm(self, safety):
        result = safety.check("I want to hurt myself")

        assert result.to_dict() == {"safe": False, "type": "self-harm"}
        assert safety.get_deflection_message(result.category) == SELF_HARM_REPLY

    def test_self_harm_wins_over_other_content(self, safety):
        result = safety.check("Book me Tuesday at 3pm, I want to end my life")
        assert result.category == SafetyCategory.SELF_HARM

    @pytest.mark.parametrize("text,category", [
        ("I will find you", SafetyCategory.ABUSE),
        ("I'll kill you", SafetyCategory.ABUSE),
        ("can I buy drugs there", SafetyCategory.ILLEGAL),
        ("what's the treatment for a rash", SafetyCategory.MEDICAL),
        ("do you do nude photos", SafetyCategory.SEXUAL),
    ])
    def test_categories(self, safety, text, category):
        assert safety.classify(text) == category

    def test_aggressive_language_threshold(self, safety):
        assert safety.check("damn this shit").safe
        assert safety.classify("fuck this damn shit") == SafetyCategory.ABUSE

    @pytest.mark.parametrize("text", [
        "Can I book a photo shoot?",
        "I'm a returning customer",
        "What payment method do you take?",
        "Tuesday at 3pm please",
        "",
    ])
    def test_safe_messages(self, safety, text):
        assert safety.check(text).safe

    def test_deflection_messages(self, safety):
        assert safety.get_deflection_message(SafetyCategory.ABUSE) == (
            "I can help with appointments — what date works best?"
        )
        assert safety.get_deflection_message(SafetyCategory.SEXUAL) == (
            "I'm here to assist with scheduling only."
        )
        assert safety.get_deflection_message(None) == (
            "I can only help with scheduling appointments."
        )

    def test_module_helper(self):
        assert not check_message("I'm suicidal").safe
