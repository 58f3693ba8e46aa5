"""
Safety Module

Screens inbound messages for unsafe content before any scheduling
logic runs and supplies the fixed deflection reply per category.
"""

from app.safety.safety_filter import (
    SafetyCategory,
    SafetyCheckResult,
    SafetyFilter,
    get_safety_filter,
    check_message,
)

__all__ = [
    "SafetyCategory",
    "SafetyCheckResult",
    "SafetyFilter",
    "get_safety_filter",
    "check_message",
]
