"""Structured admin event logging for scheduling decisions."""

import logging
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

MESSAGE_PREVIEW_LENGTH = 100


class AdminEvent(str, Enum):
    """Decision points recorded for admin monitoring."""

    AI_SILENCED_FOR_HANDOVER = "ai_silenced_for_handover"
    UNSAFE_CONTENT = "unsafe_content"
    MEMORY_RESET = "memory_reset"
    LOOP_DETECTED = "loop_detected"
    PARSED_DATE = "parsed_date"
    PARSED_TIME = "parsed_time"
    URGENCY_DETECTED = "urgency_detected"
    CONTRADICTION_DETECTED = "contradiction_detected"
    BOOKING_SUCCESS = "booking_success"
    SLOT_CHOSEN = "slot_chosen"
    CLARIFICATION_NEEDED = "clarification_needed"
    PATH_CHOSEN = "path_chosen"
    FALLBACK_TRIGGERED = "fallback_triggered"
    HANDOVER_TRIGGERED = "handover_triggered"
    HANDOVER_NOTIFIED = "handover_notified"
    HANDOVER_SUPPRESSED = "handover_suppressed"
    HANDOVER_CLOSED = "handover_closed"
    BOOKING_CREATED = "booking_created"
    BOOKING_ERROR = "booking_error"
    ERROR = "error"


def preview(message: Optional[str]) -> str:
    """Message text shortened for logs."""
    return (message or "")[:MESSAGE_PREVIEW_LENGTH]


def log_event(
    event: AdminEvent,
    conversation_id: str,
    client_id: str,
    data: Optional[dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Emit one admin event record.

    The record carries the event name and ids as `extra` attributes so
    log handlers can route or index them.
    """
    payload = data or {}
    logger.log(
        level,
        f"event={event.value} conversation={conversation_id} client={client_id} data={payload}",
        extra={
            "admin_event": event.value,
            "conversation_id": conversation_id,
            "client_id": client_id,
            "event_data": payload,
        },
    )
