"""
Scheduling Module

Provides the scheduling brain, slot search, recurrence expansion,
handover management and reply templates.

Usage:
    from app.core.scheduling import get_scheduling_handler

    handler = get_scheduling_handler()
    result = await handler.handle_inbound(
        message="Can I come in tomorrow morning?",
        conversation_id="conv-123",
        client_id="client-1",
    )
    print(result.reply)
"""

# Store
from app.core.scheduling.store import (
    StoreError,
    SchedulingStore,
    AvailabilityRange,
    BlockedRange,
    BookingRecord,
    HandoverRecord,
)

# Recurrence
from app.core.scheduling.recurrence import (
    RecurrenceRuleError,
    RecurrenceFrequency,
    RecurrenceRule,
    BookingOccurrence,
    RecurrenceEngine,
    get_recurrence_engine,
)

# Slot Search
from app.core.scheduling.slot_finder import (
    SlotSearchError,
    SlotRequest,
    AvailableSlot,
    SlotFinder,
)

# Handover and Replies
from app.core.scheduling.handover import HandoverManager
from app.core.scheduling.templates import MessageTemplates
from app.core.scheduling.events import AdminEvent, log_event

# Scheduling Brain (main orchestrator)
from app.core.scheduling.engine import (
    SchedulingBrain,
    SchedulingRequest,
    SchedulingDecision,
    get_scheduling_brain,
)
from app.core.scheduling.handler import (
    SchedulingHandler,
    InboundResult,
    get_scheduling_handler,
)

__all__ = [
    # Store
    "StoreError",
    "SchedulingStore",
    "AvailabilityRange",
    "BlockedRange",
    "BookingRecord",
    "HandoverRecord",
    # Recurrence
    "RecurrenceRuleError",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "BookingOccurrence",
    "RecurrenceEngine",
    "get_recurrence_engine",
    # Slot Search
    "SlotSearchError",
    "SlotRequest",
    "AvailableSlot",
    "SlotFinder",
    # Handover and Replies
    "HandoverManager",
    "MessageTemplates",
    "AdminEvent",
    "log_event",
    # Scheduling Brain
    "SchedulingBrain",
    "SchedulingRequest",
    "SchedulingDecision",
    "get_scheduling_brain",
    "SchedulingHandler",
    "InboundResult",
    "get_scheduling_handler",
]
