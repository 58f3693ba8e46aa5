"""
Intelligence Layer Module

Provides rule-based slot extraction, reply classification, conversation
memory and handover detection for the scheduling engine.

Usage:
    from app.core.intelligence import (
        extract_slots,
        classify_reply,
        get_conversation_memory,
    )

    # Extract slots
    slots = extract_slots("Tuesday at 2pm")
    print(slots.date)  # next Tuesday
    print(slots.time_window)  # 14:00-14:30

    # Classify a reply to a proposed slot
    print(classify_reply("yes perfect"))  # ReplyIntent.CONFIRM
"""

# Slot Extraction
from app.core.intelligence.slots import (
    ExtractedSlots,
    TimeWindow,
    UrgencyLevel,
    DateParser,
    TimeParser,
    UrgencyClassifier,
    SlotExtractor,
    get_slot_extractor,
    extract_slots,
)

# Reply Classification
from app.core.intelligence.intent import (
    ReplyIntent,
    ReplyClassifier,
    get_reply_classifier,
    classify_reply,
)

# Conversation Memory
from app.core.intelligence.session import (
    ConversationMessage,
    ConversationState,
    MessageSender,
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
    ConversationMemory,
    get_conversation_memory,
)

# Handover Detection
from app.core.intelligence.handover import HandoverDecision, HandoverDetectionEngine

__all__ = [
    # Slots
    "ExtractedSlots",
    "TimeWindow",
    "UrgencyLevel",
    "DateParser",
    "TimeParser",
    "UrgencyClassifier",
    "SlotExtractor",
    "get_slot_extractor",
    "extract_slots",
    # Replies
    "ReplyIntent",
    "ReplyClassifier",
    "get_reply_classifier",
    "classify_reply",
    # Memory
    "ConversationMessage",
    "ConversationState",
    "MessageSender",
    "ConversationStore",
    "InMemoryConversationStore",
    "RedisConversationStore",
    "ConversationMemory",
    "get_conversation_memory",
    # Handover
    "HandoverDecision",
    "HandoverDetectionEngine",
]
