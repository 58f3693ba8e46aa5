"""
Conversation state models.

Stores per-conversation scheduling context: the last proposed slot,
customer preferences, declined slots, loop/decline/contradiction
counters and the full message history.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from app.core.intelligence.slots.types import TimeWindow


class MessageSender(str, Enum):
    """Who wrote a message in the conversation."""

    CUSTOMER = "customer"
    AI = "ai"
    HUMAN = "human"


@dataclass
class ConversationMessage:
    """Single message in conversation history."""

    text: str
    sender: MessageSender
    timestamp: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "text": self.text,
            "sender": self.sender.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationMessage":
        """Create from dictionary."""
        return cls(
            text=data["text"],
            sender=MessageSender(data["sender"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class ConversationState:
    """
    Mutable scheduling context for one conversation.

    Timestamps are naive local datetimes taken from the engine clock.
    """

    conversation_id: str
    last_interaction: datetime
    created_at: datetime

    # Scheduling context
    last_proposed_slot: Optional[datetime] = None
    preferred_date: Optional[date] = None
    preferred_time_window: Optional[TimeWindow] = None
    urgency: Optional[str] = None  # "low", "medium", "high"
    previous_questions: list[str] = field(default_factory=list)
    declined_slots: list[datetime] = field(default_factory=list)

    # Loop detection ring (normalized text)
    recent_messages: list[str] = field(default_factory=list)

    # Counters
    loop_count: int = 0
    decline_count: int = 0
    contradiction_count: int = 0

    all_messages: list[ConversationMessage] = field(default_factory=list)
    silenced: bool = False

    def to_json(self) -> str:
        """Convert to JSON string for storage."""
        data = {
            "conversation_id": self.conversation_id,
            "last_interaction": self.last_interaction.isoformat(),
            "created_at": self.created_at.isoformat(),
            "last_proposed_slot": (
                self.last_proposed_slot.isoformat() if self.last_proposed_slot else None
            ),
            "preferred_date": self.preferred_date.isoformat() if self.preferred_date else None,
            "preferred_time_window": (
                self.preferred_time_window.to_dict() if self.preferred_time_window else None
            ),
            "urgency": self.urgency,
            "previous_questions": self.previous_questions,
            "declined_slots": [slot.isoformat() for slot in self.declined_slots],
            "recent_messages": self.recent_messages,
            "loop_count": self.loop_count,
            "decline_count": self.decline_count,
            "contradiction_count": self.contradiction_count,
            "all_messages": [m.to_dict() for m in self.all_messages],
            "silenced": self.silenced,
        }
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "ConversationState":
        """Create from JSON string."""
        data = json.loads(json_str)

        window = data.get("preferred_time_window")
        proposed = data.get("last_proposed_slot")
        preferred = data.get("preferred_date")

        return cls(
            conversation_id=data["conversation_id"],
            last_interaction=datetime.fromisoformat(data["last_interaction"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_proposed_slot=datetime.fromisoformat(proposed) if proposed else None,
            preferred_date=date.fromisoformat(preferred) if preferred else None,
            preferred_time_window=TimeWindow.from_dict(window) if window else None,
            urgency=data.get("urgency"),
            previous_questions=data.get("previous_questions", []),
            declined_slots=[datetime.fromisoformat(s) for s in data.get("declined_slots", [])],
            recent_messages=data.get("recent_messages", []),
            loop_count=data.get("loop_count", 0),
            decline_count=data.get("decline_count", 0),
            contradiction_count=data.get("contradiction_count", 0),
            all_messages=[
                ConversationMessage.from_dict(m) for m in data.get("all_messages", [])
            ],
            silenced=data.get("silenced", False),
        )

    def get_preferences(self) -> dict:
        """Stored customer preferences."""
        return {
            "preferred_date": self.preferred_date,
            "preferred_time_window": self.preferred_time_window,
            "urgency": self.urgency,
        }
