"""Intent types for reply classification."""

from enum import Enum


class ReplyIntent(str, Enum):
    """How a customer responded to a proposed slot."""

    CONFIRM = "confirm"    # "yes", "perfect", "book it"
    DECLINE = "decline"    # "no", "can't", "something later"
    NONE = "none"          # Anything else (new request, question, noise)
