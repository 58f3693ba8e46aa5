"""Reply classification module."""

from .types import ReplyIntent
from .classifier import (
    ReplyClassifier,
    get_reply_classifier,
    classify_reply,
)

__all__ = [
    # Types
    "ReplyIntent",
    # Classifier
    "ReplyClassifier",
    "get_reply_classifier",
    "classify_reply",
]
