"""Handover detection module."""

from .detector import HandoverDecision, HandoverDetectionEngine

__all__ = [
    "HandoverDecision",
    "HandoverDetectionEngine",
]
