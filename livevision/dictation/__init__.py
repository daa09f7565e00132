"""Speech-to-text dictation into the question buffer."""

from livevision.dictation.base import (
    DictationCapability,
    DictationEvent,
    DictationEventType,
    DictationSession,
)
from livevision.dictation.controller import DictationController

__all__ = [
    "DictationCapability",
    "DictationController",
    "DictationEvent",
    "DictationEventType",
    "DictationSession",
]
