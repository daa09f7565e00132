"""Dictation capability contract.

A dictation session is a message channel: events() yields partial and
final transcript segments and finishes with an END (or ERROR) event.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional


class DictationEventType(Enum):
    """Kinds of events emitted by a dictation session."""

    PARTIAL = "partial"  # Interim transcript, may still change
    FINAL = "final"      # Confirmed segment
    ERROR = "error"      # Engine error; the session is over
    END = "end"          # Session ended (stop requested or end of utterance)


@dataclass(frozen=True)
class DictationEvent:
    """One event from a dictation session."""

    type: DictationEventType
    text: str = ""
    code: Optional[str] = None

    @classmethod
    def partial(cls, text: str) -> "DictationEvent":
        return cls(DictationEventType.PARTIAL, text)

    @classmethod
    def final(cls, text: str) -> "DictationEvent":
        return cls(DictationEventType.FINAL, text)

    @classmethod
    def error(cls, code: str) -> "DictationEvent":
        return cls(DictationEventType.ERROR, code=code)

    @classmethod
    def end(cls) -> "DictationEvent":
        return cls(DictationEventType.END)


class DictationSession(ABC):
    """A running speech-to-text session."""

    @abstractmethod
    def events(self) -> AsyncIterator[DictationEvent]:
        """Async iterator over session events."""

    @abstractmethod
    async def stop(self) -> None:
        """Ask the engine to finish. An END event follows."""


class DictationCapability(ABC):
    """Starts dictation sessions."""

    @abstractmethod
    def available(self) -> bool:
        """Whether speech recognition is supported in this environment."""

    @abstractmethod
    async def start(self, locale: str, continuous: bool, interim: bool) -> DictationSession:
        """Start a new session."""
