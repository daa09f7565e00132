"""Data models for the capture and analysis session."""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from livevision.errors import GuardRejection

if TYPE_CHECKING:
    from livevision.capture.base import LiveHandle


class SourceKind(Enum):
    """Active video source."""

    NONE = "none"
    CAMERA = "camera"  # Local camera device
    SCREEN = "screen"  # Shared screen / monitor


class DictationState(Enum):
    """Dictation sub-session state."""

    IDLE = "idle"
    LISTENING = "listening"


class AnalysisStatus(Enum):
    """Analysis request state machine states."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AnalysisState:
    """Current analysis state.

    ``text`` holds the service output when SUCCEEDED and the failure
    reason when FAILED; it is None otherwise.
    """

    status: AnalysisStatus = AnalysisStatus.IDLE
    text: Optional[str] = None

    @classmethod
    def idle(cls) -> "AnalysisState":
        return cls()

    @classmethod
    def in_flight(cls) -> "AnalysisState":
        return cls(status=AnalysisStatus.IN_FLIGHT)

    @classmethod
    def succeeded(cls, output: str) -> "AnalysisState":
        return cls(status=AnalysisStatus.SUCCEEDED, text=output)

    @classmethod
    def failed(cls, reason: str) -> "AnalysisState":
        return cls(status=AnalysisStatus.FAILED, text=reason)

    @property
    def is_in_flight(self) -> bool:
        return self.status == AnalysisStatus.IN_FLIGHT

    @property
    def has_result(self) -> bool:
        return self.status in (AnalysisStatus.SUCCEEDED, AnalysisStatus.FAILED)


@dataclass
class StillPayload:
    """A single encoded frame used as the visual input of a request."""

    data: bytes
    width: int
    height: int
    source: SourceKind = SourceKind.NONE
    mime_type: str = "image/jpeg"
    captured_at: datetime = field(default_factory=datetime.now)

    def to_base64(self) -> str:
        """Encoded image as a base64 string (no data URL prefix)."""
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def to_dict(self) -> Dict[str, Any]:
        """Metadata only; the image bytes are not included."""
        return {
            "width": self.width,
            "height": self.height,
            "size_bytes": len(self.data),
            "mime_type": self.mime_type,
            "source": self.source.value,
            "captured_at": self.captured_at.isoformat(),
        }


@dataclass
class Session:
    """Shared state of one capture and analysis session.

    Ownership:
        source, live_handle, acquisition_error - MediaSourceController
        text_buffer                            - DictationController and operator edits
        interim_text, dictation_state          - DictationController
        analysis, still_payload, last_rejection - AnalysisCoordinator
        credential                             - set once at startup
    """

    source: SourceKind = SourceKind.NONE
    live_handle: Optional["LiveHandle"] = None
    still_payload: Optional[StillPayload] = None
    text_buffer: str = ""
    interim_text: str = ""
    dictation_state: DictationState = DictationState.IDLE
    analysis: AnalysisState = field(default_factory=AnalysisState.idle)
    credential: Optional[str] = field(default=None, repr=False)
    acquisition_error: Optional[str] = None
    last_rejection: Optional[GuardRejection] = None

    @property
    def is_live(self) -> bool:
        return self.source != SourceKind.NONE and self.live_handle is not None

    @property
    def credential_missing(self) -> bool:
        return not self.credential

    def to_dict(self) -> Dict[str, Any]:
        """Read-only projection for the presentation layer.

        Never includes the credential itself.
        """
        return {
            "source": self.source.value,
            "live": self.is_live,
            "still": self.still_payload.to_dict() if self.still_payload else None,
            "text_buffer": self.text_buffer,
            "interim_text": self.interim_text,
            "dictation_state": self.dictation_state.value,
            "analysis_status": self.analysis.status.value,
            "analysis_text": self.analysis.text,
            "credential_missing": self.credential_missing,
            "acquisition_error": self.acquisition_error,
            "last_rejection": self.last_rejection.value if self.last_rejection else None,
        }
