"""Data models for LiveVision."""

from livevision.models.session import (
    AnalysisState,
    AnalysisStatus,
    DictationState,
    Session,
    SourceKind,
    StillPayload,
)

__all__ = [
    "AnalysisState",
    "AnalysisStatus",
    "DictationState",
    "Session",
    "SourceKind",
    "StillPayload",
]
