"""Multimodal analysis: service client and single-flight coordinator."""

from livevision.analysis.base import AnalysisCapability, AnalysisResponse
from livevision.analysis.client import GeminiAnalysisClient
from livevision.analysis.coordinator import AnalysisCoordinator

__all__ = [
    "AnalysisCapability",
    "AnalysisCoordinator",
    "AnalysisResponse",
    "GeminiAnalysisClient",
]
