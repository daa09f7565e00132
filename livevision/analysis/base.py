"""Analysis capability contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from livevision.models.session import StillPayload


@dataclass
class AnalysisResponse:
    """Result of one analysis request."""

    success: bool = False
    output: Optional[str] = None
    message: Optional[str] = None


class AnalysisCapability(ABC):
    """Single-shot multimodal analysis service."""

    @abstractmethod
    async def analyze(
        self,
        credential: str,
        model: str,
        image: StillPayload,
        question: str,
    ) -> AnalysisResponse:
        """Send one image and question, return the service's answer.

        Implementations report service-side failures in the response rather
        than raising. Cancelling the awaiting task aborts the request.
        """

    async def close(self) -> None:
        """Release client resources."""
