"""Analysis coordinator.

Owns the single in-flight analysis request: snapshots the live frame into
a still payload, sends it with the current question and records exactly
one outcome per request.

State Flow:
    IDLE | SUCCEEDED | FAILED -> IN_FLIGHT (capture_and_analyze, guard passed)
    IN_FLIGHT -> SUCCEEDED (non-empty output)
    IN_FLIGHT -> FAILED (service error, empty output, timeout, exception, cancel)
    SUCCEEDED | FAILED -> IDLE (clear_result)

At most one request is outstanding: IN_FLIGHT is set before the first
suspension point, and the guard rejects every call made while it is set.
"""

import asyncio
import logging
from typing import Callable, Optional

from livevision.analysis.base import AnalysisCapability
from livevision.capture.encoding import encode_still
from livevision.capture.media_source import MediaSourceController
from livevision.config import AnalysisSettings, CaptureSettings
from livevision.errors import GuardRejection
from livevision.models.session import AnalysisState, Session, StillPayload

logger = logging.getLogger(__name__)


class AnalysisCoordinator:
    """Coordinates capture and single-flight analysis requests."""

    def __init__(
        self,
        session: Session,
        capability: AnalysisCapability,
        media: MediaSourceController,
        settings: Optional[AnalysisSettings] = None,
        capture_settings: Optional[CaptureSettings] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """Initialize the coordinator.

        Args:
            session: Shared session state
            capability: Analysis service
            media: Media source controller providing live frames
            settings: Analysis settings (model, timeout)
            capture_settings: Still encoding settings (quality, max size)
            on_change: Called after every state transition
        """
        self.session = session
        self.capability = capability
        self.media = media
        self.settings = settings or AnalysisSettings()
        self.capture_settings = capture_settings or CaptureSettings()
        self._on_change = on_change

    async def capture_and_analyze(self) -> Optional[GuardRejection]:
        """Snapshot the current frame and analyze it with the current question.

        Returns:
            GuardRejection if the call did nothing, None once a request was
            issued and its outcome recorded in session.analysis
        """
        rejection = self._check_guard()
        if rejection is not None:
            return self._reject(rejection)

        if self.session.is_live:
            still = self._snapshot()
            if still is not None:
                self.session.still_payload = still
            elif self.session.still_payload is None:
                return self._reject(GuardRejection.FRAME_UNAVAILABLE)
            else:
                logger.warning("No live frame available, reusing previous still")

        image = self.session.still_payload
        credential = self.session.credential
        question = self.session.text_buffer

        self.session.last_rejection = None
        self.session.analysis = AnalysisState.in_flight()
        logger.info(
            f"Analysis started (model={self.settings.model}, "
            f"image={image.width}x{image.height}, question={len(question)} chars)"
        )
        self._notify()

        self.session.analysis = await self._request(credential, image, question)
        logger.info(f"Analysis finished: {self.session.analysis.status.value}")
        self._notify()
        return None

    def freeze_frame(self) -> bool:
        """Store the current live frame as the still payload without analyzing.

        Returns:
            True if a still was captured
        """
        if not self.session.is_live:
            return False

        still = self._snapshot()
        if still is None:
            logger.warning("Freeze requested but no live frame is available")
            return False

        self.session.still_payload = still
        logger.info(f"Froze {still.source.value} frame {still.width}x{still.height}")
        self._notify()
        return True

    def clear_result(self) -> None:
        """Return a finished result to IDLE. No-op while a request is in flight."""
        if not self.session.analysis.has_result:
            return

        self.session.analysis = AnalysisState.idle()
        self.session.last_rejection = None
        self._notify()

    def discard_still(self) -> None:
        """Drop the still and any finished result (new source acquired)."""
        if self.session.analysis.is_in_flight:
            return

        changed = (
            self.session.still_payload is not None
            or self.session.analysis.has_result
            or self.session.last_rejection is not None
        )
        self.session.still_payload = None
        self.session.analysis = AnalysisState.idle()
        self.session.last_rejection = None
        if changed:
            self._notify()

    def _check_guard(self) -> Optional[GuardRejection]:
        if self.session.analysis.is_in_flight:
            return GuardRejection.ALREADY_IN_FLIGHT
        if self.session.credential_missing:
            return GuardRejection.NO_CREDENTIAL
        if not self.session.is_live and self.session.still_payload is None:
            return GuardRejection.NO_VISUAL_SOURCE
        return None

    def _reject(self, rejection: GuardRejection) -> GuardRejection:
        logger.warning(f"Analysis rejected: {rejection.message}")
        self.session.last_rejection = rejection
        self._notify()
        return rejection

    def _snapshot(self) -> Optional[StillPayload]:
        frame = self.media.current_frame()
        if frame is None:
            return None

        return encode_still(
            frame,
            self.session.source,
            quality=self.capture_settings.jpeg_quality,
            max_width=self.capture_settings.max_width,
            max_height=self.capture_settings.max_height,
        )

    async def _request(
        self,
        credential: str,
        image: StillPayload,
        question: str,
    ) -> AnalysisState:
        timeout = self.settings.timeout_seconds
        try:
            response = await asyncio.wait_for(
                self.capability.analyze(credential, self.settings.model, image, question),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Analysis request timed out after {timeout:g}s")
            return AnalysisState.failed(f"Analysis request timed out after {timeout:g} seconds")
        except asyncio.CancelledError:
            self.session.analysis = AnalysisState.failed("Analysis cancelled")
            self._notify()
            raise
        except Exception as e:
            logger.exception("Analysis capability raised")
            return AnalysisState.failed(str(e) or e.__class__.__name__)

        if response.success and response.output and response.output.strip():
            return AnalysisState.succeeded(response.output)

        if response.success:
            logger.warning("Analysis service returned an empty output")
        return AnalysisState.failed(response.message or "Empty response from analysis service")

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
