"""Session manager.

Builds one Session and hands it by reference to the media, dictation and
analysis controllers. Used as an async context manager, it guarantees that
the live handle is released and dictation is stopped on every exit path.

Usage:
    async with SessionManager(capture, dictation, analysis, credentials) as manager:
        await manager.acquire(SourceKind.CAMERA)
        manager.set_text("What is on the table?")
        await manager.capture_and_analyze()
        print(manager.session.analysis)
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from livevision.analysis.base import AnalysisCapability
from livevision.analysis.coordinator import AnalysisCoordinator
from livevision.capture.base import CaptureCapability
from livevision.capture.media_source import AcquireResult, MediaSourceController
from livevision.config import Settings
from livevision.credentials import CredentialStore
from livevision.dictation.base import DictationCapability
from livevision.dictation.controller import DictationController
from livevision.errors import GuardRejection
from livevision.models.session import Session, SourceKind

logger = logging.getLogger(__name__)


class SessionManager:
    """Composes the three controllers around one shared Session.

    Attributes:
        session: Shared session state (read-only for callers)
        media: MediaSourceController
        dictation: DictationController
        analysis: AnalysisCoordinator
    """

    def __init__(
        self,
        capture: CaptureCapability,
        dictation: Optional[DictationCapability],
        analysis: AnalysisCapability,
        credentials: CredentialStore,
        settings: Optional[Settings] = None,
    ):
        """Initialize the session manager.

        Args:
            capture: Capture capability
            dictation: Dictation capability, or None when unsupported
            analysis: Analysis capability
            credentials: Credential store, read once in start()
            settings: Settings (defaults if not provided)
        """
        self.settings = settings or Settings()
        self.session = Session()

        self._analysis_capability = analysis
        self._credentials = credentials
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._tasks: Set[asyncio.Task] = set()

        self.media = MediaSourceController(self.session, capture, on_change=self._notify)
        self.dictation = DictationController(
            self.session,
            dictation,
            self.settings.dictation,
            on_change=self._notify,
        )
        self.analysis = AnalysisCoordinator(
            self.session,
            analysis,
            self.media,
            settings=self.settings.analysis,
            capture_settings=self.settings.capture,
            on_change=self._notify,
        )

        # A new source invalidates the previous still and result
        self.media.add_acquired_callback(lambda kind: self.analysis.discard_still())

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """Read the credential and put the session at rest."""
        self.session.credential = self._credentials.get()
        self.session.text_buffer = self.settings.analysis.default_question

        if self.session.credential_missing:
            logger.warning("API key not configured - analysis disabled")
        logger.info(
            f"Session started (dictation {'available' if self.dictation.supported else 'unavailable'})"
        )
        self._notify()

    async def close(self) -> None:
        """Tear down: cancel analysis, stop dictation, release the source.

        Each step runs even if an earlier one raises.
        """
        logger.info("Closing session")
        try:
            await self._cancel_tasks()
        finally:
            try:
                await self.dictation.close()
            finally:
                try:
                    self.media.release()
                finally:
                    await self._analysis_capability.close()
        logger.info("Session closed")

    # ==================== Operator actions ====================

    async def acquire(self, kind: SourceKind) -> AcquireResult:
        """Start (or swap to) a camera or screen source."""
        return await self.media.acquire(kind)

    def release(self) -> None:
        """Stop the current source."""
        self.media.release()

    async def toggle_dictation(self) -> None:
        """Start or stop dictation."""
        await self.dictation.toggle()

    def set_text(self, text: str) -> None:
        """Replace the question buffer (operator edit)."""
        self.session.text_buffer = text
        self._notify()

    async def capture_and_analyze(self) -> Optional[GuardRejection]:
        """Capture and analyze, waiting for the outcome."""
        return await self.analysis.capture_and_analyze()

    def start_analysis(self) -> asyncio.Task:
        """Capture and analyze in the background.

        The session stays responsive while the request is in flight; the
        task is cancelled on close().
        """
        task = asyncio.create_task(self.analysis.capture_and_analyze())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def freeze(self, stop_source: bool = False) -> bool:
        """Keep the current frame as the still, optionally stopping the source.

        Later analyses reuse the frozen still once the source is gone.
        """
        frozen = self.analysis.freeze_frame()
        if frozen and stop_source:
            self.media.release()
        return frozen

    def clear_result(self) -> None:
        """Dismiss a finished analysis result."""
        self.analysis.clear_result()

    # ==================== Observation ====================

    def add_listener(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Add a listener called with the session projection on every transition.

        Args:
            callback: Function(state_dict) to call
        """
        self._listeners.append(callback)

    def snapshot(self) -> Dict[str, Any]:
        """Current read-only projection of the session."""
        return self.session.to_dict()

    def _notify(self) -> None:
        if not self._listeners:
            return

        state = self.session.to_dict()
        for callback in self._listeners:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Session listener error: {e}")

    async def _cancel_tasks(self) -> None:
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
