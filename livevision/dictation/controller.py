"""Dictation controller.

Owns at most one dictation session and commits its final segments into
the session text buffer. Dictation is best effort: engine errors are
logged and the controller goes back to IDLE without surfacing them.
"""

import asyncio
import logging
from typing import Callable, Optional

from livevision.config import DictationSettings
from livevision.dictation.base import (
    DictationCapability,
    DictationEventType,
    DictationSession,
)
from livevision.models.session import DictationState, Session

logger = logging.getLogger(__name__)


class DictationController:
    """Toggles dictation and appends final segments to the text buffer.

    State Flow:
        IDLE -> LISTENING (toggle, session started)
        LISTENING -> IDLE (toggle, engine error, or end of utterance)

    The LISTENING -> IDLE transition happens exactly once per session, in
    the consumer task that drains the session's event channel.
    """

    STOP_TIMEOUT_SECONDS = 5.0

    def __init__(
        self,
        session: Session,
        capability: Optional[DictationCapability],
        settings: Optional[DictationSettings] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """Initialize dictation controller.

        Args:
            session: Shared session state
            capability: Dictation capability, or None when unsupported
            settings: Dictation settings (defaults if not provided)
            on_change: Called after every state transition
        """
        self.session = session
        self.capability = capability
        self.settings = settings or DictationSettings()
        self._on_change = on_change

        # Checked once; absence disables dictation for the controller's lifetime
        self.supported = bool(
            self.settings.enabled
            and capability is not None
            and capability.available()
        )
        if not self.supported:
            logger.info("Dictation not supported in this environment")

        self._active: Optional[DictationSession] = None
        self._task: Optional[asyncio.Task] = None
        self._starting = False
        self._cancel_start = False
        self._closed = False

    @property
    def is_listening(self) -> bool:
        return self.session.dictation_state == DictationState.LISTENING

    async def toggle(self) -> None:
        """Start dictation when idle, stop it when listening."""
        if not self.supported:
            return

        if self.is_listening:
            await self.stop()
        else:
            await self._start()

    async def stop(self) -> None:
        """Stop the active session, if any, and wait until it has ended.

        A start still waiting on the capability is abandoned: its session is
        stopped as soon as it arrives and the state stays IDLE.
        """
        if self._starting:
            self._cancel_start = True

        dsession = self._active
        task = self._task
        if dsession is None or task is None:
            return

        logger.info("Stopping dictation")
        await self._stop_session(dsession)

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Dictation session did not end after stop, cancelling")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Stop dictation for good. Later toggles are ignored."""
        self._closed = True
        await self.stop()

    def append_final(self, text: str) -> None:
        """Commit a final segment, joined to existing text with one space."""
        segment = text.strip()
        if not segment:
            return

        buffer = self.session.text_buffer
        self.session.text_buffer = buffer + (" " if buffer else "") + segment
        logger.debug(f"Dictation committed: {segment!r}")
        self._notify()

    async def _start(self) -> None:
        if self._closed or self._starting or self._active is not None:
            return

        self._starting = True
        self._cancel_start = False
        try:
            dsession = await self.capability.start(
                self.settings.locale,
                self.settings.continuous,
                self.settings.interim_results,
            )
        except Exception as e:
            logger.warning(f"Dictation failed to start: {e}")
            return
        finally:
            self._starting = False

        if self._closed or self._cancel_start:
            logger.info("Dictation stopped before it started listening")
            await self._stop_session(dsession)
            return

        self._active = dsession
        self.session.dictation_state = DictationState.LISTENING
        logger.info(f"Dictation listening ({self.settings.locale})")
        self._notify()

        self._task = asyncio.create_task(self._consume(dsession))

    async def _consume(self, dsession: DictationSession) -> None:
        try:
            async for event in dsession.events():
                if event.type == DictationEventType.PARTIAL:
                    self.session.interim_text = event.text
                    self._notify()
                elif event.type == DictationEventType.FINAL:
                    self.session.interim_text = ""
                    self.append_final(event.text)
                elif event.type == DictationEventType.ERROR:
                    logger.warning(f"Dictation error: {event.code}")
                    await self._stop_session(dsession)
                    break
                elif event.type == DictationEventType.END:
                    break
        except Exception as e:
            logger.warning(f"Dictation session failed: {e}")
        finally:
            self._finish(dsession)

    def _finish(self, dsession: DictationSession) -> None:
        if self._active is not dsession:
            return

        self._active = None
        self._task = None
        self.session.dictation_state = DictationState.IDLE
        self.session.interim_text = ""
        logger.info("Dictation idle")
        self._notify()

    async def _stop_session(self, dsession: DictationSession) -> None:
        try:
            await dsession.stop()
        except Exception as e:
            logger.warning(f"Error stopping dictation session: {e}")

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
