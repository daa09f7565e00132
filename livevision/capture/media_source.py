"""Video source lifecycle: acquire, swap, release.

The controller is the only writer of ``session.source``,
``session.live_handle`` and ``session.acquisition_error``.

Exclusivity:
    acquire() releases the current handle before asking for a new one, and
    every acquire()/release() bumps a generation counter. An open that
    completes after its generation was overtaken is stopped on the spot and
    never stored, so overlapping calls cannot leave two handles alive.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from livevision.capture.base import CaptureCapability, LiveHandle
from livevision.errors import AcquisitionError, CaptureDeviceError
from livevision.models.session import Session, SourceKind

logger = logging.getLogger(__name__)


@dataclass
class AcquireResult:
    """Result of an acquire() call."""

    success: bool = False
    kind: SourceKind = SourceKind.NONE
    error: Optional[str] = None
    superseded: bool = False


class MediaSourceController:
    """Owns the live handle of a session."""

    def __init__(
        self,
        session: Session,
        capability: CaptureCapability,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """Initialize the controller.

        Args:
            session: Shared session state
            capability: Capture capability used to open handles
            on_change: Called after every state transition
        """
        self.session = session
        self.capability = capability
        self._on_change = on_change

        self._generation = 0
        self._acquired_callbacks: List[Callable[[SourceKind], None]] = []

    def add_acquired_callback(self, callback: Callable[[SourceKind], None]) -> None:
        """Add a callback run after each successful acquisition.

        Args:
            callback: Function(kind) to call
        """
        self._acquired_callbacks.append(callback)

    async def acquire(self, kind: SourceKind) -> AcquireResult:
        """Open a new source of the given kind, replacing the current one.

        Args:
            kind: SourceKind.CAMERA or SourceKind.SCREEN

        Returns:
            AcquireResult; failures are also stored as session.acquisition_error
        """
        if kind == SourceKind.NONE:
            raise ValueError("Cannot acquire SourceKind.NONE, use release()")

        self.release()
        self._generation += 1
        generation = self._generation

        if self.session.acquisition_error is not None:
            self.session.acquisition_error = None
            self._notify()

        logger.info(f"Acquiring {kind.value} source")

        try:
            handle = await self.capability.open(kind)
        except AcquisitionError as e:
            return self._acquisition_failed(kind, generation, e)
        except Exception as e:
            logger.exception(f"Unexpected error opening {kind.value} source")
            return self._acquisition_failed(kind, generation, CaptureDeviceError(str(e)))

        if generation != self._generation:
            logger.info(f"{kind.value} acquisition superseded, stopping new handle")
            self._stop_handle(handle)
            return AcquireResult(kind=kind, superseded=True)

        self.session.live_handle = handle
        self.session.source = kind
        handle.on_external_end(lambda: self._on_external_end(handle))
        logger.info(f"Source active: {kind.value}")

        for callback in self._acquired_callbacks:
            try:
                callback(kind)
            except Exception as e:
                logger.error(f"Acquired callback error: {e}")

        self._notify()
        return AcquireResult(success=True, kind=kind)

    def release(self) -> None:
        """Stop the current source. Idempotent; also cancels a pending acquire."""
        self._generation += 1

        handle = self.session.live_handle
        was_active = handle is not None or self.session.source != SourceKind.NONE

        # Clear state before stopping so the old handle is never observable
        self.session.live_handle = None
        self.session.source = SourceKind.NONE

        if handle is not None:
            self._stop_handle(handle)

        if was_active:
            logger.info("Source released")
            self._notify()

    def current_frame(self) -> Optional[np.ndarray]:
        """Most recent frame of a healthy live handle, else None."""
        handle = self.session.live_handle
        if handle is None or not handle.healthy:
            return None
        return handle.latest_frame()

    def _acquisition_failed(
        self,
        kind: SourceKind,
        generation: int,
        error: AcquisitionError,
    ) -> AcquireResult:
        if generation != self._generation:
            logger.info(f"Superseded {kind.value} acquisition failed: {error}")
            return AcquireResult(kind=kind, superseded=True, error=str(error))

        message = error.user_message()
        logger.error(f"Failed to acquire {kind.value} source: {error}")

        self.session.live_handle = None
        self.session.source = SourceKind.NONE
        self.session.acquisition_error = message
        self._notify()
        return AcquireResult(kind=kind, error=message)

    def _on_external_end(self, handle: LiveHandle) -> None:
        if handle is not self.session.live_handle:
            logger.debug("Ignoring end signal from a replaced handle")
            return

        logger.info(f"{handle.kind.value} source ended externally")
        self.release()

    def _stop_handle(self, handle: LiveHandle) -> None:
        try:
            handle.stop()
        except Exception as e:
            logger.error(f"Error stopping {handle.kind.value} handle: {e}")

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
