"""Capture capability contract and the threaded handle shared by backends.

A capture capability opens exclusive live handles. A handle keeps the
newest frame from its source and can report that the source ended on its
own (device unplugged, screen share revoked) through on_external_end().
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import numpy as np

from livevision.models.session import SourceKind

logger = logging.getLogger(__name__)


class LiveHandle(ABC):
    """An open, exclusively owned video source."""

    kind: SourceKind = SourceKind.NONE

    @abstractmethod
    def latest_frame(self) -> Optional[np.ndarray]:
        """Most recent BGR frame, or None before the first one arrives."""

    @property
    @abstractmethod
    def healthy(self) -> bool:
        """Whether the handle is running and has not ended."""

    @abstractmethod
    def stop(self) -> None:
        """Release the device. Must be idempotent."""

    @abstractmethod
    def on_external_end(self, callback: Callable[[], None]) -> None:
        """Register a callback run on the event loop when the source ends by itself."""


class CaptureCapability(ABC):
    """Opens live handles for a given source kind."""

    @abstractmethod
    async def open(self, kind: SourceKind) -> LiveHandle:
        """Open a new live handle.

        Raises:
            CapturePermissionError: Access refused
            CaptureDeviceError: Device missing or unusable
        """


class ThreadedLiveHandle(LiveHandle):
    """Live handle that reads frames in a daemon thread.

    Subclasses implement open_device(), _read_frame() and _release_device().
    The device is released by the reader thread when it exits. External
    end is detected after max_read_failures consecutive failed reads and is
    delivered on the event loop via call_soon_threadsafe.
    """

    RETRY_DELAY_SECONDS = 0.05

    def __init__(self, kind: SourceKind, max_read_failures: int = 30, name: str = "Capture"):
        self.kind = kind
        self.max_read_failures = max_read_failures
        self._name = name

        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._frame_count = 0

        self._running = False
        self._started = False
        self._ended = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._end_callbacks: List[Callable[[], None]] = []

    # ==================== Subclass hooks ====================

    @abstractmethod
    def open_device(self) -> None:
        """Open the underlying device. Called once, off the event loop."""

    def _thread_setup(self) -> None:
        """Per-thread initialization run inside the reader thread."""

    @abstractmethod
    def _read_frame(self) -> Optional[np.ndarray]:
        """Read one frame; None on failure."""

    @abstractmethod
    def _release_device(self) -> None:
        """Release the underlying device."""

    def _pace(self) -> None:
        """Wait between reads. Blocking backends need no extra delay.

        Timed waits go through _stop_event so stop() cuts them short.
        """

    # ==================== LiveHandle ====================

    @property
    def healthy(self) -> bool:
        return self._running and not self._ended

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def latest_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def on_external_end(self, callback: Callable[[], None]) -> None:
        self._end_callbacks.append(callback)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the reader thread. External end is reported on ``loop``."""
        if self._running:
            return

        self._loop = loop
        self._running = True
        self._started = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._reader_loop,
            daemon=True,
            name=self._name,
        )
        self._thread.start()
        logger.info(f"{self._name}: started")

    def stop(self) -> None:
        """Stop the reader thread and release the device.

        Pacing and retry waits wake immediately, so the join only waits
        out a read already in progress (bounded at two seconds). A handle
        that was opened but never started is released here directly.
        """
        if not self._running:
            if not self._started:
                self._release_device()
            return

        self._running = False
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        logger.info(f"{self._name}: stopped")

    # ==================== Reader thread ====================

    def _reader_loop(self) -> None:
        failures = 0
        try:
            self._thread_setup()
            while self._running:
                try:
                    frame = self._read_frame()
                except Exception as e:
                    logger.debug(f"{self._name}: read error: {e}")
                    frame = None

                if frame is None:
                    failures += 1
                    if failures >= self.max_read_failures:
                        logger.warning(
                            f"{self._name}: {failures} consecutive read failures, source ended"
                        )
                        self._signal_external_end()
                        break
                    self._stop_event.wait(self.RETRY_DELAY_SECONDS)
                    continue

                failures = 0
                with self._lock:
                    self._frame = frame
                    self._frame_count += 1

                self._pace()
        except Exception as e:
            logger.error(f"{self._name}: reader thread failed: {e}")
            self._signal_external_end()
        finally:
            try:
                self._release_device()
            except Exception as e:
                logger.error(f"{self._name}: error releasing device: {e}")

    def _signal_external_end(self) -> None:
        if self._ended or not self._running:
            return

        self._ended = True
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._notify_external_end)

    def _notify_external_end(self) -> None:
        for callback in list(self._end_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"{self._name}: external end callback error: {e}")
