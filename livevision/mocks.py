"""Mock capability implementations for running without devices or network.

This module provides simulated versions of the capture, dictation and
analysis capabilities. They generate synthetic frames and scripted
transcripts, and can be driven into failure scenarios for testing.

Enable mock mode by:
- Setting LIVEVISION_MOCK=true environment variable, OR
- Setting mock_mode: true in config.yaml, OR
- Passing --mock on the command line
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple

import numpy as np

from livevision.analysis.base import AnalysisCapability, AnalysisResponse
from livevision.capture.base import CaptureCapability, LiveHandle
from livevision.dictation.base import (
    DictationCapability,
    DictationEvent,
    DictationEventType,
    DictationSession,
)
from livevision.errors import AcquisitionError, CaptureDeviceError, CapturePermissionError
from livevision.models.session import SourceKind, StillPayload

logger = logging.getLogger(__name__)


def make_test_frame(width: int = 640, height: int = 480, seed: int = 0) -> np.ndarray:
    """Synthetic BGR frame: a horizontal gradient shifted by ``seed``."""
    row = (np.arange(width, dtype=np.uint16) + seed * 8) % 256
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :, 0] = row.astype(np.uint8)
    frame[:, :, 1] = 128
    frame[:, :, 2] = 255 - row.astype(np.uint8)
    return frame


class MockLiveHandle(LiveHandle):
    """Simulated live handle with a controllable frame and end signal."""

    def __init__(
        self,
        kind: SourceKind,
        frame: Optional[np.ndarray] = None,
        on_stop: Optional[Callable[["MockLiveHandle"], None]] = None,
    ):
        self.kind = kind
        self._frame = frame
        self._on_stop = on_stop

        self.running = True
        self.ended = False
        self.stop_count = 0
        self._end_callbacks: List[Callable[[], None]] = []

    @property
    def healthy(self) -> bool:
        return self.running and not self.ended

    def latest_frame(self) -> Optional[np.ndarray]:
        return self._frame if self.running else None

    def stop(self) -> None:
        self.stop_count += 1
        if not self.running:
            return
        self.running = False
        if self._on_stop is not None:
            self._on_stop(self)
        logger.debug(f"MockLiveHandle({self.kind.value}): stopped")

    def on_external_end(self, callback: Callable[[], None]) -> None:
        self._end_callbacks.append(callback)

    # Simulation control methods

    def set_frame(self, frame: Optional[np.ndarray]) -> None:
        """Replace the current frame (None = no frame yet)."""
        self._frame = frame

    def simulate_external_end(self) -> None:
        """Simulate the source ending by itself (e.g. screen share revoked)."""
        logger.info(f"MockLiveHandle({self.kind.value}): simulating external end")
        self.ended = True
        for callback in list(self._end_callbacks):
            callback()


class MockCaptureCapability(CaptureCapability):
    """Simulated capture capability.

    Attributes:
        handles: Every handle opened so far
        active_count: Handles currently running
        max_active: Highest number of simultaneously running handles seen
    """

    def __init__(
        self,
        frame_size: Tuple[int, int] = (640, 480),
        open_delay: float = 0.0,
    ):
        """Initialize mock capture.

        Args:
            frame_size: (width, height) of synthetic frames
            open_delay: Seconds to wait before an open completes
        """
        self.frame_size = frame_size
        self.open_delay = open_delay

        self.handles: List[MockLiveHandle] = []
        self.active_count = 0
        self.max_active = 0
        self.gate: Optional[asyncio.Event] = None

        self._failure: Optional[AcquisitionError] = None
        self._with_frames = True

    async def open(self, kind: SourceKind) -> MockLiveHandle:
        if self.gate is not None:
            await self.gate.wait()
        elif self.open_delay:
            await asyncio.sleep(self.open_delay)

        if self._failure is not None:
            raise self._failure

        frame = None
        if self._with_frames:
            width, height = self.frame_size
            frame = make_test_frame(width, height, seed=len(self.handles))

        handle = MockLiveHandle(kind, frame=frame, on_stop=self._handle_stopped)
        self.handles.append(handle)
        self.active_count += 1
        self.max_active = max(self.max_active, self.active_count)
        logger.info(f"MockCaptureCapability: opened {kind.value} handle #{len(self.handles)}")
        return handle

    def _handle_stopped(self, handle: MockLiveHandle) -> None:
        self.active_count -= 1

    # Simulation control methods

    def hold_opens(self) -> asyncio.Event:
        """Block opens until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    def simulate_permission_denied(self, denied: bool = True) -> None:
        self._failure = CapturePermissionError("Permission denied (simulated)") if denied else None
        logger.info(f"MockCaptureCapability: Simulating permission denied={denied}")

    def simulate_device_error(self, message: Optional[str] = "Device busy (simulated)") -> None:
        """Make opens fail with a device error; None clears it."""
        self._failure = CaptureDeviceError(message) if message else None
        logger.info(f"MockCaptureCapability: Simulating device error={message!r}")

    def simulate_no_frames(self, no_frames: bool = True) -> None:
        """Open handles that have not produced a frame yet."""
        self._with_frames = not no_frames


class MockDictationSession(DictationSession):
    """Scripted dictation session fed through an asyncio queue."""

    def __init__(self, script: Sequence[DictationEvent] = ()):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.stopped = False
        for event in script:
            self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[DictationEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if event.type in (DictationEventType.END, DictationEventType.ERROR):
                return

    async def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        self._queue.put_nowait(DictationEvent.end())

    # Simulation control methods

    def emit_partial(self, text: str) -> None:
        self._queue.put_nowait(DictationEvent.partial(text))

    def emit_final(self, text: str) -> None:
        self._queue.put_nowait(DictationEvent.final(text))

    def emit_error(self, code: str = "network") -> None:
        self._queue.put_nowait(DictationEvent.error(code))

    def emit_end(self) -> None:
        self._queue.put_nowait(DictationEvent.end())


class MockDictationCapability(DictationCapability):
    """Simulated dictation capability.

    Each started session replays ``script``; when ``script`` is empty the
    session waits for events pushed through its emit_* methods.
    """

    def __init__(
        self,
        supported: bool = True,
        script: Sequence[DictationEvent] = (),
        start_delay: float = 0.0,
    ):
        self.supported = supported
        self.script = list(script)
        self.start_delay = start_delay

        self.sessions: List[MockDictationSession] = []
        self.start_args: List[Tuple[str, bool, bool]] = []
        self.availability_checks = 0

    def available(self) -> bool:
        self.availability_checks += 1
        return self.supported

    async def start(self, locale: str, continuous: bool, interim: bool) -> MockDictationSession:
        self.start_args.append((locale, continuous, interim))
        if self.start_delay:
            await asyncio.sleep(self.start_delay)

        session = MockDictationSession(self.script)
        self.sessions.append(session)
        logger.info(f"MockDictationCapability: session #{len(self.sessions)} started ({locale})")
        return session

    @property
    def last_session(self) -> Optional[MockDictationSession]:
        return self.sessions[-1] if self.sessions else None


class MockAnalysisCapability(AnalysisCapability):
    """Simulated analysis service.

    Attributes:
        calls: (credential, model, image, question) of every request
        max_concurrent: Highest number of overlapping requests seen
    """

    def __init__(
        self,
        response: Optional[AnalysisResponse] = None,
        delay: float = 0.0,
    ):
        """Initialize mock analysis.

        Args:
            response: Fixed response (None = describe the image size)
            delay: Seconds each request takes
        """
        self.response = response
        self.delay = delay

        self.calls: List[Tuple[str, str, StillPayload, str]] = []
        self.concurrent = 0
        self.max_concurrent = 0
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

        self._error: Optional[Exception] = None

    async def analyze(
        self,
        credential: str,
        model: str,
        image: StillPayload,
        question: str,
    ) -> AnalysisResponse:
        self.calls.append((credential, model, image, question))
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            if self.gate is not None:
                await self.gate.wait()
            elif self.delay:
                await asyncio.sleep(self.delay)

            if self._error is not None:
                raise self._error

            if self.response is not None:
                return self.response
            return AnalysisResponse(
                success=True,
                output=f"Mock analysis of a {image.width}x{image.height} {image.source.value} frame",
            )
        finally:
            self.concurrent -= 1

    async def close(self) -> None:
        self.closed = True

    # Simulation control methods

    def hold_requests(self) -> asyncio.Event:
        """Block requests until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    def set_response(self, output: Optional[str] = None, message: Optional[str] = None) -> None:
        """Respond with ``output`` on success, or fail with ``message``."""
        if message is not None:
            self.response = AnalysisResponse(success=False, message=message)
        else:
            self.response = AnalysisResponse(success=True, output=output)

    def simulate_error(self, error: Optional[Exception] = None) -> None:
        """Raise ``error`` from analyze(); None clears it."""
        self._error = error
