"""Capture capability backed by local devices (OpenCV camera, mss screen)."""

import asyncio
import logging

from livevision.capture.base import CaptureCapability, ThreadedLiveHandle
from livevision.capture.camera import OpenCVCameraHandle
from livevision.capture.screen import ScreenCaptureHandle
from livevision.config import CaptureSettings
from livevision.models.session import SourceKind

logger = logging.getLogger(__name__)


def _release_abandoned(handle: ThreadedLiveHandle, opening: asyncio.Future) -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    logger.info(f"Releasing {handle.kind.value} opened after the request was cancelled")
    handle.stop()


class DeviceCaptureCapability(CaptureCapability):
    """Opens camera and screen handles from capture settings."""

    def __init__(self, settings: CaptureSettings):
        self.settings = settings

    def _create_handle(self, kind: SourceKind) -> ThreadedLiveHandle:
        """Create the appropriate handle based on source kind."""
        if kind == SourceKind.CAMERA:
            return OpenCVCameraHandle(
                device_index=self.settings.camera_index,
                width=self.settings.camera_width,
                height=self.settings.camera_height,
                max_read_failures=self.settings.max_read_failures,
            )
        elif kind == SourceKind.SCREEN:
            return ScreenCaptureHandle(
                monitor_index=self.settings.screen_monitor,
                fps=self.settings.screen_fps,
                max_read_failures=self.settings.max_read_failures,
            )
        raise ValueError(f"Cannot open a handle for source kind {kind.value!r}")

    async def open(self, kind: SourceKind) -> ThreadedLiveHandle:
        handle = self._create_handle(kind)

        # Device open blocks (camera warm-up, display connection). The
        # worker thread cannot be interrupted, so a cancelled open releases
        # the device once the thread finishes.
        opening = asyncio.ensure_future(asyncio.to_thread(handle.open_device))
        try:
            await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(lambda done: _release_abandoned(handle, done))
            raise

        handle.start(asyncio.get_running_loop())
        return handle
