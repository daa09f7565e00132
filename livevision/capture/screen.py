"""Screen capture through mss.

Grabs one monitor at a fixed rate. mss instances are not shared across
threads, so the grabbing instance is created inside the reader thread.
"""

import logging
from typing import Optional

import mss
from mss.exception import ScreenShotError
import numpy as np

from livevision.capture.base import ThreadedLiveHandle
from livevision.errors import CaptureDeviceError, CapturePermissionError
from livevision.models.session import SourceKind

logger = logging.getLogger(__name__)


class ScreenCaptureHandle(ThreadedLiveHandle):
    """Live handle for a shared screen."""

    def __init__(
        self,
        monitor_index: int = 1,
        fps: float = 5.0,
        max_read_failures: int = 30,
    ):
        """Initialize screen handle.

        Args:
            monitor_index: mss monitor index (0 is all monitors combined)
            fps: Grabs per second
            max_read_failures: Consecutive failed grabs before the source counts as ended
        """
        super().__init__(
            SourceKind.SCREEN,
            max_read_failures=max_read_failures,
            name=f"Screen{monitor_index}",
        )
        self.monitor_index = monitor_index
        self.fps = fps

        self._monitor: Optional[dict] = None
        self._sct = None

    def open_device(self) -> None:
        """Check that the monitor exists and can be grabbed.

        Raises:
            CapturePermissionError: Screen recording not permitted
            CaptureDeviceError: Monitor missing or grab failed
        """
        try:
            with mss.mss() as sct:
                if self.monitor_index >= len(sct.monitors):
                    raise CaptureDeviceError(
                        f"Monitor {self.monitor_index} not found "
                        f"({len(sct.monitors) - 1} available)"
                    )
                monitor = dict(sct.monitors[self.monitor_index])
                sct.grab(monitor)
        except PermissionError as e:
            raise CapturePermissionError(str(e)) from e
        except ScreenShotError as e:
            raise CaptureDeviceError(f"Screen grab failed: {e}") from e

        self._monitor = monitor
        logger.info(
            f"Opened screen {self.monitor_index} ({monitor['width']}x{monitor['height']})"
        )

    def _thread_setup(self) -> None:
        self._sct = mss.mss()

    def _read_frame(self) -> Optional[np.ndarray]:
        if self._sct is None or self._monitor is None:
            return None

        screenshot = self._sct.grab(self._monitor)
        img = np.array(screenshot)

        # BGRA -> BGR (OpenCV channel order)
        return np.ascontiguousarray(img[:, :, :3])

    def _pace(self) -> None:
        self._stop_event.wait(1.0 / self.fps)

    def _release_device(self) -> None:
        if self._sct is not None:
            self._sct.close()
            self._sct = None
