"""Local camera capture through OpenCV.

Keeps the device open for the lifetime of the handle and continuously
reads frames so the newest one is always available for a snapshot.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from livevision.capture.base import ThreadedLiveHandle
from livevision.errors import CaptureDeviceError, CapturePermissionError
from livevision.models.session import SourceKind

logger = logging.getLogger(__name__)


class OpenCVCameraHandle(ThreadedLiveHandle):
    """Live handle for a local camera.

    Usage:
        handle = OpenCVCameraHandle(device_index=0)
        handle.open_device()
        handle.start(asyncio.get_running_loop())
        frame = handle.latest_frame()
    """

    def __init__(
        self,
        device_index: int = 0,
        width: int = 1280,
        height: int = 720,
        max_read_failures: int = 30,
    ):
        """Initialize camera handle.

        Args:
            device_index: OpenCV device index
            width: Requested frame width
            height: Requested frame height
            max_read_failures: Consecutive failed reads before the source counts as ended
        """
        super().__init__(
            SourceKind.CAMERA,
            max_read_failures=max_read_failures,
            name=f"Camera{device_index}",
        )
        self.device_index = device_index
        self.width = width
        self.height = height

        self._cap: Optional[cv2.VideoCapture] = None

    def open_device(self) -> None:
        """Open the camera.

        Raises:
            CapturePermissionError: OS refused access to the device
            CaptureDeviceError: Camera missing or failed to open
        """
        try:
            cap = cv2.VideoCapture(self.device_index)
        except PermissionError as e:
            raise CapturePermissionError(str(e)) from e
        except cv2.error as e:
            raise CaptureDeviceError(f"OpenCV error: {e}") from e

        if not cap.isOpened():
            cap.release()
            raise CaptureDeviceError(f"Failed to open camera {self.device_index}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        # Reduce buffer size to get fresher frames
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._cap = cap
        logger.info(
            f"Opened camera {self.device_index} "
            f"({int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))})"
        )

    def _read_frame(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        return frame

    def _release_device(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug(f"Released camera {self.device_index}")
