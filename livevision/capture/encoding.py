"""Frame encoding helpers for still payloads."""

import logging
from typing import Optional

import cv2
import numpy as np

from livevision.models.session import SourceKind, StillPayload

logger = logging.getLogger(__name__)


def frame_to_jpeg(
    frame: np.ndarray,
    quality: int = 80,
) -> Optional[bytes]:
    """Convert a frame to JPEG bytes.

    Args:
        frame: BGR image (OpenCV format)
        quality: JPEG quality (0-100)

    Returns:
        JPEG bytes or None on error
    """
    try:
        encode_params = [cv2.IMWRITE_JPEG_QUALITY, quality]
        success, encoded = cv2.imencode(".jpg", frame, encode_params)

        if success:
            return encoded.tobytes()
        return None

    except cv2.error as e:
        logger.error(f"Error encoding frame to JPEG: {e}")
        return None


def resize_frame(
    frame: np.ndarray,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
) -> np.ndarray:
    """Resize frame while maintaining aspect ratio.

    Args:
        frame: BGR image
        max_width: Maximum width (None = unbounded)
        max_height: Maximum height (None = unbounded)

    Returns:
        Resized frame, or the input frame if it already fits
    """
    height, width = frame.shape[:2]

    scale_w = max_width / width if max_width else 1.0
    scale_h = max_height / height if max_height else 1.0
    scale = min(scale_w, scale_h)

    if scale >= 1.0:
        return frame

    new_width = max(1, int(width * scale))
    new_height = max(1, int(height * scale))

    return cv2.resize(frame, (new_width, new_height), interpolation=cv2.INTER_AREA)


def encode_still(
    frame: np.ndarray,
    source: SourceKind,
    quality: int = 80,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
) -> Optional[StillPayload]:
    """Turn a live frame into a JPEG still payload.

    Returns:
        StillPayload, or None if encoding failed
    """
    frame = resize_frame(frame, max_width, max_height)
    data = frame_to_jpeg(frame, quality)
    if data is None:
        return None

    height, width = frame.shape[:2]
    logger.debug(f"Encoded {source.value} still {width}x{height} ({len(data)} bytes, q={quality})")
    return StillPayload(data=data, width=width, height=height, source=source)
