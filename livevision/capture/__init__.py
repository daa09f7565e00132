"""Video source capture and still encoding."""

from livevision.capture.base import CaptureCapability, LiveHandle
from livevision.capture.encoding import encode_still, frame_to_jpeg, resize_frame
from livevision.capture.media_source import AcquireResult, MediaSourceController

__all__ = [
    "AcquireResult",
    "CaptureCapability",
    "LiveHandle",
    "MediaSourceController",
    "encode_still",
    "frame_to_jpeg",
    "resize_frame",
]
