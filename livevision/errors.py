"""Exception types and rejection reasons.

Capture failures are raised by capture capabilities and turned into a
persistent message by the media source controller. Guard rejections are
returned (not raised) by the analysis coordinator so the operator can be
told why nothing happened.
"""

from enum import Enum


class LiveVisionError(Exception):
    """Base class for LiveVision errors."""


class AcquisitionError(LiveVisionError):
    """A video source could not be opened."""

    def user_message(self) -> str:
        return f"Error accessing device: {self}"


class CapturePermissionError(AcquisitionError):
    """The operator or the OS refused access to the camera or screen."""

    def user_message(self) -> str:
        return "Permission denied. Check camera/screen access."


class CaptureDeviceError(AcquisitionError):
    """The device exists but could not be opened or read."""


class GuardRejection(Enum):
    """Why capture_and_analyze() did nothing."""

    ALREADY_IN_FLIGHT = "already_in_flight"
    NO_CREDENTIAL = "no_credential"
    NO_VISUAL_SOURCE = "no_visual_source"
    FRAME_UNAVAILABLE = "frame_unavailable"

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    GuardRejection.ALREADY_IN_FLIGHT: "An analysis is already running",
    GuardRejection.NO_CREDENTIAL: "API key not configured",
    GuardRejection.NO_VISUAL_SOURCE: "Start the camera or screen share first",
    GuardRejection.FRAME_UNAVAILABLE: "The video source has not produced a frame yet",
}
