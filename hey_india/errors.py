"""Error types raised by Hey India components.

Only session-start failures reach the caller of ``ActivationController.start``.
Everything raised during a wake/describe cycle is caught by the controller
and turned into a spoken message.
"""


class HeyIndiaError(Exception):
    """Base class for all Hey India errors."""


class DevicePermissionError(HeyIndiaError, PermissionError):
    """Camera or microphone access is denied or unavailable."""

    def __init__(self, device: str, message: str | None = None) -> None:
        self.device = device
        super().__init__(message or f"{device} permission denied or not available")


class UnsupportedError(HeyIndiaError):
    """Speech recognition is not available on this host."""


class RecognitionError(HeyIndiaError):
    """Transient speech-recognition failure."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"recognition error: {code}")


class CaptureError(HeyIndiaError):
    """No frame could be read from the camera."""


class DetectionError(HeyIndiaError):
    """The object detector is not ready or inference failed."""
