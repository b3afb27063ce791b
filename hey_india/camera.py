import logging

import cv2
import numpy as np
from numpy.typing import NDArray

from hey_india.config import CameraConfig
from hey_india.errors import CaptureError

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, config: CameraConfig) -> None:
        self.config = config
        self.cap: cv2.VideoCapture | None = None

    def open(self) -> bool:
        if self.is_opened:
            return True

        self.cap = cv2.VideoCapture(self.config.device)
        if not self.cap.isOpened():
            logger.error("Failed to open camera device %s", self.config.device)
            self.cap.release()
            self.cap = None
            return False

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.config.fps)
        return True

    def read(self) -> NDArray[np.uint8] | None:
        if self.cap is None or not self.cap.isOpened():
            return None

        ret, frame = self.cap.read()
        if not ret or frame is None:
            return None

        if self.config.flip_horizontal:
            frame = cv2.flip(frame, 1)
        if self.config.flip_vertical:
            frame = cv2.flip(frame, 0)

        return frame

    def capture(self) -> NDArray[np.uint8]:
        """Grab a single frame from the already opened stream.

        Raises:
            CaptureError: The camera is closed or returned no frame.
        """
        if not self.is_opened:
            raise CaptureError("camera is not open")
        frame = self.read()
        if frame is None:
            raise CaptureError("camera returned no frame")
        return frame

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self) -> "Camera":
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def is_opened(self) -> bool:
        return self.cap is not None and self.cap.isOpened()


if __name__ == "__main__":
    config = CameraConfig()

    with Camera(config) as camera:
        if not camera.is_opened:
            print("Failed to open camera")
            exit(1)

        print(f"Camera opened: {config.width}x{config.height} @ {config.fps}fps")
        frame = camera.capture()
        print(f"Captured frame: {frame.shape}")
