import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hey_india.config import DetectionConfig
from hey_india.errors import DetectionError

logger = logging.getLogger(__name__)


@dataclass
class Detection:
    label: str
    confidence: float
    box: tuple[int, int, int, int]

    @property
    def x1(self) -> int:
        return self.box[0]

    @property
    def y1(self) -> int:
        return self.box[1]

    @property
    def x2(self) -> int:
        return self.box[2]

    @property
    def y2(self) -> int:
        return self.box[3]


class Detector:
    """Pretrained COCO object detector (ultralytics YOLO)."""

    def __init__(self, config: DetectionConfig) -> None:
        self.config = config
        self.model = None
        self.class_names: list[str] = []

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load(self) -> bool:
        if self.model is not None:
            return True
        try:
            from ultralytics import YOLO

            self.model = YOLO(self.config.model)
            self.class_names = list(self.model.names.values())
            logger.info("Detector loaded: %s (%d classes)", self.config.model, len(self.class_names))
            return True
        except Exception as e:
            logger.error("Failed to load YOLO model %s: %s", self.config.model, e)
            self.model = None
            return False

    def detect(self, frame: NDArray[np.uint8]) -> list[Detection]:
        """Run the model on one frame.

        The first call can take several seconds while the model warms up.

        Raises:
            DetectionError: The model is not loaded or inference failed.
        """
        if self.model is None:
            raise DetectionError("detector model is not loaded")

        try:
            results = self.model(
                frame,
                conf=self.config.confidence,
                iou=self.config.iou_threshold,
                max_det=self.config.max_detections,
                device=self.config.device,
                verbose=False,
            )
        except Exception as e:
            raise DetectionError(f"inference failed: {e}") from e

        detections: list[Detection] = []

        for result in results:
            boxes = result.boxes
            if boxes is None:
                continue

            for box in boxes:
                class_id = int(box.cls[0])
                x1, y1, x2, y2 = map(int, box.xyxy[0])
                detections.append(
                    Detection(
                        label=self.class_names[class_id],
                        confidence=float(box.conf[0]),
                        box=(x1, y1, x2, y2),
                    )
                )

        return detections


if __name__ == "__main__":
    import sys

    config = DetectionConfig()
    detector = Detector(config)

    print("Loading YOLOv8 model...")
    if not detector.load():
        print("Failed to load model")
        sys.exit(1)
    print(f"Loaded model with {len(detector.class_names)} classes")

    test_image = np.full((480, 640, 3), 128, dtype=np.uint8)
    detections = detector.detect(test_image)
    print(f"Detections: {len(detections)}")
    for det in detections:
        print(f"  - {det.label}: {det.confidence:.2f}")
