"""Turn a frame's detections into a short spoken sentence."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from hey_india.detector import Detection

NO_DETECTION_SENTENCE = "I couldn't detect anything. Please move the camera slowly."
UNCLEAR_SENTENCE = "I see something but I can't describe it clearly."

PERSON_LABEL = "person"
ANIMAL_LABELS = frozenset(
    ["dog", "cat", "bird", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe"]
)
PLANT_LABELS = frozenset(["potted plant", "plant", "tree"])
MAX_OTHERS = 3


@dataclass
class LabelBucket:
    """Labels of one frame grouped for description."""

    people: int = 0
    animals: list[str] = field(default_factory=list)
    plants: list[str] = field(default_factory=list)
    others: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.people or self.animals or self.plants or self.others)


def unique_labels(detections: Iterable[Detection | str]) -> list[str]:
    """Collapse detections to their unique labels, keeping first-seen order."""
    labels: dict[str, None] = {}
    for det in detections:
        label = det if isinstance(det, str) else det.label
        labels.setdefault(label, None)
    return list(labels)


def bucket_labels(labels: Iterable[str]) -> LabelBucket:
    bucket = LabelBucket()
    for label in labels:
        if label == PERSON_LABEL:
            bucket.people += 1
        elif label in ANIMAL_LABELS:
            bucket.animals.append(label)
        elif label in PLANT_LABELS:
            bucket.plants.append(label)
        elif len(bucket.others) < MAX_OTHERS:
            bucket.others.append(label)
    return bucket


class SceneDescriber:
    """Build the sentence spoken after a scene capture."""

    def describe(self, detections: Iterable[Detection | str]) -> str:
        """Describe one frame.

        Args:
            detections: Detections (or bare labels) from a single frame.

        Returns:
            A sentence such as "I see a person and dog and chair.", or the
            fixed no-detection sentence when nothing was found.
        """
        labels = unique_labels(detections)
        if not labels:
            return NO_DETECTION_SENTENCE
        return self.compose(bucket_labels(labels))

    def compose(self, bucket: LabelBucket) -> str:
        parts = []
        if bucket.people:
            parts.append("a person" if bucket.people == 1 else f"{bucket.people} people")
        if bucket.animals:
            parts.append(", ".join(bucket.animals))
        if bucket.plants:
            parts.append(", ".join(bucket.plants))
        if bucket.others:
            parts.append(", ".join(bucket.others[:MAX_OTHERS]))

        if not parts:
            return UNCLEAR_SENTENCE
        return f"I see {' and '.join(parts)}."


if __name__ == "__main__":
    describer = SceneDescriber()
    samples = [
        [],
        ["person"],
        ["person", "person", "dog"],
        ["person", "dog", "chair"],
        ["cat", "potted plant", "cup", "laptop", "book", "clock", "tv"],
    ]
    for labels in samples:
        print(f"{labels} -> {describer.describe(labels)}")
