from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class SessionConfig(BaseModel):
    """Configuration for the wake → confirm → describe loop."""

    wake_phrase: str = "hey india"
    locale: str = "en-IN"
    continuous: bool = True
    restart_delay: float = 0.3  # Backoff before reopening an ended stream
    toggle_delay: float = 0.25  # Delay when re-applying continuous mode
    command_timeout: float = 4.5
    # Added to command_timeout for transcription time: the controller's
    # command window lasts command_timeout + recognition_grace (6.5 s by default)
    recognition_grace: float = 2.0
    min_command_length: int = 2
    command_keywords: list[str] = Field(
        default_factory=lambda: [
            "what is in front of me",
            "describe",
            "what do you see",
            "identify",
            "look",
            "describe my surroundings",
            "what's in front",
            "tell me what you see",
        ]
    )
    fallback_tokens: list[str] = Field(
        default_factory=lambda: ["see", "front", "describe", "what"]
    )


class CameraConfig(BaseModel):
    width: int = 640
    height: int = 480
    fps: int = 30
    device: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False


class DetectionConfig(BaseModel):
    model: str = "yolov8n.pt"  # COCO classes
    confidence: float = 0.5
    iou_threshold: float = 0.45
    max_detections: int = 20
    device: str = "cpu"


class VoiceConfig(BaseModel):
    """Configuration for voice input (Whisper STT)."""

    model: Literal["tiny", "base", "small", "medium"] = "base"
    device: str = "cpu"
    sample_rate: int = 16000
    input_device: int | None = None
    phrase_seconds: float = 3.0  # Length of each continuous-listening window
    block_seconds: float = 0.1
    end_silence: float = 0.8  # Trailing silence that ends a command
    silence_peak: float = 0.015
    silence_rms: float = 0.004


class SpeakerConfig(BaseModel):
    """Configuration for spoken output (pyttsx3)."""

    enabled: bool = True
    policy: Literal["interrupt", "suppress"] = "interrupt"
    cooldown: float = 2.5
    voice_rate: int = 160
    voice_volume: float = 1.0


class CueConfig(BaseModel):
    enabled: bool = True
    frequency: float = 880.0
    duration: float = 0.15
    volume: float = 0.3
    sample_rate: int = 22050


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class Config(BaseModel):
    session: SessionConfig = Field(default_factory=SessionConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    speaker: SpeakerConfig = Field(default_factory=SpeakerConfig)
    cue: CueConfig = Field(default_factory=CueConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        path = Path(path)
        if not path.exists():
            return cls()
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)


if __name__ == "__main__":
    config = Config()
    print("Default config loaded:")
    print(f"  Wake phrase: {config.session.wake_phrase!r} ({config.session.locale})")
    print(f"  Continuous: {config.session.continuous}")
    print(f"  Command timeout: {config.session.command_timeout}s")
    print(f"  Camera: {config.camera.width}x{config.camera.height}")
    print(f"  Detection model: {config.detection.model}")
    print(f"  Whisper model: {config.voice.model}")
    print(f"  Speaker policy: {config.speaker.policy}")
