import argparse
import asyncio
import logging
import sys

from hey_india.camera import Camera
from hey_india.config import Config
from hey_india.controller import ActivationController
from hey_india.cue import ToneCue
from hey_india.detector import Detector
from hey_india.errors import HeyIndiaError
from hey_india.speaker import Speaker
from hey_india.speech import SpeechChannel

logger = logging.getLogger("hey_india")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hey India - voice-activated scene description")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to config file",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="Camera device index (overrides config)",
    )
    parser.add_argument(
        "--no-continuous",
        action="store_true",
        help="Stop after the listening stream ends instead of restarting it",
    )
    parser.add_argument(
        "--policy",
        choices=["interrupt", "suppress"],
        default=None,
        help="Speech cooldown policy (overrides config)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def create_controller(config: Config) -> ActivationController:
    """Wire the real camera, detector, speech and speaker into a controller."""
    return ActivationController(
        channel=SpeechChannel(config.voice),
        camera=Camera(config.camera),
        detector=Detector(config.detection),
        speaker=Speaker(config.speaker, locale=config.session.locale),
        cue=ToneCue(config.cue),
        config=config.session,
    )


async def run(config: Config) -> int:
    controller = create_controller(config)

    try:
        await controller.start()
    except HeyIndiaError as e:
        logger.error("Failed to start session: %s", e)
        return 1

    print(f'Say "{config.session.wake_phrase}" followed by "what is in front of me".')
    print("Press Ctrl+C to quit")

    try:
        while controller.running:
            await asyncio.sleep(0.5)
    finally:
        controller.stop()

    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = Config.from_yaml(args.config)

    if args.camera is not None:
        config.camera.device = args.camera
    if args.no_continuous:
        config.session.continuous = False
    if args.policy is not None:
        config.speaker.policy = args.policy

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nStopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
