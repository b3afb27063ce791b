"""Assistant service owning the single Hey India session of the web app."""

import asyncio
import logging

from hey_india.config import Config
from hey_india.controller import ActivationController
from hey_india.main import create_controller

logger = logging.getLogger(__name__)


class AssistantService:
    """Lifecycle wrapper around an ActivationController.

    The controller lives on the server's event loop, so recognition events
    and API calls are handled on the same loop.
    """

    def __init__(self):
        self._config = Config()
        self._controller: ActivationController | None = None

    def configure(self, config: Config, controller: ActivationController | None = None) -> None:
        """Set the config (and optionally a prebuilt controller) before first use."""
        if self._controller is not None:
            self._controller.stop()
        self._config = config
        self._controller = controller

    @property
    def controller(self) -> ActivationController:
        if self._controller is None:
            self._controller = create_controller(self._config)
        return self._controller

    async def initialize(self) -> bool:
        """Preload the detection and speech models so the first start is quick.

        Failures are only logged; ``start`` retries and reports them.
        """
        controller = self.controller
        ready = True

        # Load models in thread pool (blocking operation)
        for name, load in (("detection", controller.detector.load), ("speech", controller.channel.load)):
            try:
                loaded = await asyncio.to_thread(load)
            except Exception as e:
                logger.error("Failed to preload %s model: %s", name, e)
                loaded = False
            if not loaded:
                logger.warning("%s model not preloaded; it will be loaded on start", name.capitalize())
                ready = False

        if ready:
            logger.info("Models preloaded")
        return ready

    async def start(self) -> None:
        await self.controller.start(self._config.session)

    def stop(self) -> None:
        if self._controller is not None:
            self._controller.stop()

    def set_continuous(self, enabled: bool) -> None:
        self._config.session.continuous = enabled
        self.controller.set_continuous_mode(enabled)

    def status(self) -> dict:
        controller = self.controller
        return {
            "state": controller.state.value,
            "status": controller.status,
            "last_response": controller.last_response,
            "running": controller.running,
            "continuous": controller.continuous,
        }

    async def cleanup(self) -> None:
        self.stop()
        logger.info("Assistant session released")


# Global singleton instance
assistant_service = AssistantService()
