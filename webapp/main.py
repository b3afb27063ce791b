"""Hey India control server - FastAPI Web Application.

Exposes the listening session over HTTP:
- Start / stop the session
- Toggle continuous wake listening
- Status line and last spoken response
"""

import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hey_india.config import Config
from webapp.api import routes
from webapp.services.assistant import assistant_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info("Loading models...")
    await assistant_service.initialize()
    logger.info("Hey India control server ready")

    yield

    logger.info("Shutting down...")
    await assistant_service.cleanup()


app = FastAPI(
    title="Hey India",
    description="Voice-activated scene description",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(routes.router, prefix="/api", tags=["Session"])


def run_server(config: Config, host: str | None = None, port: int | None = None):
    """Run the control server."""
    import uvicorn

    assistant_service.configure(config)

    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Hey India control server")
    parser.add_argument("--config", default="configs/config.yaml", help="Path to config file")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to run on")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    run_server(Config.from_yaml(args.config), host=args.host, port=args.port)
