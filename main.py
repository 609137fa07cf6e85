"""
Window quote service entry point.

Builds the service container and serves the HTTP API with uvicorn.
Without API keys the service still starts: image analysis and quote
explanations run degraded and emails are reported as not sent.

Usage:
    Serve:           python main.py
    Auto-reload dev: python main.py dev
"""

import logging
import sys

import uvicorn

from src.config import settings

logger = logging.getLogger(__name__)


def _run_server(reload: bool = False) -> None:
    logger.info(
        "Starting %s on %s:%d%s",
        settings.service_name, settings.host, settings.port, " (reload)" if reload else "",
    )
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    _run_server(reload=len(sys.argv) > 1 and sys.argv[1] == "dev")
