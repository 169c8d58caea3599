"""
Run the Plinth server with uvicorn.

    python -m plinth.server

Host, port and log level come from the settings (``PLINTH_SERVER_HOST``,
``PLINTH_SERVER_PORT``, ``PLINTH_LOG_LEVEL``).
"""

from typing import Optional

import uvicorn

from plinth.core.logging_config import get_logger

from .core.config import Settings, settings

logger = get_logger(__name__)


def main(config: Optional[Settings] = None) -> None:
    config = config or settings
    logger.info(f"Serving {config.app_root} on {config.server_host}:{config.server_port}")
    uvicorn.run(
        "plinth.server.main:app",
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level.lower(),
        # Logging is configured by setup_logging() when the app is built.
        log_config=None,
    )


if __name__ == "__main__":
    main()
