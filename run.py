#!/usr/bin/env python3
"""
AccountTrack Entry Point

Starts the FastAPI server with host, port and logging taken from
ACCOUNTTRACK_* environment settings.
"""

import sys

from accounttrack.api import run_server
from accounttrack.config import get_config
from accounttrack.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)
    logger.info("Starting AccountTrack on %s:%d (database: %s)",
                config.api_host, config.api_port,
                config.database_path if config.use_sqlite else "in-memory")

    try:
        run_server(host=config.api_host, port=config.api_port, log_level=config.log_level)
    except KeyboardInterrupt:
        logger.info("Shutting down AccountTrack")
    except Exception as e:
        logger.error("Error starting server: %s", e)
        sys.exit(1)
