#!/usr/bin/env python3
"""
Run the Property Marketplace Ledger web server.
"""

import logging

import uvicorn

from utils.config import Config
from utils.log import setup_logging


logger = logging.getLogger(__name__)


def main():
    """Start the web server."""
    config = Config.load()
    setup_logging(config.log_level)

    logger.info("Starting Property Marketplace Ledger on http://%s:%s", config.host, config.port)
    if config.ledger_path:
        logger.info("Ledger persisted to %s", config.ledger_path)
    else:
        logger.info("Ledger kept in memory only")

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
