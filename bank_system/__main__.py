"""
Bank System Entry Point

Starts the HTTP API with the storage backend named by BANK_DATABASE_URL.
"""

import sys

import uvicorn

from .api import create_app
from .config import get_config
from .errors import PersistenceError
from .logging_config import setup_logging
from .service import BankingService


def main() -> int:
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)

    try:
        service = BankingService.from_config(config)
    except (PersistenceError, ValueError, ImportError) as e:
        logger.error(f"Cannot open storage {config.database_url}: {e}")
        return 1

    logger.info(f"Bank System API starting on http://{config.api_host}:{config.api_port}")
    try:
        uvicorn.run(
            create_app(service),
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower()
        )
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
