"""Logging setup for the API process."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger.

    Modules log through ``logging.getLogger(__name__)``; this only decides
    where records go and which level passes. Handlers are installed once,
    the level is applied on every call.
    """
    global _configured
    if not _configured:
        logging.basicConfig(format=LOG_FORMAT)
        # SQLAlchemy echoes every statement at INFO
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        _configured = True
    logging.getLogger().setLevel(level.upper())
