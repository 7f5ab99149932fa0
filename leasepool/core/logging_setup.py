"""Logging bootstrap for LeasePool entrypoints (CLI, WebUI).

Library modules only create module loggers; handlers are installed here.
"""

import logging

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_FORMAT) -> None:
    """Install a root stream handler at the given level.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: Log record format
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt)
    logging.getLogger().setLevel(level.upper())
