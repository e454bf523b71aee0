"""Video Console - operator control surface for the content-to-video engine.

Drives the remote engine either as one opaque end-to-end job (Quick Start)
or stage by stage (Manual mode), tracking artifacts, gates, per-keyword asset
tasks and live session progress.
Call setup_logging() once from an entry point before using the console.
"""

import logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for console and server entry points.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG").

    Raises:
        ValueError: If the level name is not a known logging level.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    # httpx logs every request at INFO; the engine client already does
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
    logger.debug("Logging configured at %s", level.upper())
