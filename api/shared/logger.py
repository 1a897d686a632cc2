"""
Centralized logging for the livecode playground backend.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Published artifact for %s", user_id)
    logger.warning("Compile failed for %s: %s", user_id, err)
"""

import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the playground backend.

    Call once at startup (main.py). Subsequent calls only adjust the level.
    """
    global _configured
    resolved = getattr(logging, level.upper(), logging.INFO)
    if _configured:
        logging.getLogger().setLevel(resolved)
        return

    logging.basicConfig(
        level=resolved,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger scoped to the playground namespace.

    Args:
        name: Module name (typically ``__name__``).
    """
    return logging.getLogger(name)
