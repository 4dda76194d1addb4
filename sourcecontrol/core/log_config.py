"""
Logging Setup

Every module logs through ``logging.getLogger(__name__)``; the integrating
process calls configure_logging() once at startup.
"""

import logging

from sourcecontrol.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging and quiet noisy third-party loggers."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Suppress noisy third-party loggers
    logging.getLogger("git").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
