"""Logging configuration"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import ModeratorSettings

# Third-party loggers that drown out session logs at INFO
NOISY_LOGGERS = ("twitchio.http", "twitchio.websockets", "aiohttp", "httpx", "uvicorn.access")


def setup_logging(settings: ModeratorSettings) -> None:
    """Configure application logging with Rich handler"""
    level = getattr(logging, settings.log_level, logging.INFO)

    rich_handler = RichHandler(
        console=Console(width=120),
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_width=120,
    )

    # force=True: uvicorn configures the root logger first
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%Y-%m-%d %H:%M:%S]",
        handlers=[rich_handler],
        force=True,
    )

    quiet = logging.INFO if level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    logging.getLogger(__name__).info(f"Logging: {settings.log_level} | Env: {settings.environment}")
