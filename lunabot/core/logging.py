"""Logging setup: Rich console output when available, plain formatter otherwise."""

import logging
import os

try:
    from rich.console import Console
    from rich.logging import RichHandler

    RICH_AVAILABLE = True
except ImportError:
    RICH_AVAILABLE = False

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party / internal loggers that are too chatty at INFO
_QUIET_LOGGERS: dict[str, tuple[int, int]] = {
    # name: (level when DEBUG, level otherwise)
    "asyncpg": (logging.DEBUG, logging.WARNING),
    "lunabot.shared.cache": (logging.DEBUG, logging.WARNING),
    "Lifecycle": (logging.DEBUG, logging.INFO),
}


def _build_rich_handler() -> logging.Handler:
    console = Console(force_terminal=True, width=120)
    handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))
    return handler


def setup_logging(log_level: str | None = None) -> bool:
    """Configure the root logger for the bot process.

    ``log_level`` falls back to the ``LOG_LEVEL`` environment variable.
    Returns True when Rich output is active.
    """
    name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, name, logging.INFO)
    logger = logging.getLogger("Bot")
    rich_enabled = False

    if RICH_AVAILABLE:
        try:
            logging.basicConfig(level=level, handlers=[_build_rich_handler()], force=True)
            rich_enabled = True
            logger.info("[bold green]✓[/bold green] Rich logging enabled", extra={"markup": True})
        except Exception as e:
            logging.basicConfig(level=level, format=PLAIN_FORMAT, datefmt=PLAIN_DATEFMT, force=True)
            logger.warning(f"Failed to setup Rich logging: {e}, using standard logging")
    else:
        logging.basicConfig(level=level, format=PLAIN_FORMAT, datefmt=PLAIN_DATEFMT, force=True)
        logger.info("Standard logging enabled (install 'rich' for better output)")

    debug = level == logging.DEBUG
    for logger_name, (debug_level, normal_level) in _QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(debug_level if debug else normal_level)

    return rich_enabled
