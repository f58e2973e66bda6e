import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "chatrelay"


def configure_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Logger:
    """
    Send chatrelay logs to the console through rich.

    Safe to call more than once: previously installed handlers are replaced.
    Library code only ever calls ``logging.getLogger(__name__)``; this is for
    applications and the CLI.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    # Reduce noise from the transport
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
