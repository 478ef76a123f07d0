"""
Setup logging con rich
"""
import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

_handler = None


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configura il logger del pacchetto (idempotente)"""
    global _handler

    logger = logging.getLogger("coresettings")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if _handler is None:
        _handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            markup=False,
            show_path=False,
        )
        _handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(_handler)

    return logger
