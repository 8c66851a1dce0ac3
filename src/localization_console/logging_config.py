import logging
import sys
from typing import Optional

# Library loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the console process."""
    if level is None:
        from .config import get_settings

        level = get_settings().LOG_LEVEL

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s - %(message)s")
    )
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
