import sys
from typing import Any, Optional, TextIO

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <cyan>{name}</cyan> - {message}"


def configure_logging(level: str = "WARNING", sink: Optional[TextIO] = None) -> Any:
    """Route the package's loguru records to a single sink. Returns the handler id."""
    logger.remove()
    handler_id = logger.add(sink or sys.stderr, level=level.upper(), format=LOG_FORMAT)
    logger.enable("composedtask")
    return handler_id
