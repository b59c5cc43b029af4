"""Structured logging configuration for tiered answers."""

import logging
import sys
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        parts = [f"{k}={v}" for k, v in log_data.items()]
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: int = logging.INFO, stream=None) -> None:
    """Install the structured formatter on the package root logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("tiered_answers")
    logger.setLevel(level)
    if not any(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger under the package hierarchy.

    Args:
        name: Logger name (typically __name__)
        level: Optional level override

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
