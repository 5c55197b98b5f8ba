import logging
import sys

# Root of every paywatch logger
LOGGER_NAME = "paywatch"

TEXT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)


def configure_logging(level: int | str = logging.INFO, json_format: bool = False) -> logging.Logger:
    """
    Send paywatch logs to stdout.

    Calling it again replaces the handler installed by the previous call,
    so the verifier can apply its configured level at construction time.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG")
        json_format: Emit one JSON object per line instead of plain text

    Returns:
        The ``paywatch`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for old in list(logger.handlers):
        logger.removeHandler(old)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(logging.Formatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    # Leave the host application's root logger alone
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """``get_logger("matcher")`` is ``paywatch.matcher``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)
