"""
Logging configuration
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from revise.core.config import Settings, settings as default_settings


class InterceptHandler(logging.Handler):
    """Forward stdlib records from revise.* (and the host) to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging-internal frames so loguru reports the revise call site
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(config: Optional[Settings] = None, sink=sys.stderr):
    """
    Route every stdlib logger through loguru.

    Core modules log with logging.getLogger(__name__); this installs the
    intercept on the root logger so hosts get a single formatted stream.
    """
    config = config or default_settings

    logger.remove()

    logger.add(
        sink,
        colorize=False,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=config.LOG_LEVEL,
    )

    if config.ENVIRONMENT == "production":
        log_path = Path("logs")
        log_path.mkdir(exist_ok=True)

        logger.add(
            log_path / "revise_{time:YYYY-MM-DD}.log",
            rotation="50 MB",
            retention="30 days",
            enqueue=True,
            level=config.LOG_LEVEL,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(config.LOG_LEVEL)

    for name in list(logging.root.manager.loggerDict.keys()):
        if name.startswith("revise"):
            logging.getLogger(name).handlers = []
            logging.getLogger(name).propagate = True

    logger.debug(f"Logging configured - Level: {config.LOG_LEVEL}, Environment: {config.ENVIRONMENT}")
