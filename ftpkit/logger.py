import logging
import sys
from pathlib import Path

from ftpkit.config.base import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
OUTPUT_LOGGER_NAME = "ftpkit.output"


def setup_logging(config: LogConfig) -> None:
    """
    Configure the global logging configuration.

    Args:
        config: LogConfig object containing settings.

    Note:
        - A FileHandler is added if config.file is set.
        - A StreamHandler (stderr) is added if config.console is True.
        - Existing root handlers are replaced.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    if config.file:
        log_path = Path(config.file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if config.console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)


class OutputLogger:
    """Logger collaborator that forwards operation messages to ``logging``."""

    def __init__(self, name: str = OUTPUT_LOGGER_NAME, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._level = level

    def message(self, text: str) -> None:
        self._logger.log(self._level, text)
