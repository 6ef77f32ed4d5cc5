"""Centralized logging configuration for condor"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from rich.logging import RichHandler

from .config import LOG_DIR, LOG_LEVEL
from .utils import get_timestamp

def configure_logging(log_level: Optional[str] = None, file_logging: bool = True,
                      log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Central logging configuration for all condor modules.

    Installs a rich console handler and, when requested, a timestamped
    file handler. Returns the path of the log file, if any.
    """
    level = (log_level or LOG_LEVEL).upper()
    logger = logging.getLogger("condor")
    logger.setLevel(logging.getLevelName(level))

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = RichHandler(show_path=False, rich_tracebacks=True)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(console_handler)

    log_file = None
    if file_logging:
        directory = Path(log_dir) if log_dir is not None else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"condor_{get_timestamp()}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(file_handler)

    logging.captureWarnings(True)
    logger.info("Started new logging session")
    if log_file:
        logger.info("Log file: %s", log_file)
    return log_file

class LogTracker:
    """Track stage warnings and errors during a run for the final summary"""
    def __init__(self):
        self.messages: List[Tuple[str, str, str]] = []

    def capture(self, stage: str, msg: str, level: str = "WARNING"):
        self.messages.append((stage, level, msg))

    def get_warnings(self) -> List[Tuple[str, str]]:
        return [(stage, msg) for stage, level, msg in self.messages if level == "WARNING"]

    def get_errors(self) -> List[Tuple[str, str]]:
        return [(stage, msg) for stage, level, msg in self.messages if level in ("ERROR", "CRITICAL")]
