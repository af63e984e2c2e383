import logging
from pathlib import Path
from typing import Optional

from .config import LogsConfig


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _attach_file_logging(log_path: Path, level: str) -> None:
    """Attach a file handler to root logger if not already present."""
    logger = logging.getLogger()
    # Avoid duplicate handlers for the same file
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler):
            if Path(getattr(h, "baseFilename", "")) == log_path:
                return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)


def configure_logging(logs: LogsConfig, workspace: Optional[Path] = None) -> Optional[Path]:
    """Set up console logging and, if configured, a log file.

    Args:
        logs: Logging section of the configuration
        workspace: Directory relative log paths are resolved against

    Returns:
        Resolved log file path, or None when only console logging is used
    """
    level = getattr(logging, logs.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logging.getLogger().setLevel(level)

    if not logs.log_file:
        return None

    log_path = Path(logs.log_file)
    if not log_path.is_absolute() and workspace is not None:
        log_path = Path(workspace) / log_path
    log_path = log_path.resolve()
    _attach_file_logging(log_path, logs.log_level)
    logging.getLogger(__name__).info("Logging to %s at level %s", log_path, logs.log_level.upper())
    return log_path
