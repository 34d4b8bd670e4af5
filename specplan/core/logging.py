"""
Logging configuration.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from specplan.core.config import settings


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    to_file: Optional[bool] = None,
):
    """
    Configure application logging.
    
    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        log_dir: Directory for the rotating log file, defaults to settings.LOG_DIR
        to_file: Whether to log to a file as well as stdout
    """
    level = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    to_file = settings.LOG_TO_FILE if to_file is None else to_file
    
    handlers = [logging.StreamHandler(sys.stdout)]
    if to_file:
        path = Path(log_dir or settings.LOG_DIR)
        path.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, RotatingFileHandler(
            path / "specplan.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        ))
    
    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    
    # Set specific log levels
    logging.getLogger("urllib3").setLevel(logging.WARNING)
