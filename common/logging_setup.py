import logging
import sys
from pathlib import Path
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for jpgextract.

    Logs go to stderr, and additionally to `log_file` when one is given
    (its parent directory is created if missing).

    Args:
        debug: If True, enable DEBUG level logging
        log_file: Optional path to a log file
    """
    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging initialized (debug={'ON' if debug else 'OFF'}, file={log_file})")

    return logger
