import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# The pricer warns per integral; during a calibration that is once per
# objective evaluation and quote.
PRICER_LOGGER = "hestoncal.pricers"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level: {level}")
    return resolved


def setup_logging(
    level: Union[str, int] = logging.INFO,
    format_string: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    pricer_level: Optional[Union[str, int]] = None
) -> logging.Logger:
    """
    Configure the root logger for calibration scripts.

    Existing root handlers are replaced.

    Args:
        level: Logging level name or constant
        format_string: Record format, defaults to DEFAULT_FORMAT
        log_file: Optional file to log to; parent directories are created
        console: Whether to log to stdout
        pricer_level: Separate level for ``hestoncal.pricers``, e.g. 'ERROR'
            to silence repeated integrand warnings

    Returns:
        The root logger
    """
    level = _resolve_level(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if pricer_level is not None:
        logging.getLogger(PRICER_LOGGER).setLevel(_resolve_level(pricer_level))

    return root


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name)
