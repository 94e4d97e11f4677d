"""
Logging for Questline.

Everything goes to the "questline" logger tree:

- system.log   INFO and up, rotated
- error.log    ERROR and up, rotated
- stderr       WARNING and up unless overridden

Unreadable event-log lines are additionally dumped verbatim to
corruption_dump.log so they can be repaired by hand.
"""
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from questline.paths import get_logs_dir

LOGS_DIR = get_logs_dir()
ROOT_LOGGER = "questline"

MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _level(value: Union[int, str, None], default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).upper())
    return resolved if isinstance(resolved, int) else default


def _rotating(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Union[int, str, None] = None,
    console_level: Union[int, str, None] = None,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Install the file and console handlers on the "questline" logger.

    Levels fall back to QUESTLINE_LOG_LEVEL / QUESTLINE_CONSOLE_LEVEL, then to
    INFO and WARNING. Calling it again replaces the handlers.
    """
    target_dir = Path(logs_dir) if logs_dir else LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    file_level = _level(log_level if log_level is not None else os.getenv("QUESTLINE_LOG_LEVEL"), logging.INFO)
    stderr_level = _level(
        console_level if console_level is not None else os.getenv("QUESTLINE_CONSOLE_LEVEL"),
        logging.WARNING,
    )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    logger.addHandler(_rotating(target_dir / "system.log", file_level, file_format))
    logger.addHandler(_rotating(target_dir / "error.log", logging.ERROR, file_format))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(stderr_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    logger.debug(f"logging to {target_dir}")
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the "questline" namespace, e.g. get_logger("projections")."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def log_corruption(line_number: int, raw_line: str, error_msg: str, source: Optional[Path] = None) -> None:
    """Append an unreadable event-log line to corruption_dump.log and warn."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    where = f"{source.name}:{line_number}" if source else f"line {line_number}"

    with open(LOGS_DIR / "corruption_dump.log", "a", encoding="utf-8") as f:
        f.write(f"[{datetime.now().isoformat()}] {where}: {error_msg}\n")
        f.write(f"  raw: {raw_line}\n")

    get_logger("storage").warning(f"skipped corrupt event log entry at {where}")
