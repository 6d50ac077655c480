"""Root logger configuration from settings."""

from __future__ import annotations

import logging
import sys

_FORMAT: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LEVELS: dict[str, int] = {
    "": logging.INFO,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_level(name: str) -> int:
    """Map a settings ``log_level`` to a :mod:`logging` level; unknown names mean INFO."""
    level = _LEVELS.get(name.strip().upper())
    if level is None:
        print(f"Invalid log_level: {name}, defaulting to INFO", file=sys.stderr)
        return logging.INFO
    return level


def configure_logging(level_name: str = "", log_file: str = "") -> None:
    """Log to stdout and, when *log_file* is set, append to that file as well.

    An unopenable log file is reported on stderr and console logging continues.
    """
    level = parse_level(level_name)
    formatter = logging.Formatter(_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        except OSError as exc:
            print(f"Failed to open log file {log_file}: {exc}, using console only", file=sys.stderr)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    # requests/urllib3 connection chatter is noise at DEBUG.
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
