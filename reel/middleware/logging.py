"""
Logging setup and the event log subscriber.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from reel.core.events import Event

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_level(name: str) -> int:
    """Map a LOG_LEVEL string to a logging level. Unknown names mean INFO."""
    return _LEVELS.get(name.strip().upper(), logging.INFO)


def setup_logging(
    log_dir: Path | str | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Setup Reel logging.

    Args:
        log_dir: Directory for log files (default: ./logs). An empty
            string disables the file handler.
        console_level: Minimum level for console output
        file_level: Minimum level for file output

    Returns:
        The configured "reel" logger
    """
    logger = logging.getLogger("reel")
    logger.setLevel(logging.DEBUG)
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(console_handler)

    if log_dir is None:
        log_dir = Path("./logs")
    if log_dir != "":
        log_dir = Path(log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"reel_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
        logger.info(f"Logging initialized. File: {log_file}")

    return logger


class EventLogger:
    """
    Appends every bus event to a dated JSON lines file.

    Usage:
        event_logger = EventLogger(log_dir=Path("./logs"))
        bus.on("*", event_logger.handle)
    """

    def __init__(self, log_dir: Path | None = None) -> None:
        self._log_dir = (log_dir or Path("./logs")).expanduser()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._events_file = (
            self._log_dir / f"events_{datetime.now().strftime('%Y%m%d')}.jsonl"
        )
        self._logger = logging.getLogger("reel.events")

    @property
    def path(self) -> Path:
        return self._events_file

    async def handle(self, event: Event) -> None:
        self._logger.debug(f"[{event.type}] source={event.source} data={event.data}")
        try:
            record = {
                "timestamp": datetime.fromtimestamp(event.timestamp).isoformat(),
                "id": event.id,
                "type": event.type,
                "source": event.source,
                "data": self._safe_serialize(event.data),
            }
            with open(self._events_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as e:
            self._logger.warning(f"Failed to write event log: {e}")

    @staticmethod
    def _safe_serialize(data: dict) -> dict:
        result = {}
        for key, value in data.items():
            try:
                json.dumps(value)
                result[key] = value
            except (TypeError, ValueError):
                result[key] = str(value)
        return result
