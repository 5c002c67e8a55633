import json
import logging
import os
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from colorama import Fore, Style, init

init(autoreset=True)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured harvest events"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "event_type": getattr(record, "event_type", "general"),
            "event_data": getattr(record, "event_data", {}),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output with event highlighting"""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.BLUE,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.MAGENTA + Style.BRIGHT,
    }

    EVENT_COLORS = {
        "navigation": Fore.CYAN,
        "extraction": Fore.GREEN,
        "node_failed": Fore.YELLOW + Style.BRIGHT,
        "auth": Fore.MAGENTA,
        "diff": Fore.BLUE,
        "general": Fore.WHITE,
    }

    def format(self, record):
        record.levelname_colored = (
            self.COLORS.get(record.levelname, Fore.WHITE)
            + record.levelname
            + Style.RESET_ALL
        )

        event_type = getattr(record, "event_type", "general")
        record.event_type_colored = (
            self.EVENT_COLORS.get(event_type, Fore.WHITE)
            + event_type.upper()
            + Style.RESET_ALL
        )

        return super().format(record)


class DefaultEventMetadataFilter(logging.Filter):
    """Ensure log records contain the event metadata expected by the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "event_type"):
            record.event_type = "general"
        if not hasattr(record, "event_data"):
            record.event_data = {}
        return True


def setup_logger(
    name: Optional[str] = "harvester",
    level=logging.INFO,
    log_file: Optional[str] = "logs/harvester.log",
    console: bool = True,
    structured_file: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
):
    """Setup logger with file, console and optional JSON-lines handlers

    Args:
        name: Logger name, ``None`` configures the root logger
        level: Logging level
        log_file: Path to log file, ``None`` disables the file handler
        console: Whether to enable console logging
        structured_file: Path to structured JSON log file
        config: Optional ``logging`` section from settings.json
    """

    if config:
        if config.get("log_file"):
            log_file = config["log_file"]
        if config.get("structured_file"):
            structured_file = config["structured_file"]
        console = config.get("console", console)
        if config.get("log_level"):
            level = getattr(logging, str(config["log_level"]).upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.addFilter(DefaultEventMetadataFilter())

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(DefaultEventMetadataFilter())
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    if structured_file:
        structured_dir = os.path.dirname(structured_file)
        if structured_dir:
            os.makedirs(structured_dir, exist_ok=True)
        json_handler = logging.FileHandler(structured_file, encoding="utf-8")
        json_handler.setLevel(level)
        json_handler.setFormatter(StructuredFormatter())
        logger.addHandler(json_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.addFilter(DefaultEventMetadataFilter())
        console_handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s - %(levelname_colored)s - [%(event_type_colored)s] - %(message)s"
            )
        )
        logger.addHandler(console_handler)

    return logger


def log_harvest_event(
    event_type: str,
    event_data: Dict[str, Any],
    level: str = "INFO",
    message: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
):
    """Structured harvest event logging"""
    target = logger or logging.getLogger("harvester.events")
    log_level = getattr(logging, level.upper(), logging.INFO)
    target.log(
        log_level,
        message or f"Harvest event: {event_type}",
        extra={"event_type": event_type, "event_data": event_data},
    )
