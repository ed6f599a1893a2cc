"""
Structured logging for the Price Sentinel system.

Every component logs through a ``ComponentLogger`` that renders one JSON
document per message under the ``price_sentinel.<component>`` logger.
``setup_logging`` attaches the console and rotating file handlers to the
``price_sentinel`` logger once the configuration is known; loggers obtained
earlier pick the handlers up through propagation.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.config import LoggingConfig

ROOT_LOGGER = "price_sentinel"
MAIN_LOG = "price_sentinel.log"
ERROR_LOG = "errors.log"
ERROR_LOG_BYTES = 5 * 1024 * 1024
ERROR_LOG_BACKUPS = 3


class ComponentLogger:
    """JSON-rendering logger bound to one component."""

    def __init__(self, component_name: str):
        self.component_name = component_name
        self.logger = logging.getLogger(f"{ROOT_LOGGER}.{component_name}")

    def _render(self, message: str, extra: Optional[Dict[str, Any]], exc_info: bool = False) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "component": self.component_name,
            "message": message,
        }
        if extra:
            payload.update(extra)
        if exc_info:
            payload["exception"] = True
        # Datetimes, enums and ids are stringified
        return json.dumps(payload, default=str)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._render(message, extra))

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.info(self._render(message, extra))

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._render(message, extra))

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self.logger.error(self._render(message, extra, exc_info), exc_info=exc_info)


class LoggingManager:
    """
    Owns the handlers of the ``price_sentinel`` logger.

    Installs a stdout handler, a size-rotated main log and a separate
    error log that always records at ERROR regardless of the configured
    level. Re-creating the manager replaces the previous handlers.
    """

    def __init__(self, settings: LoggingConfig):
        self.settings = settings
        self.log_dir = Path(settings.log_dir)
        self.level = getattr(logging, settings.level.upper())
        self.component_loggers: Dict[str, ComponentLogger] = {}

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._install_handlers()

    def _rotating(self, filename: str, max_bytes: int, backups: int, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename, maxBytes=max_bytes, backupCount=backups
        )
        handler.setLevel(level)
        return handler

    def _install_handlers(self):
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(self.level)

        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(self.level)

        handlers = [
            console,
            self._rotating(
                MAIN_LOG,
                self.settings.max_file_size_mb * 1024 * 1024,
                self.settings.backup_count,
                self.level,
            ),
            self._rotating(ERROR_LOG, ERROR_LOG_BYTES, ERROR_LOG_BACKUPS, logging.ERROR),
        ]

        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)

    def get_component_logger(self, component_name: str) -> ComponentLogger:
        """Return the cached logger for a component."""
        if component_name not in self.component_loggers:
            self.component_loggers[component_name] = ComponentLogger(component_name)
        return self.component_loggers[component_name]


_logging_manager: Optional[LoggingManager] = None


def setup_logging(settings: LoggingConfig) -> LoggingManager:
    """Configure process-wide logging from the ``logging`` config section."""
    global _logging_manager
    _logging_manager = LoggingManager(settings)
    return _logging_manager


def get_logger(component_name: str) -> ComponentLogger:
    """
    Get a component logger.

    Before ``setup_logging`` runs this returns an uncached logger, so
    importing the package never creates a log directory.
    """
    if _logging_manager is None:
        return ComponentLogger(component_name)

    return _logging_manager.get_component_logger(component_name)
