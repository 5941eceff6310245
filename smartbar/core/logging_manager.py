from __future__ import annotations

import atexit
import logging
import logging.handlers
import os
import pathlib
import sys
from typing import Any, Callable, List, Optional, Union

import structlog
from pythonjsonlogger import jsonlogger

from smartbar.core.base import SmartbarManager
from smartbar.utils.exceptions import ManagerInitializationError, ManagerShutdownError


class LoggingManager(SmartbarManager):
    """Manages application logging configuration and access.

    The Logging Manager configures Python's logging module with console and
    file handlers based on the ``logging`` configuration section, and hands
    out loggers to the authoring commands. In ``json`` format, records are
    rendered by python-json-logger and structlog loggers are returned.
    """

    # Mapping from string log levels to logging module constants
    LOG_LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __init__(self, config_manager: Any) -> None:
        """Initialize the Logging Manager.

        Args:
            config_manager: The Configuration Manager to use for logging settings.
        """
        super().__init__(name="logging_manager")
        self._config_manager = config_manager
        self._root_logger: Optional[logging.Logger] = None
        self._file_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None
        self._enable_structlog = False
        self._handlers: List[logging.Handler] = []

    def initialize(self) -> None:
        """Initialize the Logging Manager.

        Raises:
            ManagerInitializationError: If initialization fails.
        """
        try:
            logging_config = self._config_manager.get("logging", {})
            log_level = self._level(logging_config.get("level", "INFO"))
            log_format = str(logging_config.get("format", "text")).lower()

            self._root_logger = logging.getLogger()
            self._root_logger.setLevel(log_level)

            for handler in list(self._root_logger.handlers):
                self._root_logger.removeHandler(handler)

            if log_format == "json":
                self._enable_structlog = True
                formatter = self._create_json_formatter()
            else:
                formatter = logging.Formatter(self.TEXT_FORMAT)

            console_config = logging_config.get("console", {})
            if console_config.get("enabled", True):
                self._console_handler = logging.StreamHandler(sys.stderr)
                self._console_handler.setLevel(self._level(console_config.get("level", "INFO")))
                self._console_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._console_handler)
                self._handlers.append(self._console_handler)

            file_config = logging_config.get("file", {})
            if file_config.get("enabled", False):
                file_path = file_config.get("path", "logs/smartbar.log")
                log_directory = pathlib.Path(file_path).parent
                os.makedirs(log_directory, exist_ok=True)

                self._file_handler = logging.handlers.RotatingFileHandler(
                    file_path,
                    maxBytes=self._parse_rotation(file_config.get("rotation", "10 MB")),
                    backupCount=self._parse_retention(file_config.get("retention", "30 days")),
                    encoding="utf-8",
                )
                self._file_handler.setLevel(log_level)
                self._file_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._file_handler)
                self._handlers.append(self._file_handler)

            if self._enable_structlog:
                self._configure_structlog()

            self._config_manager.register_listener("logging", self._on_config_changed)

            atexit.register(self.shutdown)

            self._root_logger.debug(
                "Logging Manager initialized",
                extra={"manager": "LoggingManager", "event": "initialization"},
            )

            self._initialized = True
            self._healthy = True

        except Exception as e:
            raise ManagerInitializationError(
                f"Failed to initialize LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e

    @classmethod
    def _level(cls, value: Any) -> int:
        level_str = value.lower() if isinstance(value, str) else "info"
        return cls.LOG_LEVELS.get(level_str, logging.INFO)

    @staticmethod
    def _parse_rotation(rotation: Any) -> int:
        """Parse a rotation size such as ``"10 MB"`` into bytes."""
        if isinstance(rotation, str) and "MB" in rotation:
            return int(rotation.split()[0]) * 1024 * 1024
        return 10 * 1024 * 1024

    @staticmethod
    def _parse_retention(retention: Any) -> int:
        """Parse a retention such as ``"30 days"`` into a backup count."""
        if isinstance(retention, str) and "days" in retention:
            return int(retention.split()[0])
        return 30

    def _create_json_formatter(self) -> logging.Formatter:
        """Create a JSON formatter for log records.

        Returns:
            logging.Formatter: A formatter that outputs logs in JSON format.
        """
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            json_ensure_ascii=False,
        )

    def _configure_structlog(self) -> None:
        """Configure structlog to render into the JSON handlers."""
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.stdlib.render_to_log_kwargs,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str) -> Union[logging.Logger, Any]:
        """Get a logger for a specific component.

        Args:
            name: The name of the component requesting a logger.

        Returns:
            Union[logging.Logger, Any]: A logger instance configured for the component.
            If structlog is enabled, returns a structured logger.
        """
        if not self._initialized:
            return logging.getLogger(name)

        if self._enable_structlog:
            return structlog.get_logger(name)
        return logging.getLogger(name)

    def get_log_function(self, name: str) -> Callable[[str, str], None]:
        """Get a ``(message, level)`` callable bound to a component logger.

        Args:
            name: The name of the component requesting a logger.

        Returns:
            Callable that logs a message at the named level.
        """
        logger = self.get_logger(name)

        def log(message: str, level: str = "info") -> None:
            getattr(logger, level if level in self.LOG_LEVELS else "info")(message)

        return log

    def _on_config_changed(self, key: str, value: Any) -> None:
        """Handle configuration changes for logging.

        Args:
            key: The configuration key that changed.
            value: The new value.
        """
        if not key.startswith("logging."):
            return

        sub_key = key.split(".", 1)[1]

        if sub_key == "level":
            log_level = self._level(value)
            if self._root_logger:
                self._root_logger.setLevel(log_level)
                if self._file_handler:
                    self._file_handler.setLevel(log_level)

        elif sub_key.startswith("console.") and self._console_handler and self._root_logger:
            if sub_key.endswith(".level"):
                self._console_handler.setLevel(self._level(value))
            elif sub_key.endswith(".enabled"):
                if not value and self._console_handler in self._root_logger.handlers:
                    self._root_logger.removeHandler(self._console_handler)
                elif value and self._console_handler not in self._root_logger.handlers:
                    self._root_logger.addHandler(self._console_handler)

        elif sub_key.startswith("file.") and self._file_handler and self._root_logger:
            if sub_key.endswith(".level"):
                self._file_handler.setLevel(self._level(value))
            elif sub_key.endswith(".enabled"):
                if not value and self._file_handler in self._root_logger.handlers:
                    self._root_logger.removeHandler(self._file_handler)
                elif value and self._file_handler not in self._root_logger.handlers:
                    self._root_logger.addHandler(self._file_handler)

    def shutdown(self) -> None:
        """Shut down the Logging Manager.

        Raises:
            ManagerShutdownError: If shutdown fails.
        """
        if not self._initialized:
            return

        try:
            for handler in self._handlers:
                if self._root_logger:
                    self._root_logger.removeHandler(handler)
                try:
                    handler.flush()
                    handler.close()
                except Exception:
                    # Just continue if a handler fails to close
                    pass
            self._handlers.clear()

            self._config_manager.unregister_listener("logging", self._on_config_changed)

            atexit.unregister(self.shutdown)

            if self._enable_structlog:
                structlog.reset_defaults()

            self._initialized = False
            self._healthy = False

        except Exception as e:
            raise ManagerShutdownError(
                f"Failed to shut down LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e
