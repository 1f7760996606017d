"""Centralized logging configuration for the browser automation service."""

import json
import logging
import logging.config
import uuid
from typing import Any, Optional

from .config_models import SystemConfig


class ContextFilter(logging.Filter):
    """Custom filter to inject run context into log records."""

    def __init__(self, run_id: str):
        """
        Initialize the context filter.

        Args:
            run_id: Unique identifier for the service run
        """
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        """Add run_id to the log record."""
        record.run_id = self.run_id
        return True


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    # Attributes every LogRecord carries; anything else came in through ``extra``
    _RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": self.formatTime(record),
            "logger": record.name,
            "level": record.levelname,
            "run_id": getattr(record, "run_id", "unknown"),
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in log_data and key not in self._RESERVED and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(config: SystemConfig, run_id: Optional[str] = None) -> str:
    """
    Configure the logging system.

    Args:
        config: System configuration
        run_id: Run identifier. If None, a new UUID will be generated.

    Returns:
        The run_id used for logging
    """
    if run_id is None:
        run_id = str(uuid.uuid4())

    log_dir = config.paths.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"run_{run_id}.log"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": config.logging.format_console,
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": JSONFormatter,
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "filters": {
            "context": {
                "()": ContextFilter,
                "run_id": run_id
            }
        },
        "handlers": {
            # stdout may carry a tool protocol, keep diagnostics on stderr
            "console": {
                "class": "logging.StreamHandler",
                "level": config.logging.level,
                "formatter": "console",
                "filters": ["context"],
                "stream": "ext://sys.stderr"
            },
            "file": {
                "class": "logging.FileHandler",
                "level": "DEBUG",
                "formatter": "json",
                "filters": ["context"],
                "filename": str(log_file),
                "mode": "w"
            }
        },
        "root": {
            "level": "DEBUG",
            "handlers": ["console", "file"]
        },
        "loggers": {
            "webpilot": {
                "level": "DEBUG",
                "propagate": True
            },
            # Selenium and urllib3 are chatty at DEBUG
            "selenium": {
                "level": "WARNING",
                "propagate": True
            },
            "urllib3": {
                "level": "WARNING",
                "propagate": True
            }
        }
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized for run {run_id}")
    logger.debug(f"Log file: {log_file}")

    return run_id


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LogCapture:
    """Context manager for capturing logs during execution."""

    def __init__(self, logger_name: str = ""):
        """
        Initialize log capture.

        Args:
            logger_name: Name of logger to capture (empty for root)
        """
        self.logger_name = logger_name
        self.handler: Optional[logging.Handler] = None
        self.logs: list = []

    def __enter__(self) -> "LogCapture":
        """Start capturing logs."""
        class CaptureHandler(logging.Handler):
            def __init__(self, capture_func):
                super().__init__()
                self.capture_func = capture_func

            def emit(self, record):
                self.capture_func(record)

        self.handler = CaptureHandler(self._capture_log)

        logger = logging.getLogger(self.logger_name)
        logger.addHandler(self.handler)

        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Stop capturing logs."""
        if self.handler:
            logger = logging.getLogger(self.logger_name)
            logger.removeHandler(self.handler)

    def _capture_log(self, record: logging.LogRecord) -> None:
        """Capture a log record."""
        self.logs.append({
            "level": record.levelname,
            "message": record.getMessage(),
            "timestamp": record.created,
            "logger": record.name
        })

    def get_logs(self, level: Optional[str] = None) -> list:
        """
        Get captured logs.

        Args:
            level: Optional level filter

        Returns:
            List of log records
        """
        if level is None:
            return self.logs.copy()
        return [log for log in self.logs if log["level"] == level]


def log_browser_action(logger: logging.Logger, session_id: str, action: str,
                       target: Optional[str] = None, success: bool = True,
                       detail: Optional[Any] = None) -> None:
    """
    Log a browser action with structured data.

    Args:
        logger: Logger instance
        session_id: Browser session identifier
        action: Action name (navigate, click, ...)
        target: Selector or URL the action worked on
        success: Whether the browser reported success
        detail: Optional message or returned value
    """
    extra_data = {
        "session_id": session_id,
        "action": action,
        "target": target,
        "action_success": success
    }

    if success:
        logger.debug(f"BROWSER {action.upper()}: {session_id} -> {target or '-'}", extra=extra_data)
    else:
        extra_data["detail"] = detail
        logger.warning(f"BROWSER {action.upper()} FAILED: {session_id} -> {target or '-'}: {detail}",
                       extra=extra_data)
