"""
Structured Logging Service - Cloud Logging integration.

Every request handler logs through a RequestLogger so that entries for one
request (and one user) can be filtered together in Cloud Logging.
"""
import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Optional, Any

from google.cloud import logging as cloud_logging

from config import ENABLE_CLOUD_LOGGING

LOG_NAME = "reading-tracker"

# One Cloud Logging client per process; request loggers share it
_cloud_logger = None


def get_cloud_logger():
    """Get or create the process-wide Cloud Logging logger."""
    global _cloud_logger
    if _cloud_logger is None:
        _cloud_logger = cloud_logging.Client().logger(LOG_NAME)
    return _cloud_logger


class StructuredLogger:
    """Provides structured logging for Cloud Logging integration."""

    def __init__(self, request_id: Optional[str] = None, user_id: Optional[str] = None,
                 enable_console: bool = True, enable_cloud: bool = ENABLE_CLOUD_LOGGING):
        """
        Initialize the structured logger.

        Args:
            request_id: Optional request ID to include in all log entries
            user_id: Optional user ID to include in all log entries
            enable_console: If True, also prints to console (default: True)
            enable_cloud: If True, sends entries to Cloud Logging
        """
        self.request_id = request_id
        self.user_id = user_id
        self.enable_console = enable_console
        self.cloud_logging_enabled = False

        if enable_cloud:
            try:
                self.logger = get_cloud_logger()
                self.cloud_logging_enabled = True
            except Exception as e:
                print(f"Warning: Cloud Logging initialization failed: {e}. Using console only.", file=sys.stderr)

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)

    def _log(self, severity: str, message: str, **kwargs):
        """Sends one entry to Cloud Logging and mirrors it to the console."""
        struct = {
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **kwargs
        }
        if self.request_id:
            struct["request_id"] = self.request_id
        if self.user_id:
            struct["user_id"] = self.user_id

        if self.cloud_logging_enabled:
            try:
                self.logger.log_struct(struct, severity=severity)
            except Exception as e:
                print(f"Cloud Logging error: {e}", file=sys.stderr)

        if self.enable_console:
            console_msg = f"[{severity}] {message}"
            if self.request_id:
                console_msg = f"[{self.request_id}] {console_msg}"
            if kwargs:
                console_msg += f" | {json.dumps(kwargs, ensure_ascii=False, default=str)}"

            print(console_msg, file=sys.stderr if severity == "ERROR" else sys.stdout)


class RequestLogger:
    """Convenience wrapper for request-scoped logging."""

    def __init__(self, route: str, user_id: Optional[str] = None, request_id: Optional[str] = None):
        self.request_id = request_id or uuid.uuid4().hex[:12]
        self.route = route
        self.logger = StructuredLogger(request_id=self.request_id, user_id=user_id)

    def bind_user(self, user_id: str):
        """Attach the authenticated user to all subsequent entries."""
        self.logger.user_id = user_id

    def info(self, message: str, **kwargs):
        self.logger.info(message, route=self.route, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, route=self.route, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, route=self.route, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, route=self.route, **kwargs)

    def log_stage(self, stage: str, status: str, **kwargs):
        """
        Log a processing stage.

        Args:
            stage: Stage name (e.g., 'gemini_call', 'resolve_title')
            status: Status (e.g., 'started', 'completed', 'failed')
            **kwargs: Additional context
        """
        self.info(f"Stage: {stage} - {status}", stage=stage, status=status, **kwargs)

    def log_error(self, stage: str, error: str, **kwargs):
        """Log an error that occurred in a given stage."""
        self.error(f"Error in {stage}: {error}", stage=stage, error=error, **kwargs)

    def log_metric(self, metric_name: str, value: Any, **kwargs):
        """Log a metric value."""
        self.info(f"Metric: {metric_name}={value}", metric=metric_name, value=value, **kwargs)


# Global logger instance for shared services
_global_logger = None


def get_logger() -> StructuredLogger:
    """Get the global structured logger."""
    global _global_logger
    if _global_logger is None:
        _global_logger = StructuredLogger()
    return _global_logger
