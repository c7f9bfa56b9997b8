"""Structured logging configuration"""

import logging
import json
import os
from datetime import datetime


class StructuredLogger:
    """Structured JSON logger for the spends pipeline"""

    def __init__(self, name: str, level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # One handler per named logger, even if get_logger is called repeatedly
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def log(self, level: str, message: str, exc_info: bool = False, **kwargs):
        """Log structured message with keyword context"""
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "level": level.upper(),
            "message": message,
            **kwargs
        }

        getattr(self.logger, level.lower())(json.dumps(log_data, default=str), exc_info=exc_info)

    def info(self, message: str, **kwargs):
        self.log("info", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.log("warning", message, **kwargs)

    def error(self, message: str, **kwargs):
        self.log("error", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.log("debug", message, **kwargs)

    def exception(self, message: str, **kwargs):
        self.log("error", message, exc_info=True, **kwargs)


class JSONFormatter(logging.Formatter):
    """Wraps the structured payload with logger metadata"""

    def format(self, record):
        try:
            payload = json.loads(record.getMessage())
        except (TypeError, ValueError):
            payload = {"message": record.getMessage()}

        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **payload,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Get or create structured logger"""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    return StructuredLogger(name, log_level)
