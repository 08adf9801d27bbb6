# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for CHTL import resolution.

Every record from the chtl_imports logger tree is written as one JSON object
per line. Resolver events that a build tool may want to act on attach their
details under extra_fields, which are merged into the top-level object:

- circular_import_rejected: an import failed the cycle probe
  (source_file, target, cycle_chain)
- transitive_import_dropped: an import discovered inside loaded content
  would close a cycle and was left out of the graph (same fields)

Consumers can filter the log file on the "event" key.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_DIRNAME = ".chtl_imports_logs"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed as logger.warning(..., extra={"extra_fields": {...}});
        # the base keys above are never overwritten
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                log_data.setdefault(key, value)

        return json.dumps(log_data)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
    logger_name: str = "chtl_imports",
) -> logging.Logger:
    """Set up structured logging for the package.

    Args:
        log_dir: Directory for log files. If None, uses .chtl_imports_logs/
        log_level: Logging level (default: INFO)
        console_output: Whether to also output to console (default: True)
        logger_name: Logger to configure. The package logger by default, so
            the host compiler's own logging configuration is left alone.

    Returns:
        The configured logger.
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIRNAME

    log_dir.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(logger_name)
    package_logger.setLevel(log_level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    # File handler with structured JSON logging
    log_file = log_dir / f"chtl_imports_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())
    package_logger.addHandler(file_handler)

    # Console handler with human-readable format (if enabled)
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(console_formatter)
        package_logger.addHandler(console_handler)

    package_logger.info(f"Logging initialized. Log directory: {log_dir}")
    return package_logger
