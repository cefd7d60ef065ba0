"""
JSON logging for genesis runs.

Every record is emitted as one JSON object so the distribution trail can be
audited next to the step log. Structured context goes through ``extra``:

    logger.info(
        "Step %s completed", step.key,
        extra={"event": "distribution.step_completed", "step": step.key},
    )
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class GenesisJsonFormatter(jsonlogger.JsonFormatter):
    """Adds UTC timestamp, lowercase level, service tag and call site."""

    def __init__(self, service: str = "tokengen", environment: Optional[str] = None):
        super().__init__(fmt=LOG_FORMAT)
        self.service = service
        self.environment = environment or "production"

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        # fmt placeholders arrive as None when the record lacks them
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["service"] = self.service
        log_record["environment"] = self.environment
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def _handlers_for(
    log_file: Optional[str], enable_console: bool, max_bytes: int, backup_count: int
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    # stdout is reserved for --json-output payloads
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_file, maxBytes=max_bytes, backupCount=backup_count
            )
        )
    return handlers


def setup_logging(
    name: str = "tokengen",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the ``name`` logger for JSON output and return it.

    Calling it again replaces the handlers installed by the previous call,
    so the CLI can reconfigure the package logger on every invocation.
    Child loggers such as ``tokengen.distribution.orchestrator`` propagate
    to it.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level {level!r}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = GenesisJsonFormatter(service=name.split(".")[0], environment=environment)
    for handler in _handlers_for(log_file, enable_console, max_bytes, backup_count):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
