"""Main entry point for the iaas-service CLI."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .config import Config, ConfigurationError

# LogRecord attributes that are not user supplied extra fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(config: Config) -> None:
    """Install a single stderr handler on the root logger.

    stdout is reserved for command output. Calling this again replaces the
    handler rather than adding a second one.
    """
    handler = logging.StreamHandler(sys.stderr)
    if config.log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_iaas_service", False):
            root_logger.removeHandler(existing)
    handler._iaas_service = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(config.log_level)

    if config.trace:
        logging.getLogger("iaas_service").setLevel(logging.DEBUG)


def main() -> None:
    """Entry point for the iaas-service command."""
    from .cli import cli

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    cli()


if __name__ == "__main__":
    main()
