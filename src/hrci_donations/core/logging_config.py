import logging
import sys
import json
from typing import Any, TextIO

# Payment proof and donor identity never reach the log stream
REDACTED_FIELDS = frozenset({
    "signature",
    "razorpay_signature",
    "donor_pan",
    "donorPan",
    "donor_mobile",
    "donorMobile",
})
QUIET_LOGGERS = ("botocore", "boto3", "urllib3")


def redact(context: dict[str, Any]) -> dict[str, Any]:
    return {k: ("***" if k in REDACTED_FIELDS and v else v) for k, v in context.items()}


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line. Structured fields passed with
    ``extra={"context": {...}}`` are flattened into the line after redaction.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_record.update(redact(context))

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Route the root logger through JsonFormatter. Called once per entry point."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
