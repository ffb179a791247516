from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

# Set through ``extra=`` by the construction sequencer, the fatal funnel and
# the transports.
LIFECYCLE_FIELDS = ("app_name", "step", "component", "error")
REQUEST_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms", "client_ip")


def record_fields(record: logging.LogRecord) -> dict[str, object]:
    fields: dict[str, object] = {}
    for name in LIFECYCLE_FIELDS + REQUEST_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class AppNameFilter(logging.Filter):
    """Stamps every record with the application name unless it already has one."""

    def __init__(self, app_name: str) -> None:
        super().__init__()
        self.app_name = app_name

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "app_name", None) is None:
            record.app_name = self.app_name
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(record_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LifecycleTextFormatter(logging.Formatter):
    """Plain text lines with the lifecycle fields appended as ``key=value``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if not fields:
            return line
        head, sep, trace = line.partition("\n")
        suffix = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{head} {suffix}{sep}{trace}"


def configure_logging(*, app_name: Optional[str] = None, level: str = "INFO", json_logs: bool = True) -> None:
    root = logging.getLogger()
    if getattr(root, "_appboot_logging_configured", False):
        root.setLevel(level.upper())
        return

    root.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_logs else LifecycleTextFormatter())
    if app_name:
        handler.addFilter(AppNameFilter(app_name))

    root.addHandler(handler)
    root.setLevel(level.upper())
    root._appboot_logging_configured = True  # type: ignore[attr-defined]
