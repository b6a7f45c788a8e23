# file: scamshield/logging_config.py
"""
Logging configuration.

scamshield uses standard library logging. The main app logs to stdout; the
extension process logs to stderr because its stdout carries the JSON result
read by `SubprocessExtensionHost`. A JSON formatter is available for
containers and CI.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Literal

ProcessRole = Literal["app", "extension"]

_RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def __init__(self, *, role: ProcessRole = "app") -> None:
        super().__init__()
        self._role = role

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "role": self._role,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        # Fields passed via `extra=`.
        for k, v in record.__dict__.items():
            if k in _RESERVED or k.startswith("_"):
                continue
            payload[k] = v

        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


def configure_logging(
    *, level: str = "INFO", json_logging: bool = False, role: ProcessRole = "app"
) -> None:
    """Configure root logging for the app or the extension process."""

    root = logging.getLogger()
    root.setLevel(level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    stream = sys.stderr if role == "extension" else sys.stdout
    handler = logging.StreamHandler(stream)
    if json_logging:
        handler.setFormatter(JsonFormatter(role=role))
    else:
        handler.setFormatter(
            logging.Formatter(f"%(asctime)s %(levelname)s [{role}] %(name)s: %(message)s")
        )

    root.addHandler(handler)
