"""Logging configuration for the CMDB topology service."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Iterable

from .config import LoggingConfig

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

LOGGER_NAMES = (
    "cmdb",
    "cmdb.storage",
    "cmdb.hosts",
    "cmdb.topology",
    "cmdb.migrator",
    "cmdb.api",
)


class SensitiveDataFilter(logging.Filter):
    """Masks credentials that end up in connection strings or headers."""

    _PATTERNS: Iterable[tuple[re.Pattern[str], str]] = (
        (re.compile(r"(://[^:/\s]+:)([^@\s]+)(@)"), r"\1***\3"),
        (re.compile(r"(password=)([^&\s]+)", re.I), r"\1***"),
        (re.compile(r"Bearer\s+[A-Za-z0-9._-]+"), "Bearer ***"),
    )

    def __init__(self) -> None:
        super().__init__(name="SensitiveDataFilter")

    @classmethod
    def _sanitize(cls, value: object) -> object:
        if isinstance(value, str):
            for pattern, repl in cls._PATTERNS:
                value = pattern.sub(repl, value)
            return value
        if isinstance(value, tuple):
            return tuple(cls._sanitize(v) for v in value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._sanitize(record.msg)
        if isinstance(record.args, tuple):
            record.args = self._sanitize(record.args)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def setup_logging(config: LoggingConfig | None = None) -> Dict[str, logging.Logger]:
    cfg = config or LoggingConfig()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if cfg.json else logging.Formatter(DEFAULT_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    logging.basicConfig(level=cfg.level, handlers=[handler])
    logging.getLogger("cmdb").setLevel(cfg.level)
    return {name: logging.getLogger(name) for name in LOGGER_NAMES}
