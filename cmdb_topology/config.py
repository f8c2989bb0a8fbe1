"""Configuration helpers for the CMDB topology service.

Settings come from ``CMDB_*`` environment variables; a ``.env`` file in the
base directory is loaded first so local overrides do not need exporting.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv


def _env(key: str, default: str) -> str:
    value = os.getenv(key)
    return value.strip() if value is not None else default


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, str(default)))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(_env(key, str(default)))
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    raw = _env(key, str(default)).lower()
    if raw in {"1", "true", "yes", "y"}:
        return True
    if raw in {"0", "false", "no", "n"}:
        return False
    return default


@dataclass(slots=True)
class QueryConfig:
    max_page_size: int = 1000
    relation_batch: int = 5000
    request_timeout: float = 30.0


@dataclass(slots=True)
class MigrationConfig:
    step: int = 5000


@dataclass(slots=True)
class LoggingConfig:
    level: int = logging.INFO
    json: bool = False


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8262


@dataclass(slots=True)
class AppConfig:
    base_dir: Path
    data_dir: Path
    database_url: str
    query: QueryConfig = field(default_factory=QueryConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    log: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    extras: Dict[str, Any] = field(default_factory=dict)


def _log_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def load_config(base_dir: Path | None = None) -> AppConfig:
    base = base_dir or Path(os.getenv("CMDB_HOME", Path.cwd()))
    env_path = base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    data_dir = base / "cmdb-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    database_url = _env("CMDB_DATABASE_URL", f"sqlite:///{data_dir / 'cmdb.db'}")

    query = QueryConfig(
        max_page_size=_env_int("CMDB_MAX_PAGE_SIZE", 1000),
        relation_batch=_env_int("CMDB_RELATION_BATCH", 5000),
        request_timeout=_env_float("CMDB_REQUEST_TIMEOUT_SEC", 30.0),
    )
    migration = MigrationConfig(step=_env_int("CMDB_MIGRATION_STEP", 5000))
    log_cfg = LoggingConfig(
        level=_log_level(_env("CMDB_LOG_LEVEL", "INFO")),
        json=_env_bool("CMDB_LOG_JSON", False),
    )
    server = ServerConfig(
        host=_env("CMDB_HOST", "0.0.0.0"),
        port=_env_int("CMDB_PORT", 8262),
    )
    extras = {
        "instance_id": _env("CMDB_INSTANCE_ID", "cmdb-local"),
        "environment": _env("CMDB_ENVIRONMENT", "development"),
    }

    return AppConfig(
        base_dir=base,
        data_dir=data_dir,
        database_url=database_url,
        query=query,
        migration=migration,
        log=log_cfg,
        server=server,
        extras=extras,
    )
