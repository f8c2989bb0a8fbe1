"""Bootstrap context for the CMDB topology service."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig, load_config
from .database import Database
from .engine import TopologyEngine
from .logging_setup import setup_logging


@dataclass
class TopologyContext:
    config: AppConfig
    database: Database
    engine: TopologyEngine


def build_context(base_dir: Path | None = None) -> TopologyContext:
    config = load_config(base_dir)
    setup_logging(config.log)
    database = Database(config.database_url)
    database.create_all()
    engine = TopologyEngine(config, database)
    return TopologyContext(config=config, database=database, engine=engine)
