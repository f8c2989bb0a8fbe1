"""Shared pytest fixtures.

Every test gets its own SQLite file under ``tmp_path`` so tests stay isolated
and can open several sessions against the same data.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import pytest

from cmdb_topology.app import create_app
from cmdb_topology.bootstrap import TopologyContext
from cmdb_topology.config import load_config
from cmdb_topology.context import RequestContext
from cmdb_topology.database import Database
from cmdb_topology.engine import TopologyEngine
from cmdb_topology.storage import Store

BIZ_ID = 3

TOPOLOGY_FIXTURE: Dict[str, List[Dict[str, Any]]] = {
    "plats": [{"bk_cloud_id": 0, "bk_cloud_name": "Default Area"}],
    "hosts": [
        {"bk_host_id": 1, "bk_host_innerip": "10.0.0.1", "bk_host_name": "web-1", "bk_os_type": "1"},
        {"bk_host_id": 2, "bk_host_innerip": "10.0.0.2", "bk_host_name": "db-1", "bk_os_type": "2"},
        {"bk_host_id": 5, "bk_host_innerip": "10.9.0.5", "bk_host_name": "other-biz"},
    ],
    "set_templates": [{"id": 1, "name": "standard", "bk_biz_id": BIZ_ID, "version": 4}],
    "sets": [
        {"bk_set_id": 10, "bk_set_name": "SetA", "bk_biz_id": BIZ_ID, "set_template_id": 1, "set_template_version": 4},
        {"bk_set_id": 20, "bk_set_name": "SetB", "bk_biz_id": BIZ_ID},
        {"bk_set_id": 90, "bk_set_name": "Elsewhere", "bk_biz_id": 4},
    ],
    "modules": [
        {"bk_module_id": 100, "bk_module_name": "Mod1", "bk_set_id": 10, "bk_biz_id": BIZ_ID},
        {"bk_module_id": 101, "bk_module_name": "Mod2", "bk_set_id": 10, "bk_biz_id": BIZ_ID},
        {"bk_module_id": 200, "bk_module_name": "Mod3", "bk_set_id": 20, "bk_biz_id": BIZ_ID},
        {"bk_module_id": 900, "bk_module_name": "Far", "bk_set_id": 90, "bk_biz_id": 4},
    ],
    "relations": [
        {"bk_biz_id": BIZ_ID, "bk_host_id": 1, "bk_set_id": 10, "bk_module_id": 100},
        {"bk_biz_id": BIZ_ID, "bk_host_id": 1, "bk_set_id": 10, "bk_module_id": 101},
        {"bk_biz_id": BIZ_ID, "bk_host_id": 2, "bk_set_id": 20, "bk_module_id": 200},
        {"bk_biz_id": 4, "bk_host_id": 5, "bk_set_id": 90, "bk_module_id": 900},
    ],
}


class FakeStore:
    """In-memory stand-in for ``Store`` that serves canned pages per collection."""

    def __init__(self, pages: Dict[str, List[List[Dict[str, Any]]]] | None = None, ctx: RequestContext | None = None):
        self.pages = {name: list(items) for name, items in (pages or {}).items()}
        self.calls: List[Dict[str, Any]] = []
        self.ctx = ctx or RequestContext()

    def find(self, collection, flt=None, fields=None, offset=0, limit=None, sort=None):
        self.calls.append({"collection": collection, "filter": flt, "fields": fields, "offset": offset, "limit": limit})
        self.ctx.check()
        queue = self.pages.get(collection) or []
        item = queue.pop(0) if queue else []
        if isinstance(item, BaseException):
            raise item
        return item

    def calls_for(self, collection: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["collection"] == collection]


@pytest.fixture()
def topology_fixture() -> Dict[str, List[Dict[str, Any]]]:
    return copy.deepcopy(TOPOLOGY_FIXTURE)


@pytest.fixture()
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("CMDB_DATABASE_URL", raising=False)
    cfg = load_config(tmp_path)
    cfg.database_url = f"sqlite:///{tmp_path / 'test.db'}"
    return cfg


@pytest.fixture()
def database(config):
    db = Database(config.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture()
def store(database):
    with database.session() as session:
        yield Store(session)


@pytest.fixture()
def engine(config, database):
    return TopologyEngine(config, database)


@pytest.fixture()
def seeded_engine(engine, topology_fixture):
    result = engine.load_fixture(topology_fixture)
    assert result.ok, result.error
    return engine


@pytest.fixture()
def seeded_store(seeded_engine, database):
    with database.session() as session:
        yield Store(session)


@pytest.fixture()
def app(config, database, seeded_engine):
    flask_app = create_app(context=TopologyContext(config=config, database=database, engine=seeded_engine))
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
