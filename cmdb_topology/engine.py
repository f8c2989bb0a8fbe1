"""Topology engine: one session, store and request context per call."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping

from . import constants as c
from .config import AppConfig
from .context import RequestContext
from .database import Database
from .errors import AggregationError, CmdbError, ValidationError
from .params import ListHostsParameter, ListHostsWithNoBizParameter, parse_biz_id
from .services.hosts import HostService
from .services.topology import TopologyService
from .storage import Store
from .upgrader import run_upgrades

LOGGER = logging.getLogger("cmdb")

FIXTURE_COLLECTIONS = {
    "plats": c.TABLE_PLAT,
    "hosts": c.TABLE_HOST,
    "set_templates": c.TABLE_SET_TEMPLATE,
    "sets": c.TABLE_SET,
    "modules": c.TABLE_MODULE,
    "relations": c.TABLE_MODULE_HOST_CONFIG,
}


@dataclass
class EngineResult:
    ok: bool
    payload: Dict[str, Any]
    error: str | None = None
    code: str | None = None

    @property
    def is_client_error(self) -> bool:
        return self.code == ValidationError.code


class TopologyEngine:
    def __init__(self, config: AppConfig, database: Database):
        self.config = config
        self.database = database
        self.hosts = HostService(config)
        self.topology = TopologyService(config, self.hosts)

    def new_context(self, rid: str | None = None) -> RequestContext:
        return RequestContext.with_timeout(self.config.query.request_timeout, rid=rid)

    @contextmanager
    def _store(self, ctx: RequestContext) -> Iterator[Store]:
        with self.database.session() as session:
            yield Store(session, ctx)

    def _call(self, operation: str, ctx: RequestContext | None, fn: Callable[[Store], Dict[str, Any]]) -> EngineResult:
        ctx = ctx or self.new_context()
        try:
            with self._store(ctx) as store:
                return EngineResult(True, fn(store))
        except CmdbError as exc:
            cause = exc.cause if isinstance(exc, AggregationError) else exc
            if isinstance(cause, ValidationError):
                LOGGER.warning("%s rejected, key: %s, err: %s, rid: %s", operation, cause.key, cause, ctx.rid)
                return EngineResult(False, {}, str(cause), cause.code)
            LOGGER.error("%s failed, err: %s, rid: %s", operation, exc, ctx.rid)
            return EngineResult(False, {}, str(exc), exc.code)

    def list_biz_hosts(self, biz_id: Any, payload: Any, ctx: RequestContext | None = None) -> EngineResult:
        def run(store: Store) -> Dict[str, Any]:
            bid = parse_biz_id(biz_id)
            param = ListHostsParameter.from_dict(payload, self.config.query.max_page_size)
            return self.hosts.list_biz_hosts(store, bid, param).to_dict()

        return self._call("list_biz_hosts", ctx, run)

    def list_hosts_without_biz(self, payload: Any, ctx: RequestContext | None = None) -> EngineResult:
        def run(store: Store) -> Dict[str, Any]:
            param = ListHostsWithNoBizParameter.from_dict(payload, self.config.query.max_page_size)
            return self.hosts.list_hosts_without_biz(store, param).to_dict()

        return self._call("list_hosts_without_biz", ctx, run)

    def list_biz_hosts_topo(self, biz_id: Any, payload: Any, ctx: RequestContext | None = None) -> EngineResult:
        def run(store: Store) -> Dict[str, Any]:
            bid = parse_biz_id(biz_id)
            param = ListHostsWithNoBizParameter.from_dict(payload, self.config.query.max_page_size)
            return self.topology.list_biz_hosts_topo(store, bid, param).to_dict()

        return self._call("list_biz_hosts_topo", ctx, run)

    def upgrade(self, version: str | None = None, ctx: RequestContext | None = None) -> EngineResult:
        def run(store: Store) -> Dict[str, Any]:
            applied: List[Dict[str, str]] = run_upgrades(store, self.config, only=version)
            return {"applied": applied}

        # upgrades page through whole tables; the request deadline does not apply
        return self._call("upgrade", ctx or RequestContext(), run)

    def load_fixture(self, data: Mapping[str, Any], ctx: RequestContext | None = None) -> EngineResult:
        def run(store: Store) -> Dict[str, Any]:
            if not isinstance(data, Mapping):
                raise ValidationError("fixture must be an object")
            unknown = set(data) - set(FIXTURE_COLLECTIONS)
            if unknown:
                raise ValidationError(f"unknown fixture sections: {', '.join(sorted(unknown))}")
            loaded = {}
            for section, collection in FIXTURE_COLLECTIONS.items():
                records = data.get(section) or []
                loaded[section] = store.insert_many(collection, records) if records else 0
            return {"loaded": loaded}

        return self._call("load_fixture", ctx, run)
