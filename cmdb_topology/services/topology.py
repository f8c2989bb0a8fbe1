"""Host topology aggregation.

For a page of hosts: read their host/set/module relation rows, fold them into
``host -> set -> [module]``, resolve set and module names with one lookup per
kind, and emit one topology entry per host in page order.

Identifiers are coerced strictly; a malformed id aborts the request. Names
are resolved leniently; an id missing from the store yields ``""``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set

from .. import constants as c
from ..config import AppConfig
from ..errors import TypeCoercionError
from ..params import ListHostsOption, ListHostsWithNoBizParameter
from ..storage import Store
from ..utils import get_int64, get_string, unique_ints
from .hosts import HostService

LOGGER = logging.getLogger("cmdb.topology")


@dataclass(frozen=True, slots=True)
class Relation:
    host_id: int
    set_id: int
    module_id: int

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Relation":
        return cls(
            host_id=get_int64(record.get(c.HOST_ID)),
            set_id=get_int64(record.get(c.SET_ID)),
            module_id=get_int64(record.get(c.MODULE_ID)),
        )


@dataclass(slots=True)
class HostRecord:
    host_id: int
    data: Dict[str, Any]

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "HostRecord":
        return cls(host_id=get_int64(record.get(c.HOST_ID)), data=dict(record))


@dataclass
class Adjacency:
    """host id -> set id -> module ids, in relation-row order."""

    hosts: Dict[int, Dict[int, List[int]]] = field(default_factory=dict)

    def add(self, relation: Relation) -> None:
        sets = self.hosts.setdefault(relation.host_id, {})
        sets.setdefault(relation.set_id, []).append(relation.module_id)

    def get(self, host_id: int) -> Dict[int, List[int]]:
        return self.hosts.get(host_id, {})

    def set_ids(self) -> Set[int]:
        return unique_ints(set_id for sets in self.hosts.values() for set_id in sets)

    def module_ids(self) -> Set[int]:
        return unique_ints(
            module_id
            for sets in self.hosts.values()
            for modules in sets.values()
            for module_id in modules
        )


@dataclass
class NameMaps:
    sets: Dict[int, str] = field(default_factory=dict)
    modules: Dict[int, str] = field(default_factory=dict)

    def set_name(self, set_id: int) -> str:
        return self.sets.get(set_id, "")

    def module_name(self, module_id: int) -> str:
        return self.modules.get(module_id, "")


@dataclass(slots=True)
class ModuleTopo:
    module_id: int
    module_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {c.MODULE_ID: self.module_id, c.MODULE_NAME: self.module_name}


@dataclass(slots=True)
class SetTopo:
    set_id: int
    set_name: str
    modules: List[ModuleTopo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            c.SET_ID: self.set_id,
            c.SET_NAME: self.set_name,
            "module": [module.to_dict() for module in self.modules],
        }


@dataclass(slots=True)
class HostTopo:
    host: Dict[str, Any]
    topo: List[SetTopo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "topo": [item.to_dict() for item in self.topo]}


@dataclass
class HostTopoResult:
    count: int = 0
    info: List[HostTopo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "info": [item.to_dict() for item in self.info]}


class RelationResolver:
    fields = (c.SET_ID, c.MODULE_ID, c.HOST_ID)

    def resolve(self, store: Store, biz_id: int, host_ids: Sequence[int]) -> Adjacency:
        adjacency = Adjacency()
        ids = unique_ints(host_ids)
        if not ids:
            return adjacency
        rows = store.find(
            c.TABLE_MODULE_HOST_CONFIG,
            {c.BIZ_ID: biz_id, c.HOST_ID: {"$in": sorted(ids)}},
            fields=list(self.fields),
        )
        for row in rows:
            try:
                adjacency.add(Relation.from_record(row))
            except TypeCoercionError:
                LOGGER.error("relation %s is malformed, rid: %s", row, store.ctx.rid)
                raise
        return adjacency


class NameResolver:
    def resolve(self, store: Store, set_ids: Iterable[int], module_ids: Iterable[int]) -> NameMaps:
        return NameMaps(
            sets=self._lookup(store, c.TABLE_SET, c.SET_ID, c.SET_NAME, set_ids),
            modules=self._lookup(store, c.TABLE_MODULE, c.MODULE_ID, c.MODULE_NAME, module_ids),
        )

    def _lookup(
        self,
        store: Store,
        collection: str,
        id_field: str,
        name_field: str,
        ids: Iterable[int],
    ) -> Dict[int, str]:
        wanted = unique_ints(ids)
        if not wanted:
            return {}
        rows = store.find(collection, {id_field: {"$in": sorted(wanted)}}, fields=[id_field, name_field])
        names: Dict[int, str] = {}
        for row in rows:
            try:
                names[get_int64(row.get(id_field))] = get_string(row.get(name_field))
            except TypeCoercionError:
                LOGGER.error("%s record %s is malformed, rid: %s", collection, row, store.ctx.rid)
                raise
        return names


class TopologyAssembler:
    def assemble(self, hosts: Sequence[HostRecord], adjacency: Adjacency, names: NameMaps) -> List[HostTopo]:
        result: List[HostTopo] = []
        for host in hosts:
            topo = [
                SetTopo(
                    set_id=set_id,
                    set_name=names.set_name(set_id),
                    modules=[ModuleTopo(module_id, names.module_name(module_id)) for module_id in module_ids],
                )
                for set_id, module_ids in adjacency.get(host.host_id).items()
            ]
            result.append(HostTopo(host=host.data, topo=topo))
        return result


class TopologyService:
    def __init__(self, config: AppConfig, hosts: HostService | None = None):
        self.config = config
        self.hosts = hosts or HostService(config)
        self.relations = RelationResolver()
        self.names = NameResolver()
        self.assembler = TopologyAssembler()

    def list_biz_hosts_topo(
        self, store: Store, biz_id: int, param: ListHostsWithNoBizParameter
    ) -> HostTopoResult:
        fields = list(param.fields)
        if fields and c.HOST_ID not in fields:
            fields.append(c.HOST_ID)
        listed = self.hosts.list_hosts(
            store,
            ListHostsOption(biz_id=biz_id, host_filter=param.host_filter, fields=fields, page=param.page),
        )
        if not listed.info:
            return HostTopoResult(count=listed.count)

        records: List[HostRecord] = []
        for row in listed.info:
            try:
                records.append(HostRecord.from_record(row))
            except TypeCoercionError:
                LOGGER.error("host %s has an invalid %s, rid: %s", row, c.HOST_ID, store.ctx.rid)
                raise

        adjacency = self.relations.resolve(store, biz_id, [record.host_id for record in records])
        names = self.names.resolve(store, adjacency.set_ids(), adjacency.module_ids())
        info = self.assembler.assemble(records, adjacency, names)
        LOGGER.debug(
            "assembled topology for %d hosts, %d sets, %d modules, rid: %s",
            len(info),
            len(names.sets),
            len(names.modules),
            store.ctx.rid,
        )
        return HostTopoResult(count=listed.count, info=info)
