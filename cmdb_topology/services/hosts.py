"""Host listing: business scoping, set conditions, property filters, paging."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from .. import constants as c
from ..config import AppConfig
from ..cursor import BatchedCursor
from ..params import (
    ListHostsOption,
    ListHostsParameter,
    ListHostsWithNoBizParameter,
    SetCondition,
    set_cond_filter,
)
from ..storage import Store
from ..utils import get_int64, unique_ints

LOGGER = logging.getLogger("cmdb.hosts")


@dataclass
class HostListResult:
    count: int = 0
    info: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "info": self.info}


class HostService:
    def __init__(self, config: AppConfig):
        self.config = config

    def _collect_ids(self, store: Store, collection: str, flt: Dict[str, Any], id_field: str, stage: str) -> Set[int]:
        cursor = BatchedCursor(
            store,
            collection,
            flt,
            fields=[id_field],
            page_size=self.config.query.relation_batch,
            stage=stage,
            advance_offset=True,
        )
        ids: List[int] = []
        for page in cursor.pages():
            ids.extend(get_int64(row.get(id_field)) for row in page)
        return unique_ints(ids)

    def resolve_set_ids(self, store: Store, biz_id: int, conditions: List[SetCondition]) -> List[int]:
        flt = set_cond_filter(conditions)
        flt[c.BIZ_ID] = biz_id
        return sorted(self._collect_ids(store, c.TABLE_SET, flt, c.SET_ID, "resolve_set_ids"))

    def scoped_host_ids(self, store: Store, option: ListHostsOption) -> Set[int]:
        flt: Dict[str, Any] = {}
        if option.biz_id is not None:
            flt[c.BIZ_ID] = option.biz_id
        if option.set_ids:
            flt[c.SET_ID] = {"$in": option.set_ids}
        if option.module_ids:
            flt[c.MODULE_ID] = {"$in": option.module_ids}
        return self._collect_ids(store, c.TABLE_MODULE_HOST_CONFIG, flt, c.HOST_ID, "collect_host_ids")

    def list_hosts(self, store: Store, option: ListHostsOption) -> HostListResult:
        clauses: List[Dict[str, Any]] = []
        if option.scoped:
            host_ids = self.scoped_host_ids(store, option)
            if not host_ids:
                return HostListResult()
            clauses.append({c.HOST_ID: {"$in": sorted(host_ids)}})
        if option.host_filter:
            clauses.append(option.host_filter)
        if not clauses:
            flt: Dict[str, Any] = {}
        elif len(clauses) == 1:
            flt = clauses[0]
        else:
            flt = {"$and": clauses}

        page = option.page
        count = store.count(c.TABLE_HOST, flt)
        info = store.find(
            c.TABLE_HOST,
            flt,
            fields=option.fields,
            offset=page.start,
            limit=page.limit,
            sort=page.sort or c.HOST_ID,
        )
        LOGGER.debug("listed %d of %d hosts, rid: %s", len(info), count, store.ctx.rid)
        return HostListResult(count=count, info=info)

    def list_biz_hosts(self, store: Store, biz_id: int, param: ListHostsParameter) -> HostListResult:
        set_ids = param.set_ids
        if param.set_cond:
            set_ids = self.resolve_set_ids(store, biz_id, param.set_cond)
            if not set_ids:
                LOGGER.info("no set matches set_cond in biz %s, rid: %s", biz_id, store.ctx.rid)
                return HostListResult()
        option = ListHostsOption(
            biz_id=biz_id,
            set_ids=set_ids,
            module_ids=param.module_ids,
            host_filter=param.host_filter,
            fields=param.fields,
            page=param.page,
        )
        return self.list_hosts(store, option)

    def list_hosts_without_biz(self, store: Store, param: ListHostsWithNoBizParameter) -> HostListResult:
        option = ListHostsOption(host_filter=param.host_filter, fields=param.fields, page=param.page)
        return self.list_hosts(store, option)
