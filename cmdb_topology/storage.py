"""Document-style access to the CMDB tables.

Collections are table names and records are plain dicts. Filters use the
Mongo-flavoured operators the CMDB services exchange::

    {"bk_biz_id": 3, "bk_host_id": {"$in": [1, 2]}, "version": {"$exists": True}}

A field that has been dropped is stored as NULL, so ``$exists`` maps to
``IS [NOT] NULL``.
"""

from __future__ import annotations

import logging
import contextlib
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Sequence

from sqlalchemy import Column, Index, MetaData, Table, and_, func, insert, inspect, or_, select, true, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models  # noqa: F401
from .context import RequestContext
from .database import Base, interruptible
from .errors import DuplicateIndexError, OperationCancelled, StorageError, StorageLookupError, ValidationError

LOGGER = logging.getLogger("cmdb.storage")

Filter = Mapping[str, Any]


@dataclass(slots=True)
class IndexSpec:
    name: str
    keys: Dict[str, int] = field(default_factory=dict)
    unique: bool = False
    # SQL backends build indexes synchronously; the flag is kept for callers.
    background: bool = True


def _in_values(op: str, value: Any) -> List[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValidationError(f"{op} expects a list, got {type(value).__name__}", key=op)
    return list(value)


_OPERATORS: Dict[str, Callable[[Column, Any], Any]] = {
    "$eq": lambda col, v: col.is_(None) if v is None else col == v,
    "$ne": lambda col, v: col.is_not(None) if v is None else or_(col != v, col.is_(None)),
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$in": lambda col, v: col.in_(_in_values("$in", v)),
    "$nin": lambda col, v: or_(col.not_in(_in_values("$nin", v)), col.is_(None)),
    "$exists": lambda col, v: col.is_not(None) if v else col.is_(None),
    "$like": lambda col, v: col.like(v, escape="\\"),
}


class Store:
    """Storage collaborator bound to one session and one request context."""

    def __init__(self, session: Session, ctx: RequestContext | None = None):
        self.session = session
        self.ctx = ctx or RequestContext()

    # -- filter compilation -------------------------------------------------

    def _table(self, collection: str) -> Table:
        table = Base.metadata.tables.get(collection)
        if table is None:
            raise StorageError(f"unknown collection {collection}")
        return table

    def _column(self, table: Table, name: str) -> Column:
        column = table.c.get(name)
        if column is None:
            raise ValidationError(f"unknown field {name} in {table.name}", key=name)
        return column

    def _where(self, table: Table, flt: Filter | None):
        if not flt:
            return true()
        clauses = []
        for key, cond in flt.items():
            if key in ("$and", "$or"):
                if not isinstance(cond, (list, tuple)) or not cond:
                    raise ValidationError(f"{key} expects a non-empty list", key=key)
                parts = [self._where(table, sub) for sub in cond]
                clauses.append(and_(*parts) if key == "$and" else or_(*parts))
                continue
            column = self._column(table, key)
            if isinstance(cond, Mapping):
                if not cond:
                    raise ValidationError(f"empty condition for {key}", key=key)
                for op, value in cond.items():
                    compare = _OPERATORS.get(op)
                    if compare is None:
                        raise ValidationError(f"unsupported operator {op}", key=key)
                    clauses.append(compare(column, value))
            else:
                clauses.append(_OPERATORS["$eq"](column, cond))
        return and_(*clauses)

    def _projection(self, table: Table, fields: Sequence[str] | None) -> List[Column]:
        if not fields:
            return list(table.columns)
        columns = [table.c[name] for name in dict.fromkeys(fields) if name in table.c]
        return columns or list(table.primary_key.columns)

    def _order(self, table: Table, sort: str | None) -> List[Any]:
        order: List[Any] = []
        for item in (sort or "").split(","):
            item = item.strip()
            if not item:
                continue
            descending = item.startswith("-")
            column = self._column(table, item.lstrip("-+"))
            order.append(column.desc() if descending else column.asc())
        order.extend(column.asc() for column in table.primary_key.columns)
        return order

    # -- operations ---------------------------------------------------------

    @contextlib.contextmanager
    def _bounded(self) -> Iterator[None]:
        """Run one statement under the request deadline and cancellation."""
        self.ctx.check()
        with interruptible(self.session.connection(), self.ctx.done):
            try:
                yield
            except SQLAlchemyError as exc:
                if self.ctx.done():
                    LOGGER.warning("statement interrupted, err: %s, rid: %s", exc, self.ctx.rid)
                    raise OperationCancelled(f"request {self.ctx.rid} interrupted") from exc
                raise

    def find(
        self,
        collection: str,
        flt: Filter | None = None,
        fields: Sequence[str] | None = None,
        offset: int = 0,
        limit: int | None = None,
        sort: str | None = None,
    ) -> List[Dict[str, Any]]:
        table = self._table(collection)
        stmt = (
            select(*self._projection(table, fields))
            .where(self._where(table, flt))
            .order_by(*self._order(table, sort))
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._bounded():
                rows = self.session.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            LOGGER.error("find %s failed, filter: %s, err: %s, rid: %s", collection, flt, exc, self.ctx.rid)
            raise StorageLookupError(f"find on {collection} failed: {exc}") from exc
        return [dict(row) for row in rows]

    def count(self, collection: str, flt: Filter | None = None) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table).where(self._where(table, flt))
        try:
            with self._bounded():
                return int(self.session.scalar(stmt) or 0)
        except SQLAlchemyError as exc:
            LOGGER.error("count %s failed, filter: %s, err: %s, rid: %s", collection, flt, exc, self.ctx.rid)
            raise StorageLookupError(f"count on {collection} failed: {exc}") from exc

    def create_index(self, collection: str, spec: IndexSpec) -> None:
        """Create ``spec`` on ``collection``.

        Index names are scoped per collection, as in the document store the
        CMDB grew up on, so the physical name is prefixed with the table name.
        Raises ``DuplicateIndexError`` when an index with the same name or the
        same key list is already there.
        """
        table = self._table(collection)
        if not spec.keys:
            raise ValidationError("index needs at least one key", key="keys")
        for key in spec.keys:
            self._column(table, key)
        physical = f"{table.name}_{spec.name}"
        try:
            with self._bounded():
                conn = self.session.connection()
                for existing in inspect(conn).get_indexes(table.name):
                    same_name = existing["name"] in (spec.name, physical)
                    if same_name or list(existing["column_names"]) == list(spec.keys):
                        raise DuplicateIndexError(collection, existing["name"])
                scratch = Table(table.name, MetaData(), *(Column(k, table.c[k].type) for k in spec.keys))
                columns = [scratch.c[k].desc() if direction < 0 else scratch.c[k] for k, direction in spec.keys.items()]
                Index(physical, *columns, unique=spec.unique).create(bind=conn)
        except SQLAlchemyError as exc:
            if "already exists" in str(exc).lower():
                raise DuplicateIndexError(collection, physical) from exc
            LOGGER.error("create index %s on %s failed, err: %s, rid: %s", spec.name, collection, exc, self.ctx.rid)
            raise StorageError(f"create index {spec.name} on {collection} failed: {exc}") from exc

    def drop_fields(self, collection: str, flt: Filter, fields: Sequence[str]) -> int:
        table = self._table(collection)
        values: Dict[str, Any] = {}
        for name in fields:
            column = self._column(table, name)
            if column.primary_key or not column.nullable:
                raise ValidationError(f"field {name} of {collection} cannot be dropped", key=name)
            values[column.name] = None
        if not values:
            return 0
        stmt = update(table).where(self._where(table, flt)).values(values)
        try:
            with self._bounded():
                result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            LOGGER.error("drop %s on %s failed, err: %s, rid: %s", list(fields), collection, exc, self.ctx.rid)
            raise StorageError(f"drop fields on {collection} failed: {exc}") from exc
        return result.rowcount

    def insert_many(self, collection: str, records: Iterable[Mapping[str, Any]]) -> int:
        table = self._table(collection)
        groups: Dict[tuple, List[Dict[str, Any]]] = defaultdict(list)
        for record in records:
            for key in record:
                self._column(table, key)
            groups[tuple(sorted(record))].append(dict(record))
        total = 0
        try:
            with self._bounded():
                for rows in groups.values():
                    self.session.execute(insert(table), rows)
                    total += len(rows)
        except SQLAlchemyError as exc:
            LOGGER.error("insert into %s failed, err: %s, rid: %s", collection, exc, self.ctx.rid)
            raise StorageError(f"insert into {collection} failed: {exc}") from exc
        return total

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            LOGGER.error("commit failed, err: %s, rid: %s", exc, self.ctx.rid)
            raise StorageError(f"commit failed: {exc}") from exc
