"""Idempotent structural migrations: index creation and field removal."""

from __future__ import annotations

import logging

from ..constants import DEFAULT_STEP
from ..cursor import BatchedCursor, CursorStats, Page
from ..errors import DuplicateIndexError, StorageError, TypeCoercionError
from ..storage import IndexSpec, Store
from ..utils import get_int64

LOGGER = logging.getLogger("cmdb.migrator")


def ensure_index(store: Store, collection: str, spec: IndexSpec) -> bool:
    """Create ``spec`` unless it is already there.

    Returns True when the index was created and False when it already existed.
    """
    try:
        store.create_index(collection, spec)
    except DuplicateIndexError:
        LOGGER.info("index %s on %s already exists, rid: %s", spec.name, collection, store.ctx.rid)
        return False
    except StorageError as exc:
        LOGGER.error("create index failed, idx: %s, err: %s, rid: %s", spec, exc, store.ctx.rid)
        raise
    LOGGER.info("index %s created on %s, rid: %s", spec.name, collection, store.ctx.rid)
    return True


def drop_field(
    store: Store,
    collection: str,
    id_field: str,
    field_name: str,
    step: int = DEFAULT_STEP,
) -> CursorStats:
    """Remove ``field_name`` from every record of ``collection`` that has it.

    Each page is committed before the next one is read, so an aborted run
    keeps the pages it finished and the next run picks up the rest.
    """

    def drop_page(page: Page) -> None:
        ids = []
        for record in page:
            try:
                ids.append(get_int64(record.get(id_field)))
            except TypeCoercionError:
                LOGGER.error("get %s of %s failed, record: %s, rid: %s", id_field, collection, record, store.ctx.rid)
                raise
        store.drop_fields(collection, {id_field: {"$in": ids}}, [field_name])
        store.commit()

    cursor = BatchedCursor(
        store,
        collection,
        {field_name: {"$exists": True}},
        fields=[id_field],
        page_size=step,
        stage=f"drop {collection}.{field_name}",
    )
    stats = cursor.run(drop_page)
    LOGGER.info(
        "dropped %s from %d records of %s in %d pages, rid: %s",
        field_name,
        stats.records,
        collection,
        stats.pages,
        store.ctx.rid,
    )
    return stats
