"""Fixed-size paging over an unbounded collection.

The default mode always re-reads from offset 0: the step is expected to
shrink the match set (drop the very field the filter tests for, remove the
matched rows), so advancing the offset would skip records. The loop ends on
the first empty page and on nothing else; a short page is not a terminal
signal.

``advance_offset=True`` is the read-only variant for steps that leave the
match set alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Sequence

from .constants import DEFAULT_STEP
from .errors import AggregationError, ValidationError
from .storage import Filter, Store

LOGGER = logging.getLogger("cmdb.storage")

Page = List[Dict[str, Any]]


@dataclass
class CursorStats:
    fetches: int = 0
    pages: int = 0
    records: int = 0


class BatchedCursor:
    def __init__(
        self,
        store: Store,
        collection: str,
        flt: Filter | None,
        fields: Sequence[str] | None = None,
        page_size: int = DEFAULT_STEP,
        stage: str = "batched_cursor",
        advance_offset: bool = False,
    ):
        if page_size <= 0:
            raise ValidationError(f"page size must be positive, got {page_size}", key="page_size")
        self.store = store
        self.collection = collection
        self.flt = flt
        self.fields = list(fields) if fields else None
        self.page_size = page_size
        self.stage = stage
        self.advance_offset = advance_offset
        self.stats = CursorStats()

    def _fetch(self, offset: int) -> Page:
        self.stats.fetches += 1
        try:
            return self.store.find(
                self.collection,
                self.flt,
                fields=self.fields,
                offset=offset,
                limit=self.page_size,
            )
        except ValidationError:
            raise
        except Exception as exc:
            LOGGER.error(
                "%s: fetch from %s failed at page %d, err: %s, rid: %s",
                self.stage,
                self.collection,
                self.stats.fetches,
                exc,
                self.store.ctx.rid,
            )
            raise AggregationError(self.stage, exc) from exc

    def pages(self) -> Iterator[Page]:
        offset = 0
        while True:
            page = self._fetch(offset)
            if not page:
                return
            self.stats.pages += 1
            self.stats.records += len(page)
            yield page
            if self.advance_offset:
                offset += len(page)

    def run(self, step: Callable[[Page], None]) -> CursorStats:
        for page in self.pages():
            try:
                step(page)
            except AggregationError:
                raise
            except Exception as exc:
                LOGGER.error(
                    "%s: step failed on page %d of %s, err: %s, rid: %s",
                    self.stage,
                    self.stats.pages,
                    self.collection,
                    exc,
                    self.store.ctx.rid,
                )
                raise AggregationError(self.stage, exc) from exc
        return self.stats
