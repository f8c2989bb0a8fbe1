import pytest

from cmdb_topology.context import RequestContext
from cmdb_topology.cursor import BatchedCursor
from cmdb_topology.errors import AggregationError, OperationCancelled, StorageLookupError, ValidationError

from conftest import FakeStore

COLLECTION = "cc_SetBase"


def records(*ids):
    return [{"bk_set_id": i} for i in ids]


def test_exactly_full_last_page_needs_one_more_fetch():
    store = FakeStore({COLLECTION: [records(1, 2), records(3, 4)]})
    seen = []
    stats = BatchedCursor(store, COLLECTION, {}, page_size=2).run(seen.append)
    assert seen == [records(1, 2), records(3, 4)]
    assert stats.pages == 2
    assert stats.fetches == 3
    assert stats.records == 4


def test_short_page_is_not_terminal():
    store = FakeStore({COLLECTION: [records(1), records(2), []]})
    stats = BatchedCursor(store, COLLECTION, {}, page_size=5).run(lambda page: None)
    assert stats.pages == 2
    assert stats.fetches == 3


def test_default_mode_always_reads_from_offset_zero():
    store = FakeStore({COLLECTION: [records(1, 2), records(3)]})
    BatchedCursor(store, COLLECTION, {"x": 1}, fields=["bk_set_id"], page_size=2).run(lambda page: None)
    assert [call["offset"] for call in store.calls] == [0, 0, 0]
    assert all(call["limit"] == 2 for call in store.calls)
    assert all(call["fields"] == ["bk_set_id"] for call in store.calls)


def test_read_mode_advances_the_offset():
    store = FakeStore({COLLECTION: [records(1, 2), records(3)]})
    cursor = BatchedCursor(store, COLLECTION, {}, page_size=2, advance_offset=True)
    assert [len(page) for page in cursor.pages()] == [2, 1]
    assert [call["offset"] for call in store.calls] == [0, 2, 3]


def test_empty_collection_never_calls_the_step():
    store = FakeStore()
    calls = []
    stats = BatchedCursor(store, COLLECTION, {}, page_size=3).run(calls.append)
    assert calls == []
    assert stats.fetches == 1
    assert stats.pages == 0


def test_fetch_failure_is_wrapped_with_the_stage():
    failure = StorageLookupError("connection reset")
    store = FakeStore({COLLECTION: [records(1), failure]})
    seen = []
    with pytest.raises(AggregationError) as excinfo:
        BatchedCursor(store, COLLECTION, {}, page_size=1, stage="drop cc_SetBase.version").run(seen.append)
    assert excinfo.value.stage == "drop cc_SetBase.version"
    assert excinfo.value.cause is failure
    assert seen == [records(1)]


def test_step_failure_stops_the_loop():
    store = FakeStore({COLLECTION: [records(1), records(2)]})

    def step(page):
        raise RuntimeError("boom")

    with pytest.raises(AggregationError) as excinfo:
        BatchedCursor(store, COLLECTION, {}, page_size=1, stage="step-stage").run(step)
    assert excinfo.value.stage == "step-stage"
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert len(store.calls) == 1


def test_cancellation_between_pages():
    ctx = RequestContext()
    store = FakeStore({COLLECTION: [records(1), records(2)]}, ctx=ctx)
    seen = []

    def step(page):
        seen.append(page)
        ctx.cancel()

    with pytest.raises(AggregationError) as excinfo:
        BatchedCursor(store, COLLECTION, {}, page_size=1).run(step)
    assert isinstance(excinfo.value.cause, OperationCancelled)
    assert seen == [records(1)]


def test_validation_errors_pass_through():
    store = FakeStore({COLLECTION: [ValidationError("unknown field x", key="x")]})
    with pytest.raises(ValidationError):
        BatchedCursor(store, COLLECTION, {"x": 1}).run(lambda page: None)


@pytest.mark.parametrize("size", [0, -1])
def test_page_size_must_be_positive(size):
    with pytest.raises(ValidationError):
        BatchedCursor(FakeStore(), COLLECTION, {}, page_size=size)
