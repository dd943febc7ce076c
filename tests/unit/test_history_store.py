import pytest
import pytest_asyncio

from hunterkit.api.errors import HistoryStoreError
from hunterkit.storage.history import (
    ExecutionRecord,
    HistoryStore,
    InMemoryHistoryStore,
    SqliteHistoryStore,
)

pytestmark = pytest.mark.unit

V4 = "203.0.113.7"
V6 = "2001:db8:ffff::7"

ROWS = [
    ExecutionRecord(1, V4, 100),
    ExecutionRecord(1, V4, 300),
    ExecutionRecord(1, V6, 500),
    ExecutionRecord(2, V6, 200),
    ExecutionRecord(3, "198.51.100.99", 900),
    ExecutionRecord(4, V4, 50),
]


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryHistoryStore(ROWS)
        return
    s = SqliteHistoryStore(tmp_path / "history.db")
    s.init_schema()
    for row in ROWS:
        await s.record(row)
    try:
        yield s
    finally:
        s.close()


@pytest.mark.asyncio
async def test_latest_execution_per_task_and_address(store):
    assert isinstance(store, HistoryStore)
    got = await store.last_executions({1, 2, 3}, (V4, V6))
    assert got == {(1, V4): 300, (1, V6): 500, (2, V6): 200}


@pytest.mark.asyncio
async def test_none_candidates_never_match(store):
    assert await store.last_executions({1, 2}, (None, V6)) == {(1, V6): 500, (2, V6): 200}
    assert await store.last_executions({1, 2}, (None, None)) == {}


@pytest.mark.asyncio
async def test_tasks_outside_the_batch_are_not_returned(store):
    assert await store.last_executions({4}, (V4, None)) == {(4, V4): 50}
    assert await store.last_executions(set(), (V4, V6)) == {}


@pytest.mark.asyncio
async def test_records_added_later_are_visible(store):
    await store.record(ExecutionRecord(4, V4, 75))
    assert await store.last_executions({4}, (V4,)) == {(4, V4): 75}


@pytest.mark.asyncio
async def test_sqlite_engine_failure_is_wrapped(tmp_path):
    s = SqliteHistoryStore(tmp_path / "history.db")
    s.init_schema()
    s.close()
    with pytest.raises(HistoryStoreError):
        await s.last_executions({1}, (V4,))


@pytest.mark.asyncio
async def test_sqlite_missing_schema_is_wrapped():
    s = SqliteHistoryStore()
    try:
        with pytest.raises(HistoryStoreError, match="performed_tasks"):
            await s.last_executions({1}, (V4,))
    finally:
        s.close()


@pytest.mark.asyncio
async def test_in_memory_store_counts_queries():
    s = InMemoryHistoryStore()
    await s.last_executions({1}, (V4, V6))
    await s.last_executions({1}, (V4, V6))
    assert s.queries == 2
