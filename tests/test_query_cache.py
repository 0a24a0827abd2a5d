import asyncio

import pytest

from taskdeck.cache_keys import TASKS, task_list_key
from taskdeck.filters import ApiFilter
from taskdeck.models import PaginatedResult, TaskFields
from taskdeck.query_cache import EMPTY, ERROR, FRESH, LOADING, STALE, QueryCache

from fakes import drain, make_task, seed_tasks

KEY = task_list_key(ApiFilter(), 1, 20)


def _loader(store, api_filter=ApiFilter(), page=1):
    return lambda: store.list_tasks(api_filter, page, 20)


def test_read_starts_one_fetch_and_dedups(store, memory):
    seed_tasks(memory, 3)

    async def scenario():
        cache = QueryCache()
        gate = store.gate('list_tasks')
        first = cache.read(KEY, _loader(store))
        second = cache.read(KEY, _loader(store))
        assert first.status == LOADING and first.is_loading
        assert second.fetching
        await drain()
        assert store.count('list_tasks') == 1
        gate.set()
        entry = await cache.fetch(KEY, _loader(store))
        assert entry.status == FRESH
        assert len(entry.data.items) == 3
        assert store.count('list_tasks') == 1

    asyncio.run(scenario())


def test_concurrent_fetches_share_one_call(store, memory):
    seed_tasks(memory, 2)

    async def scenario():
        cache = QueryCache()
        a, b = await asyncio.gather(cache.fetch(KEY, _loader(store)), cache.fetch(KEY, _loader(store)))
        assert a.data is b.data
        assert store.count('list_tasks') == 1

    asyncio.run(scenario())


def test_invalidated_entry_keeps_data_while_refetching(store, memory):
    seed_tasks(memory, 2)

    async def scenario():
        cache = QueryCache()
        old = (await cache.fetch(KEY, _loader(store))).data
        memory.create_task(TaskFields(title='Task 03'))
        cache.invalidate(TASKS)
        assert cache.get(KEY).status == STALE
        assert cache.get(KEY).data is old
        gate = store.gate('list_tasks')
        entry = cache.read(KEY, _loader(store))
        assert entry.data is old
        assert entry.fetching and not entry.is_loading
        gate.set()
        await drain()
        assert cache.get(KEY).status == FRESH
        assert len(cache.get(KEY).data.items) == 3

    asyncio.run(scenario())


def test_failed_fetch_keeps_last_known_good(store, memory):
    seed_tasks(memory, 2)

    async def scenario():
        cache = QueryCache()
        good = (await cache.fetch(KEY, _loader(store))).data
        cache.invalidate(TASKS)
        store.fail('list_tasks')
        entry = await cache.fetch(KEY, _loader(store))
        assert entry.status == ERROR
        assert entry.data is good
        assert 'connection reset' in entry.last_error
        # reading an errored entry does not hammer the store
        cache.read(KEY, _loader(store))
        await drain()
        assert store.count('list_tasks') == 2
        retried = cache.refetch(KEY, _loader(store))
        assert retried.fetching
        await drain()
        assert cache.get(KEY).status == FRESH

    asyncio.run(scenario())


def test_first_fetch_failure_has_no_data(store):
    async def scenario():
        cache = QueryCache()
        store.fail('list_tasks')
        entry = await cache.fetch(KEY, _loader(store))
        assert entry.status == ERROR
        assert entry.data is None
        assert not entry.is_loading

    asyncio.run(scenario())


def test_cancelled_fetch_response_is_discarded(store, memory):
    seed_tasks(memory, 2)

    async def scenario():
        cache = QueryCache()
        store.gate('list_tasks')
        cache.read(KEY, _loader(store))
        await drain()
        assert cache.in_flight(KEY)
        assert cache.cancel(TASKS) == [KEY]
        store.open('list_tasks')
        await drain()
        entry = cache.get(KEY)
        assert entry.data is None
        assert entry.status == EMPTY
        assert not cache.in_flight(KEY)

    asyncio.run(scenario())


def test_write_supersedes_in_flight_fetch(store, memory):
    seed_tasks(memory, 2)

    async def scenario():
        cache = QueryCache()
        store.gate('list_tasks')
        cache.read(KEY, _loader(store))
        await drain()
        mine = PaginatedResult.build([make_task(99)], 1, 1, 20)
        cache.write(KEY, mine)
        store.open('list_tasks')
        await drain()
        assert cache.get(KEY).data is mine
        assert cache.get(KEY).status == FRESH

    asyncio.run(scenario())


def test_fetch_survives_invalidation_mid_flight(store, memory):
    seed_tasks(memory, 1)

    async def scenario():
        cache = QueryCache()
        store.gate('list_tasks')
        pending = asyncio.ensure_future(cache.fetch(KEY, _loader(store)))
        await drain()
        cache.invalidate(TASKS)
        await drain()
        # superseded fetch was dropped; a new one is waiting on the same gate
        assert store.count('list_tasks') == 2
        store.open('list_tasks')
        entry = await pending
        assert entry.status == FRESH
        assert len(entry.data.items) == 1

    asyncio.run(scenario())


def test_hold_suspends_new_fetches(store):
    async def scenario():
        cache = QueryCache()
        with cache.hold(TASKS):
            entry = cache.read(KEY, _loader(store))
            assert entry.status == EMPTY
            assert not entry.fetching
        await drain()
        assert store.count('list_tasks') == 0
        cache.read(KEY, _loader(store))
        await drain()
        assert store.count('list_tasks') == 1

    asyncio.run(scenario())


def test_patch_only_touches_matching_items(store):
    async def scenario():
        cache = QueryCache()
        with_task = PaginatedResult.build([make_task(1), make_task(2)], 2, 1, 20)
        without = PaginatedResult.build([make_task(3)], 1, 1, 20)
        other = task_list_key(ApiFilter(priority='low'), 1, 20)
        cache.write(KEY, with_task)
        cache.write(other, without)
        with cache.hold(TASKS):
            cache.read(task_list_key(ApiFilter(), 2, 20), _loader(store))  # empty entry
        patched = cache.patch(TASKS, lambda items: [t.with_completed(True) if t.id == 1 else t for t in items])
        assert patched == [KEY]
        assert cache.get(KEY).data.find(1).completed is True
        assert cache.get(KEY).data.find(2) is with_task.find(2)
        assert cache.get(other).data is without
        assert cache.get(KEY).status == FRESH

    asyncio.run(scenario())


def test_snapshot_and_restore_are_verbatim():
    cache = QueryCache()
    page = PaginatedResult.build([make_task(1)], 1, 1, 20)
    cache.write(KEY, page)
    snap = cache.snapshot(TASKS)
    cache.patch(TASKS, lambda items: [t.with_completed(True) for t in items])
    assert cache.get(KEY).data is not page
    cache.restore(snap)
    assert cache.get(KEY).data is page


def test_listeners_are_notified():
    cache = QueryCache()
    calls = []
    unsubscribe = cache.subscribe(lambda: calls.append(1))
    cache.write(KEY, PaginatedResult())
    assert calls == [1]
    unsubscribe()
    cache.invalidate(TASKS)
    assert calls == [1]


def _page_key(page):
    return task_list_key(ApiFilter(), page, 20)


def test_least_recently_used_entries_are_evicted():
    cache = QueryCache(max_entries=2)
    for page in (1, 2):
        cache.write(_page_key(page), PaginatedResult())
    # touching page 1 makes page 2 the oldest
    cache.write(_page_key(1), PaginatedResult())
    cache.write(_page_key(3), PaginatedResult())
    assert cache.get(_page_key(2)) is None
    assert cache.get(_page_key(1)) is not None
    assert cache.get(_page_key(3)) is not None
    assert len(cache.entries()) == 2


def test_eviction_skips_fetching_and_held_entries(store, memory):
    seed_tasks(memory, 1)

    async def scenario():
        cache = QueryCache(max_entries=2)
        gate = store.gate('list_tasks')
        cache.read(_page_key(1), _loader(store))
        held = _page_key(2)
        cache.write(held, PaginatedResult())
        with cache.hold(lambda k: k == held):
            cache.write(_page_key(3), PaginatedResult())
            # nothing could go, so the cache runs over its cap for now
            assert len(cache.entries()) == 3
        cache.write(_page_key(4), PaginatedResult())
        assert cache.get(held) is None
        assert cache.get(_page_key(3)) is None
        assert cache.in_flight(_page_key(1))
        gate.set()
        entry = await cache.fetch(_page_key(1), _loader(store))
        assert entry.status == FRESH

    asyncio.run(scenario())


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        QueryCache(max_entries=0)
