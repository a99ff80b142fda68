"""Tests for the per-chat page cache."""

import asyncio

import httpx
import pytest

from chatfeed.errors import NetworkError, ServerError

from factories import OPTIMISTIC_BASE, msg, msgs, until


class TestLoadInitial:
    async def test_fetches_newest_page(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        view = await store.load_initial(1)
        assert [m.id for m in view.messages] == [3, 4, 5]
        assert view.total == 5
        assert view.has_more is True
        assert view.cursors == [0]
        assert backend.calls[0]["params"] == {"limit": "3", "offset": "0"}

    async def test_reuses_loaded_view(self, store, backend):
        backend.chats[1] = msgs(1, 2)
        first = await store.load_initial(1)
        second = await store.load_initial(1)
        assert second is first
        assert len(backend.history_calls()) == 1

    async def test_force_refetches(self, store, backend):
        backend.chats[1] = msgs(1, 2)
        await store.load_initial(1)
        backend.chats[1] = msgs(1, 2, 3)
        view = await store.load_initial(1, force=True)
        assert [m.id for m in view.messages] == [1, 2, 3]

    async def test_keeps_placeholder_added_in_flight(self, store, backend, writes):
        backend.chats[1] = msgs(1, 2)
        backend.gate = asyncio.Event()
        loading = asyncio.create_task(store.load_initial(1))
        await until(lambda: backend.calls)
        writes.add_optimistic(1, msg(OPTIMISTIC_BASE + 1))
        backend.gate.set()
        view = await loading
        assert [m.id for m in view.messages] == [1, 2, OPTIMISTIC_BASE + 1]
        assert view.total == 3
        assert view.has_more is False

    async def test_keeps_push_received_in_flight(self, store, backend):
        backend.chats[1] = msgs(1, 2)
        backend.gate = asyncio.Event()
        loading = asyncio.create_task(store.load_initial(1))
        await until(lambda: backend.calls)
        store.apply_update(1, msgs(2, 3), total=3)
        backend.gate.set()
        view = await loading
        assert [m.id for m in view.messages] == [1, 2, 3]
        assert view.total == 3

    async def test_forced_reload_keeps_loaded_history_and_push(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        await store.load_initial(1)
        await store.load_older(1)
        backend.gate = asyncio.Event()
        loading = asyncio.create_task(store.load_initial(1, force=True))
        await until(lambda: len(backend.history_calls()) == 3)
        store.apply_update(1, msgs(5, 6), total=6)
        backend.gate.set()
        view = await loading
        assert [m.id for m in view.messages] == [1, 2, 3, 4, 5, 6]
        assert view.has_more is False

    async def test_failure_stores_nothing(self, store, backend):
        backend.fail_with = httpx.ConnectError("refused")
        with pytest.raises(NetworkError):
            await store.load_initial(1)
        assert store.get(1) is None


class TestLoadOlder:
    async def test_prepends_older_page(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        await store.load_initial(1)
        view = await store.load_older(1)
        assert [m.id for m in view.messages] == [1, 2, 3, 4, 5]
        assert view.cursors == [0, 3]
        assert view.has_more is False
        assert backend.calls[-1]["params"]["offset"] == "3"

    async def test_noop_when_nothing_more(self, store, backend):
        backend.chats[1] = msgs(1, 2)
        await store.load_initial(1)
        assert await store.load_older(1) is None
        assert len(backend.history_calls()) == 1

    async def test_noop_when_not_loaded(self, store, backend):
        assert await store.load_older(99) is None
        assert backend.calls == []

    async def test_single_request_in_flight(self, store, backend):
        backend.chats[1] = msgs(*range(1, 10))
        await store.load_initial(1)
        backend.gate = asyncio.Event()
        first = asyncio.create_task(store.load_older(1))
        await asyncio.sleep(0)
        assert store.is_loading_older(1)
        assert await store.load_older(1) is None
        backend.gate.set()
        view = await first
        assert [m.id for m in view.messages] == [4, 5, 6, 7, 8, 9]
        assert not store.is_loading_older(1)
        assert len(backend.history_calls()) == 2

    async def test_failure_leaves_view_untouched(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        before = await store.load_initial(1)
        backend.status_override = 500
        with pytest.raises(ServerError) as exc_info:
            await store.load_older(1)
        assert exc_info.value.status == 500
        assert store.get(1) is before
        assert not store.is_loading_older(1)

    async def test_folds_into_current_view(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        await store.load_initial(1)
        backend.gate = asyncio.Event()
        pending = asyncio.create_task(store.load_older(1))
        await asyncio.sleep(0)
        # a push lands while the older page is in flight
        backend.chats[1] = msgs(1, 2, 3, 4, 5, 6)
        store.apply_update(1, [msg(5), msg(6)], total=6)
        backend.gate.set()
        view = await pending
        assert [m.id for m in view.messages] == [1, 2, 3, 4, 5, 6]
        assert view.total == 6

    async def test_drops_ids_already_loaded(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        await store.load_initial(1)
        # server gained a message, shifting the offset window by one
        backend.chats[1] = msgs(1, 2, 3, 4, 5, 6)
        view = await store.load_older(1)
        ids = [m.id for m in view.messages]
        assert ids == [1, 2, 3, 4, 5]
        assert len(ids) == len(set(ids))
        # the newer page was loaded when the server had five
        assert view.total == 6
        assert {p.total for p in view.pages} == {6}


class TestApplyUpdate:
    async def test_merges_and_rebuilds(self, store, backend):
        backend.chats[1] = msgs(1, 2, 3, 4, 5)
        await store.load_initial(1)
        view = store.apply_update(1, [msg(5), msg(6)], total=6)
        assert [m.id for m in view.messages] == [3, 4, 5, 6]
        assert view.total == 6
        # oldest page flag survives the rebuild
        assert view.has_more is True

    async def test_creates_view_for_unloaded_chat(self, store):
        view = store.apply_update(2, msgs(7, 8), total=8)
        assert [m.id for m in view.messages] == [7, 8]
        assert view.has_more is True

    async def test_empty_batch_keeps_total(self, store):
        view = store.apply_update(2, [], total=5)
        assert view.messages == []
        assert view.total == 5
        assert view.has_more is True

    async def test_supersedes_placeholder(self, store, backend):
        backend.chats[1] = msgs(1)
        await store.load_initial(1)
        store.rebuild(1, [msg(1), msg(OPTIMISTIC_BASE + 1, 2)], total=2)
        view = store.apply_update(1, [msg(1), msg(2)], total=2)
        assert [m.id for m in view.messages] == [1, 2]


class TestListeners:
    async def test_notified_on_every_change(self, store, backend):
        seen = []
        store.add_listener(lambda chat_id, view: seen.append((chat_id, [m.id for m in view.messages])))
        backend.chats[1] = msgs(1, 2)
        await store.load_initial(1)
        store.apply_update(1, msgs(3), total=3)
        assert seen == [(1, [1, 2]), (1, [1, 2, 3])]

    async def test_listener_error_does_not_block_update(self, store):
        def broken(chat_id, view):
            raise RuntimeError("boom")

        store.add_listener(broken)
        view = store.apply_update(1, msgs(1), total=1)
        assert store.get(1) is view

    async def test_remove_listener(self, store):
        seen = []

        def listener(chat_id, view):
            seen.append(chat_id)

        store.add_listener(listener)
        store.remove_listener(listener)
        store.apply_update(1, msgs(1), total=1)
        assert seen == []


async def test_forget_and_clear(store):
    store.apply_update(1, msgs(1), total=1)
    store.apply_update(2, msgs(2), total=1)
    store.forget(1)
    assert store.get(1) is None
    store.clear()
    assert store.get(2) is None
