"""Tests for the generic entity store load/save plumbing (exercised through TodoStore)."""

import asyncio
import logging
from datetime import datetime

import pytest

from dashsync.core.errors import AuthenticationRequiredError, LoadError
from dashsync.domain.models import Todo
from dashsync.stores.todos import TodoStore

TODOS = "/api/todos/neon"
SHORT_DEBOUNCE = 0.05

TODOS_PAYLOAD = {
    "todos": [
        {
            "id": "t1",
            "title": "Call supplier",
            "priority": "high",
            "status": "in_progress",
            "createdAt": "2024-05-01T09:00:00Z",
            "updatedAt": "2024-05-01T09:00:00Z",
            "subtasks": [{"id": "s1", "text": "Find number", "completed": False}],
            "sortBucket": 3,
        }
    ],
    "categories": [{"id": "c1", "name": "Work", "color": "#264653"}],
    "owners": [],
}


@pytest.fixture
def store(api, coordinator) -> TodoStore:
    return TodoStore(api=api, coordinator=coordinator, debounce_seconds=SHORT_DEBOUNCE)


async def settle_debounce() -> None:
    await asyncio.sleep(SHORT_DEBOUNCE * 4)


class TestLoad:
    @pytest.mark.anyio
    async def test_load_hydrates_typed_state(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD

        await store.load_from_server()

        todo = store.state.todos[0]
        assert isinstance(todo, Todo)
        assert isinstance(todo.created_at, datetime)
        assert todo.subtasks[0].text == "Find number"
        assert store.state.categories[0].name == "Work"
        assert store.state.has_loaded_from_server
        assert not store.state.is_loading

    @pytest.mark.anyio
    async def test_load_is_noop_once_loaded(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD

        await store.load_from_server()
        assert await store.load_from_server() is None

        assert len(server.gets(TODOS)) == 1

    @pytest.mark.anyio
    async def test_concurrent_loads_issue_one_request(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD

        await asyncio.gather(store.load_from_server(), store.load_from_server())

        assert len(server.gets(TODOS)) == 1

    @pytest.mark.anyio
    async def test_force_reload_fetches_again(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()

        server.payloads[TODOS] = {"todos": [], "categories": [], "owners": []}
        await store.load_from_server(force=True)

        assert len(server.gets(TODOS)) == 2
        assert store.state.todos == ()

    @pytest.mark.anyio
    async def test_failed_load_latches_and_raises(self, store, server):
        server.fail("GET", TODOS, 500, {"error": "db down"})

        with pytest.raises(LoadError):
            await store.load_from_server()

        assert store.state.has_loaded_from_server
        assert not store.state.is_loading

    @pytest.mark.anyio
    async def test_latch_holds_across_forced_retries(self, store, server):
        server.fail("GET", TODOS, 503, {"error": "unavailable"})

        for _ in range(3):
            with pytest.raises(LoadError):
                await store.load_from_server(force=True)
            assert store.state.has_loaded_from_server
            assert not store.state.is_loading
            assert store.can_save()

        server.forced.clear()
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server(force=True)

        assert len(server.gets(TODOS)) == 4
        assert store.state.todos[0].id == "t1"
        assert store.state.has_loaded_from_server
        assert not store.state.is_loading

    @pytest.mark.anyio
    async def test_unauthorized_load_redirects_to_login(self, store, server, login_redirects):
        server.fail("GET", TODOS, 401, {"error": "Unauthorized"})

        with pytest.raises(AuthenticationRequiredError):
            await store.load_from_server()

        assert login_redirects == ["/login"]
        assert store.state.has_loaded_from_server
        assert not store.state.is_loading

    @pytest.mark.anyio
    async def test_fresh_cache_entry_hydrates_new_store(self, api, coordinator, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        first = TodoStore(api=api, coordinator=coordinator)
        await first.load_from_server()

        second = TodoStore(api=api, coordinator=coordinator)
        await second.load_from_server()

        assert len(server.gets(TODOS)) == 1
        assert second.state.todos[0].id == "t1"


class TestSaveGuard:
    @pytest.mark.anyio
    async def test_no_save_before_first_load(self, store, server):
        store.add_todo("Too early")
        await settle_debounce()

        assert server.posts(TODOS) == []
        assert not store.save_pending

    @pytest.mark.anyio
    async def test_no_save_while_loading(self, store, server):
        store.set_state(has_loaded_from_server=True, is_loading=True)

        assert store.request_save(immediate=True) is None
        assert server.posts(TODOS) == []

    @pytest.mark.anyio
    async def test_save_allowed_after_failed_load(self, store, server):
        server.fail("GET", TODOS, 500)
        with pytest.raises(LoadError):
            await store.load_from_server()

        assert store.can_save()


class TestSave:
    @pytest.mark.anyio
    async def test_typing_burst_sends_one_post_with_final_value(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()

        for text in ("N", "No", "Not", "Note", "Notes"):
            store.update_notes("t1", text)
        assert store.save_pending

        await settle_debounce()
        await store.aclose()

        posts = server.posts(TODOS)
        assert len(posts) == 1
        assert posts[0]["todos"][0]["notes"] == "Notes"

    @pytest.mark.anyio
    async def test_delete_is_saved_without_waiting(self, api, coordinator, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        store = TodoStore(api=api, coordinator=coordinator, debounce_seconds=60)
        await store.load_from_server()

        store.delete_todo("t1")
        await asyncio.sleep(0.01)

        posts = server.posts(TODOS)
        assert len(posts) == 1
        assert posts[0]["todos"] == []
        await store.aclose(flush_pending=False)

    @pytest.mark.anyio
    async def test_full_state_is_sent_with_unknown_fields(self, store, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()

        await store.save_to_server(immediate=True)

        body = server.posts(TODOS)[0]
        assert set(body) == {"todos", "categories", "owners"}
        assert body["todos"][0]["sortBucket"] == 3
        assert body["todos"][0]["createdAt"].startswith("2024-05-01T09:00:00")

    @pytest.mark.anyio
    async def test_blocked_save_is_silent(self, store, server, caplog):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()
        server.fail(
            "POST",
            TODOS,
            400,
            {"error": "Cannot save empty state when database contains data", "blocked": True},
        )

        with caplog.at_level(logging.INFO, logger="dashsync.sync.entity_store"):
            await store.save_to_server(immediate=True)

        assert any("blocked" in r.getMessage() for r in caplog.records)
        assert not any(r.levelno >= logging.ERROR for r in caplog.records)

    @pytest.mark.anyio
    async def test_failed_save_is_logged_and_dropped(self, store, server, caplog):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()
        server.fail("POST", TODOS, 500, {"error": "db down"})

        with caplog.at_level(logging.ERROR, logger="dashsync.sync.entity_store"):
            await store.save_to_server(immediate=True)

        assert any("Error saving" in r.getMessage() for r in caplog.records)
        assert len(server.posts(TODOS)) == 1

    @pytest.mark.anyio
    async def test_unauthorized_save_redirects(self, store, server, login_redirects):
        server.payloads[TODOS] = TODOS_PAYLOAD
        await store.load_from_server()
        server.fail("POST", TODOS, 401)

        await store.save_to_server(immediate=True)

        assert login_redirects == ["/login"]


class TestLifecycle:
    @pytest.mark.anyio
    async def test_aclose_flushes_pending_save(self, api, coordinator, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        store = TodoStore(api=api, coordinator=coordinator, debounce_seconds=60)
        await store.load_from_server()

        store.update_todo("t1", title="Call supplier today")
        await store.aclose()

        assert server.posts(TODOS)[0]["todos"][0]["title"] == "Call supplier today"
        assert not store.save_pending

    @pytest.mark.anyio
    async def test_aclose_can_drop_pending_save(self, api, coordinator, server):
        server.payloads[TODOS] = TODOS_PAYLOAD
        store = TodoStore(api=api, coordinator=coordinator, debounce_seconds=60)
        await store.load_from_server()

        store.update_todo("t1", title="Never sent")
        await store.aclose(flush_pending=False)

        assert server.posts(TODOS) == []


class TestSubscribe:
    @pytest.mark.anyio
    async def test_listener_sees_each_change_until_unsubscribed(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state: seen.append(state.is_loading))

        store.set_state(is_loading=True)
        unsubscribe()
        store.set_state(is_loading=False)

        assert seen == [True]
