"""Tests for the loading coordinator (request dedup + TTL cache)."""

import asyncio

import pytest

from dashsync.sync.coordinator import CacheEntry, LoadingCoordinator


class CountingLoader:
    """load_fn that counts invocations and can be held open with a gate."""

    def __init__(self, gate: asyncio.Event | None = None, error: Exception | None = None):
        self.calls = 0
        self.gate = gate
        self.error = error

    async def __call__(self) -> dict:
        self.calls += 1
        call_number = self.calls
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return {"call": call_number}


class TestCacheEntry:
    def test_fresh_inside_ttl(self):
        entry = CacheEntry(key="k", data={}, timestamp=100.0)
        assert entry.is_fresh(129.9, 30.0)

    def test_stale_at_ttl_boundary(self):
        entry = CacheEntry(key="k", data={}, timestamp=100.0)
        assert not entry.is_fresh(130.0, 30.0)


class TestDeduplication:
    @pytest.mark.anyio
    async def test_concurrent_calls_share_one_load(self, coordinator):
        loader = CountingLoader(gate=asyncio.Event())

        first = asyncio.ensure_future(coordinator.coordinated_load("todos-data", loader))
        second = asyncio.ensure_future(coordinator.coordinated_load("todos-data", loader))
        await asyncio.sleep(0)
        assert coordinator.is_loading("todos-data")

        loader.gate.set()
        results = await asyncio.gather(first, second)

        assert loader.calls == 1
        assert results[0] is results[1]
        assert not coordinator.is_loading("todos-data")

    @pytest.mark.anyio
    async def test_different_keys_load_independently(self, coordinator):
        loader = CountingLoader()

        await asyncio.gather(
            coordinator.coordinated_load("todos-data", loader),
            coordinator.coordinated_load("sales-data", loader),
        )

        assert loader.calls == 2

    @pytest.mark.anyio
    async def test_cancelled_caller_does_not_cancel_shared_load(self, coordinator):
        loader = CountingLoader(gate=asyncio.Event())

        impatient = asyncio.ensure_future(coordinator.coordinated_load("k", loader))
        patient = asyncio.ensure_future(coordinator.coordinated_load("k", loader))
        await asyncio.sleep(0)

        impatient.cancel()
        loader.gate.set()

        assert await patient == {"call": 1}
        assert impatient.cancelled()


class TestCaching:
    @pytest.mark.anyio
    async def test_second_call_inside_ttl_is_served_from_cache(self, coordinator, clock):
        loader = CountingLoader()

        await coordinator.coordinated_load("k", loader)
        clock.advance(29)
        result = await coordinator.coordinated_load("k", loader)

        assert loader.calls == 1
        assert result == {"call": 1}

    @pytest.mark.anyio
    async def test_expired_entry_triggers_new_load(self, coordinator, clock):
        loader = CountingLoader()

        await coordinator.coordinated_load("k", loader)
        clock.advance(30)
        result = await coordinator.coordinated_load("k", loader)

        assert loader.calls == 2
        assert result == {"call": 2}

    @pytest.mark.anyio
    async def test_failed_load_is_not_cached_and_retries(self, coordinator):
        failing = CountingLoader(error=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await coordinator.coordinated_load("k", failing)

        assert coordinator.cached("k") is None
        assert not coordinator.is_loading("k")

        loader = CountingLoader()
        assert await coordinator.coordinated_load("k", loader) == {"call": 1}

    @pytest.mark.anyio
    async def test_failure_reaches_every_waiter(self, coordinator):
        failing = CountingLoader(gate=asyncio.Event(), error=ValueError("bad payload"))

        first = asyncio.ensure_future(coordinator.coordinated_load("k", failing))
        second = asyncio.ensure_future(coordinator.coordinated_load("k", failing))
        await asyncio.sleep(0)
        failing.gate.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert failing.calls == 1
        assert all(isinstance(r, ValueError) for r in results)

    @pytest.mark.anyio
    async def test_clear_cache_for_one_key(self, coordinator):
        loader = CountingLoader()
        await coordinator.coordinated_load("a", loader)
        await coordinator.coordinated_load("b", loader)

        coordinator.clear_cache("a")

        assert coordinator.cached("a") is None
        assert coordinator.cached("b") is not None

    @pytest.mark.anyio
    async def test_clear_cache_for_all_keys(self, coordinator):
        loader = CountingLoader()
        await coordinator.coordinated_load("a", loader)
        await coordinator.coordinated_load("b", loader)

        coordinator.clear_cache()

        assert coordinator.cached("a") is None
        assert coordinator.cached("b") is None


class TestBypass:
    @pytest.mark.anyio
    async def test_skip_cache_ignores_fresh_entry(self, coordinator):
        loader = CountingLoader()
        await coordinator.coordinated_load("k", loader)

        result = await coordinator.coordinated_load("k", loader, skip_cache=True)

        assert loader.calls == 2
        assert result == {"call": 2}

    @pytest.mark.anyio
    async def test_skip_cache_still_joins_in_flight_load(self, coordinator):
        loader = CountingLoader(gate=asyncio.Event())

        first = asyncio.ensure_future(coordinator.coordinated_load("k", loader))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(coordinator.coordinated_load("k", loader, skip_cache=True))
        await asyncio.sleep(0)
        loader.gate.set()

        assert await first == await second
        assert loader.calls == 1

    @pytest.mark.anyio
    async def test_force_reload_waits_out_in_flight_load(self, coordinator):
        loader = CountingLoader(gate=asyncio.Event())

        stale = asyncio.ensure_future(coordinator.coordinated_load("k", loader))
        await asyncio.sleep(0)
        forced = asyncio.ensure_future(coordinator.coordinated_load("k", loader, force_reload=True))
        await asyncio.sleep(0)
        loader.gate.set()

        assert await stale == {"call": 1}
        assert await forced == {"call": 2}
        assert coordinator.cached("k").data == {"call": 2}

    @pytest.mark.anyio
    async def test_force_reload_survives_failed_in_flight_load(self, coordinator):
        gate = asyncio.Event()
        failing = CountingLoader(gate=gate, error=RuntimeError("stale failure"))
        loader = CountingLoader()

        stale = asyncio.ensure_future(coordinator.coordinated_load("k", failing))
        await asyncio.sleep(0)
        forced = asyncio.ensure_future(coordinator.coordinated_load("k", loader, force_reload=True))
        await asyncio.sleep(0)
        gate.set()

        with pytest.raises(RuntimeError):
            await stale
        assert await forced == {"call": 1}


class TestLifecycle:
    @pytest.mark.anyio
    async def test_aclose_waits_for_in_flight_and_drops_cache(self, clock):
        coordinator = LoadingCoordinator(30.0, clock=clock)
        loader = CountingLoader(gate=asyncio.Event())
        await coordinator.coordinated_load("done", CountingLoader())

        pending = asyncio.ensure_future(coordinator.coordinated_load("k", loader))
        await asyncio.sleep(0)
        loader.gate.set()
        await coordinator.aclose()

        assert not coordinator.is_loading("k")
        assert await pending == {"call": 1}
        assert coordinator.cached("done") is None
