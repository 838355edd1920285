"""
Generic load/save plumbing shared by every domain store.

An `EntityStore` owns the in-memory working copy of one server resource.
Domain code mutates that copy synchronously and asks for a save; this module
decides whether the save may happen and when it goes out.

Load path:
    load_from_server() -> LoadingCoordinator (dedup + TTL cache) -> GET endpoint
    -> parse_response -> merge into state -> after_server_state -> after_load

Save path:
    request_save() -> guard (hydrated, not loading) -> DebouncedSaveScheduler
    -> POST endpoint with the full serialized state -> after_save

Every save is a full overwrite of the server resource, so there must be
exactly one store per endpoint (see `dashsync.sync.registry`).
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from dashsync.core.config import settings
from dashsync.core.errors import (
    ApiResponseError,
    AuthenticationRequiredError,
    LoadError,
)
from dashsync.core.http import DashboardApiClient
from dashsync.core.observability import Metrics
from dashsync.core.observability import metrics as default_metrics
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.scheduler import DebouncedSaveScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreState:
    """
    Loading flags every store state carries.

    `has_loaded_from_server` is a latch: it flips to True after the first
    load attempt, successful or not, and never goes back. Saves are refused
    until it is set so an empty local state can never overwrite server data.
    """

    is_loading: bool = False
    has_loaded_from_server: bool = False


StateT = TypeVar("StateT", bound=StoreState)

Listener = Callable[[Any], None]


@dataclass(frozen=True)
class EntityStoreConfig(Generic[StateT]):
    """
    Per-domain wiring for an `EntityStore`.

    Attributes:
        coordinator_key: Dedup/cache key (e.g. "todos-data")
        endpoint: API route path (e.g. "/api/todos/neon")
        parse_response: Maps the GET payload and current state to state changes
        serialize_state: Maps state to the POST body
        after_server_state: Called with the store whenever server data is
            applied, by its own loader or by the dashboard aggregator
        after_load: Called with the store after its own loader succeeds
        after_save: Called with the store after a successful save
        debounce_seconds: Save debounce window; None uses settings
    """

    coordinator_key: str
    endpoint: str
    parse_response: Callable[[dict[str, Any], StateT], dict[str, Any]]
    serialize_state: Callable[[StateT], dict[str, Any]]
    after_server_state: Callable[["EntityStore[StateT]"], None] | None = None
    after_load: Callable[["EntityStore[StateT]"], None] | None = None
    after_save: Callable[["EntityStore[StateT]"], None] | None = None
    debounce_seconds: float | None = None


class EntityStore(Generic[StateT]):
    """
    In-memory working copy of one server resource with coordinated load/save.

    Domain stores wrap an instance of this class and express their mutators
    through `commit()`.
    """

    def __init__(
        self,
        config: EntityStoreConfig[StateT],
        initial_state: StateT,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        metrics_instance: Metrics | None = None,
    ):
        self.config = config
        self._state = initial_state
        self._api = api
        self._coordinator = coordinator
        self._metrics = metrics_instance or default_metrics
        self._listeners: list[Listener] = []

        delay = config.debounce_seconds
        if delay is None:
            delay = settings.save_debounce_seconds
        self._scheduler = DebouncedSaveScheduler(
            self._snapshot,
            self._perform_save,
            delay,
            name=f"save to {config.endpoint}",
            on_superseded=self._metrics.store_saves_superseded_total.labels(
                endpoint=config.endpoint
            ).inc,
        )

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> StateT:
        return self._state

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    @property
    def coordinator_key(self) -> str:
        return self.config.coordinator_key

    @property
    def coordinator(self) -> LoadingCoordinator:
        return self._coordinator

    @property
    def save_pending(self) -> bool:
        return self._scheduler.pending

    def set_state(self, **changes: Any) -> None:
        """Replace fields of the state and notify subscribers."""
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_server_state(self, **collections: Any) -> None:
        """
        Write already-parsed server collections and mark the store hydrated.

        Used by the dashboard aggregator, which loads every domain in one
        request and bypasses this store's own loader. Runs `after_server_state`
        but not `after_load`.
        """
        self.set_state(**collections, is_loading=False, has_loaded_from_server=True)
        if self.config.after_server_state is not None:
            self.config.after_server_state(self)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_from_server(self, *, force: bool = False) -> dict[str, Any] | None:
        """
        Hydrate the store from the server.

        No-op once the store has loaded, unless `force` is set. Concurrent
        calls share one request through the coordinator. A store flagged as
        loading by someone else (the dashboard aggregator) waits for that
        load to settle instead of issuing its own request.

        Returns:
            The raw payload, or None when the call was a no-op

        Raises:
            AuthenticationRequiredError: The API answered 401
            LoadError: Any other failure; the store still leaves its
                loading state and latches `has_loaded_from_server`
        """
        if self._state.has_loaded_from_server and not force:
            return None

        if self._state.is_loading and not self._coordinator.is_loading(self.config.coordinator_key):
            # Filled by another loader (the dashboard aggregator); wait for it.
            await self._wait_until_settled()
            if self._state.has_loaded_from_server and not force:
                return None

        data = await self._coordinator.coordinated_load(
            self.config.coordinator_key,
            self._fetch,
            skip_cache=self._state.is_loading,
            force_reload=force,
        )

        # Served from a cache entry this store has not applied yet.
        if not self._state.has_loaded_from_server:
            self._hydrate(data)
        return data

    async def _fetch(self) -> dict[str, Any]:
        self.set_state(is_loading=True)
        try:
            data = await self._api.get_json(self.config.endpoint)
            self._hydrate(data)
            return data
        except AuthenticationRequiredError:
            self.set_state(is_loading=False, has_loaded_from_server=True)
            raise
        except Exception as exc:
            logger.error(
                f"Error loading from {self.config.endpoint}: {exc}",
                extra={"endpoint": self.config.endpoint, "error_type": type(exc).__name__},
            )
            self.set_state(is_loading=False, has_loaded_from_server=True)
            raise LoadError(
                f"Failed to load from {self.config.endpoint}",
                details={"endpoint": self.config.endpoint, "reason": str(exc)},
            ) from exc

    async def _wait_until_settled(self) -> None:
        settled = asyncio.get_running_loop().create_future()

        def on_change(state: StoreState) -> None:
            if not state.is_loading and not settled.done():
                settled.set_result(None)

        unsubscribe = self.subscribe(on_change)
        try:
            await settled
        finally:
            unsubscribe()

    def _hydrate(self, data: dict[str, Any]) -> None:
        self.apply_server_state(**self.config.parse_response(data, self._state))
        if self.config.after_load is not None:
            self.config.after_load(self)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def can_save(self) -> bool:
        """Saves are allowed only after hydration and never during a load."""
        return self._state.has_loaded_from_server and not self._state.is_loading

    def request_save(self, *, immediate: bool = False) -> asyncio.Task | None:
        """
        Ask for the current state to be persisted.

        Debounced by default; `immediate` cancels any pending timer and
        starts the write now. Returns the write task for immediate saves.
        """
        if not self.can_save():
            logger.debug(
                f"Save to {self.config.endpoint} skipped: store not hydrated or loading"
            )
            return None
        if immediate:
            return self._scheduler.flush()
        self._scheduler.schedule()
        return None

    async def save_to_server(self, *, immediate: bool = False) -> None:
        """Awaitable form of `request_save`; waits for the write when immediate."""
        task = self.request_save(immediate=immediate)
        if task is not None:
            await task

    def commit(self, *, immediate: bool = False, **changes: Any) -> None:
        """Apply a local mutation and request a save of the resulting state."""
        self.set_state(**changes)
        self.request_save(immediate=immediate)

    def _snapshot(self) -> dict[str, Any]:
        return self.config.serialize_state(self._state)

    async def _perform_save(self, body: dict[str, Any]) -> None:
        endpoint = self.config.endpoint
        try:
            await self._api.post_json(endpoint, body)
        except AuthenticationRequiredError:
            self._metrics.store_saves_total.labels(endpoint=endpoint, status="unauthorized").inc()
            return
        except ApiResponseError as exc:
            if exc.blocked:
                logger.info(
                    f"Save to {endpoint} blocked by server",
                    extra={"endpoint": endpoint, "reason": exc.body.get("error")},
                )
                self._metrics.store_saves_total.labels(endpoint=endpoint, status="blocked").inc()
                return
            logger.error(
                f"Error saving to {endpoint}: {exc.message}",
                extra={"endpoint": endpoint, "status_code": exc.status_code},
            )
            self._metrics.store_saves_total.labels(endpoint=endpoint, status="error").inc()
            return
        except httpx.HTTPError as exc:
            logger.error(
                f"Error saving to {endpoint}: {exc}",
                extra={"endpoint": endpoint, "error_type": type(exc).__name__},
            )
            self._metrics.store_saves_total.labels(endpoint=endpoint, status="error").inc()
            return

        self._metrics.store_saves_total.labels(endpoint=endpoint, status="success").inc()
        if self.config.after_save is not None:
            self.config.after_save(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self, *, flush_pending: bool = True) -> None:
        """
        Settle outstanding persistence at teardown.

        A pending debounced save is written now when `flush_pending` is set
        and the store may save; otherwise it is discarded.
        """
        if self._scheduler.pending:
            if flush_pending and self.can_save():
                self._scheduler.flush()
            else:
                self._scheduler.cancel()
        await self._scheduler.drain()
