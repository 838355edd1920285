"""
Application context for the dashboard sync layer.

`DashboardClient` wires the shared pieces together once: the HTTP transport,
the loading coordinator, the store registry, every domain store and the
dashboard aggregator. Use it as an async context manager so pending
debounced saves are written before the process exits:

    async with DashboardClient() as dash:
        await dash.dashboard.load_dashboard_data()
        dash.todos.add_todo("Call supplier")
"""

import logging
import time
from collections.abc import Callable

import httpx

from dashsync.core.config import Settings
from dashsync.core.config import settings as default_settings
from dashsync.core.http import DashboardApiClient, UnauthorizedHandler
from dashsync.stores.calendar import CALENDAR_CONFIG, CalendarStore
from dashsync.stores.expenses import EXPENSES_CONFIG, ExpenseStore
from dashsync.stores.quick_links import QUICK_LINKS_CONFIG, QuickLinksStore
from dashsync.stores.sales import SALES_CONFIG, SalesStore
from dashsync.stores.todos import TODOS_CONFIG, TodoStore
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.dashboard import DashboardAggregator
from dashsync.sync.registry import StoreRegistry

logger = logging.getLogger(__name__)


class DashboardClient:
    """Owns the coordinator, registry, stores and aggregator for one session."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] | None = None,
        on_unauthorized: UnauthorizedHandler | None = None,
    ):
        """
        Args:
            settings: Configuration (uses the module settings if None)
            http_client: Pre-built client, e.g. over `httpx.ASGITransport`;
                the caller keeps ownership of it
            clock: Monotonic time source for cache TTL and dashboard throttle
            on_unauthorized: Login redirect hook called on any 401
        """
        self.settings = settings or default_settings
        clock = clock or time.monotonic

        headers = {}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"

        self.api = DashboardApiClient(
            self.settings.api_base_url,
            client=http_client,
            timeout=self.settings.http_timeout_seconds,
            login_route=self.settings.login_route,
            on_unauthorized=on_unauthorized,
            headers=headers,
        )
        self.coordinator = LoadingCoordinator(self.settings.cache_ttl_seconds, clock=clock)
        self.registry = StoreRegistry()

        store_kwargs = {
            "api": self.api,
            "coordinator": self.coordinator,
            "debounce_seconds": self.settings.save_debounce_seconds,
        }
        self._todos = self.registry.get_or_create(
            TODOS_CONFIG.endpoint, lambda: TodoStore(**store_kwargs)
        )
        self._sales = self.registry.get_or_create(
            SALES_CONFIG.endpoint, lambda: SalesStore(**store_kwargs)
        )
        self._calendar = self.registry.get_or_create(
            CALENDAR_CONFIG.endpoint, lambda: CalendarStore(**store_kwargs)
        )
        self._quick_links = self.registry.get_or_create(
            QUICK_LINKS_CONFIG.endpoint, lambda: QuickLinksStore(**store_kwargs)
        )
        self._expenses = self.registry.get_or_create(
            EXPENSES_CONFIG.endpoint, lambda: ExpenseStore(**store_kwargs)
        )

        self._dashboard = DashboardAggregator(
            self.api,
            self.coordinator,
            {
                "todos": self._todos,
                "sales": self._sales,
                "calendar": self._calendar,
                "quickLinks": self._quick_links,
            },
            throttle_seconds=self.settings.dashboard_throttle_seconds,
            clock=clock,
        )
        self._closed = False

    @property
    def todos(self) -> TodoStore:
        return self._todos

    @property
    def sales(self) -> SalesStore:
        return self._sales

    @property
    def calendar(self) -> CalendarStore:
        return self._calendar

    @property
    def quick_links(self) -> QuickLinksStore:
        return self._quick_links

    @property
    def expenses(self) -> ExpenseStore:
        return self._expenses

    @property
    def dashboard(self) -> DashboardAggregator:
        return self._dashboard

    async def aclose(self, *, flush_pending: bool = True) -> None:
        """Write (or drop) pending saves, settle loads and close the transport."""
        if self._closed:
            return
        self._closed = True
        for store in self.registry.stores():
            await store.aclose(flush_pending=flush_pending)
        await self.coordinator.aclose()
        await self.api.aclose()
        logger.debug("Dashboard client closed")

    async def __aenter__(self) -> "DashboardClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
