"""
Dashboard aggregator: one combined fetch fanned out to the domain stores.

The dashboard page shows a widget per domain. Letting every widget load its
own store would cost one request per domain; instead the aggregator fetches
`/api/dashboard` once and writes each domain's slice straight into the
matching store, marking it loaded so the store's own loader becomes a no-op.
"""

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from dashsync.core.errors import AuthenticationRequiredError, LoadError
from dashsync.core.http import DashboardApiClient
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.entity_store import EntityStore

logger = logging.getLogger(__name__)

DASHBOARD_COORDINATOR_KEY = "dashboard-all-data"
DASHBOARD_ENDPOINT = "/api/dashboard"
DEFAULT_THROTTLE_SECONDS = 30.0

# Domain keys the combined endpoint may return
DASHBOARD_DOMAINS = ("todos", "sales", "calendar", "quickLinks")


class DashboardAggregator:
    """
    Loads every dashboard domain in a single request.

    Attributes:
        is_loading_dashboard: A combined fetch is running
        has_loaded_dashboard: At least one combined load has finished
        last_load_time: Clock reading of the last successful load
    """

    def __init__(
        self,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        stores: Mapping[str, EntityStore[Any]],
        *,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        unknown = set(stores) - set(DASHBOARD_DOMAINS)
        if unknown:
            raise ValueError(f"Unknown dashboard domains: {sorted(unknown)}")
        self._api = api
        self._coordinator = coordinator
        self._stores = dict(stores)
        self._throttle_seconds = throttle_seconds
        self._clock = clock

        self.is_loading_dashboard = False
        self.has_loaded_dashboard = False
        self.last_load_time: float | None = None

    @property
    def stores(self) -> dict[str, EntityStore[Any]]:
        return dict(self._stores)

    def recently_loaded(self) -> bool:
        return (
            self.last_load_time is not None
            and self._clock() - self.last_load_time < self._throttle_seconds
        )

    async def load_dashboard_data(self, *, force: bool = False) -> dict[str, Any] | None:
        """
        Fetch the combined payload and distribute it to the stores.

        Skipped (returns None) when the last successful load is younger than
        the throttle window, unless `force` is set. Every store is flagged as
        loading before the request goes out, so a widget that calls its own
        store's loader meanwhile waits rather than duplicates the work.

        Distribution runs inside the shared load, so the stores settle even
        when the caller that started it is cancelled.

        Returns:
            The combined payload, or None when throttled

        Raises:
            AuthenticationRequiredError: The API answered 401
            LoadError: Any other failure, including a malformed slice; every
                store still latches `has_loaded_from_server` so none of them
                waits forever
        """
        if not force and self.recently_loaded():
            logger.debug("Skipping dashboard load: recently loaded")
            return None

        for store in self._stores.values():
            store.set_state(is_loading=True)

        data = await self._coordinator.coordinated_load(
            DASHBOARD_COORDINATOR_KEY, self._load, force_reload=force
        )
        # A cache hit distributes nothing; drop the flags set above.
        self._release_stores()
        return data

    async def _load(self) -> dict[str, Any]:
        self.is_loading_dashboard = True
        try:
            data = await self._fetch()
            self._distribute(data)
        except BaseException:
            self._latch_stores()
            raise
        finally:
            self.is_loading_dashboard = False
            self.has_loaded_dashboard = True

        self.last_load_time = self._clock()
        return data

    async def _fetch(self) -> dict[str, Any]:
        try:
            data = await self._api.get_json(DASHBOARD_ENDPOINT)
        except AuthenticationRequiredError:
            raise
        except Exception as exc:
            logger.error(
                f"Error loading dashboard data: {exc}",
                extra={"endpoint": DASHBOARD_ENDPOINT, "error_type": type(exc).__name__},
            )
            raise LoadError(
                "Failed to load dashboard data",
                details={"endpoint": DASHBOARD_ENDPOINT, "reason": str(exc)},
            ) from exc

        logger.info(
            "Dashboard data loaded",
            extra={
                "domains": [domain for domain in DASHBOARD_DOMAINS if data.get(domain) is not None]
            },
        )
        return data

    def _distribute(self, data: dict[str, Any]) -> None:
        """Parse every present slice, then apply them; nothing is applied if one fails."""
        parsed: dict[str, dict[str, Any]] = {}
        for domain, store in self._stores.items():
            payload = data.get(domain)
            if not isinstance(payload, dict):
                continue
            try:
                parsed[domain] = store.config.parse_response(payload, store.state)
            except (ValidationError, TypeError, AttributeError) as exc:
                logger.error(
                    f"Error parsing dashboard {domain} data: {exc}",
                    extra={"domain": domain, "error_type": type(exc).__name__},
                )
                raise LoadError(
                    f"Failed to parse dashboard {domain} data",
                    details={"endpoint": DASHBOARD_ENDPOINT, "domain": domain, "reason": str(exc)},
                ) from exc

        for domain, store in self._stores.items():
            if domain in parsed:
                store.apply_server_state(**parsed[domain])
            else:
                # Absent slice: keep the data, drop only the loading flag
                store.set_state(is_loading=self._coordinator.is_loading(store.coordinator_key))

    def _latch_stores(self) -> None:
        for store in self._stores.values():
            store.set_state(is_loading=False, has_loaded_from_server=True)

    def _release_stores(self) -> None:
        if self._coordinator.is_loading(DASHBOARD_COORDINATOR_KEY):
            return
        for store in self._stores.values():
            if store.state.is_loading and not self._coordinator.is_loading(store.coordinator_key):
                store.set_state(is_loading=False)
