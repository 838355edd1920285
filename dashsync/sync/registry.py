"""Process-wide store registry: exactly one store per server endpoint."""

import logging
from collections.abc import Callable
from typing import TypeVar

from dashsync.core.errors import StoreRegistryError

logger = logging.getLogger(__name__)

StoreT = TypeVar("StoreT")


class StoreRegistry:
    """
    Memoized store factory keyed by endpoint.

    Saves are full-state overwrites, so two stores writing the same endpoint
    would silently clobber each other. The registry makes "one writer per
    resource" structural: asking twice for an endpoint returns the same
    instance, and registering a second instance for a taken endpoint is refused.
    """

    def __init__(self) -> None:
        self._stores: dict[str, object] = {}

    def get_or_create(self, endpoint: str, factory: Callable[[], StoreT]) -> StoreT:
        existing = self._stores.get(endpoint)
        if existing is not None:
            return existing  # type: ignore[return-value]

        store = factory()
        self._stores[endpoint] = store
        logger.debug(f"Registered store for {endpoint}")
        return store

    def register(self, endpoint: str, store: StoreT) -> StoreT:
        """Register a pre-built store; re-registering the same instance is a no-op."""
        existing = self._stores.get(endpoint)
        if existing is not None and existing is not store:
            raise StoreRegistryError(
                f"A store is already registered for {endpoint}",
                details={"endpoint": endpoint, "existing": type(existing).__name__},
            )
        self._stores[endpoint] = store
        return store

    def get(self, endpoint: str) -> object | None:
        return self._stores.get(endpoint)

    def stores(self) -> list[object]:
        return list(self._stores.values())

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._stores

    def __len__(self) -> int:
        return len(self._stores)
