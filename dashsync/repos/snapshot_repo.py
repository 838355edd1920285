"""
In-memory snapshot storage for the reference API.

Each dashboard domain is stored as one JSON document made of named
collections. A POST replaces the whole document, which mirrors how the client
saves: it always sends its complete working copy.
"""

import copy
import logging
from typing import Any

from dashsync.core.errors import SaveBlockedError, ValidationError

logger = logging.getLogger(__name__)

# Collections per domain, keyed by the URL segment of `/api/<domain>/neon`
DOMAIN_COLLECTIONS: dict[str, tuple[str, ...]] = {
    "todos": ("todos", "categories", "owners"),
    "sales": ("sales", "collections", "products", "channels"),
    "calendar": ("events", "calendarTypes", "reminders"),
    "quick-links": ("quickLinks",),
    "expenses": ("expenses", "categories", "paidByOptions"),
}

# Combined dashboard payload key -> domain
DASHBOARD_SECTIONS: dict[str, str] = {
    "todos": "todos",
    "sales": "sales",
    "calendar": "calendar",
    "quickLinks": "quick-links",
}

EMPTY_STATE_MESSAGE = "Cannot save empty state when database contains data"


def _empty_snapshot(domain: str) -> dict[str, list[Any]]:
    return {name: [] for name in DOMAIN_COLLECTIONS[domain]}


def _has_any_data(snapshot: dict[str, Any]) -> bool:
    return any(len(items) > 0 for items in snapshot.values())


class SnapshotRepository:
    """Whole-document storage per domain, with the empty-state guard applied on write."""

    def __init__(self) -> None:
        self._snapshots: dict[str, dict[str, list[Any]]] = {
            domain: _empty_snapshot(domain) for domain in DOMAIN_COLLECTIONS
        }
        self.write_count: dict[str, int] = dict.fromkeys(DOMAIN_COLLECTIONS, 0)

    def _check_domain(self, domain: str) -> None:
        if domain not in DOMAIN_COLLECTIONS:
            raise ValidationError(f"Unknown domain: {domain}", details={"domain": domain})

    def get(self, domain: str) -> dict[str, list[Any]]:
        """Return a copy of the stored document for `domain`."""
        self._check_domain(domain)
        return copy.deepcopy(self._snapshots[domain])

    def replace(self, domain: str, body: Any) -> dict[str, list[Any]]:
        """
        Overwrite the stored document for `domain`.

        Missing collections are stored as empty. Unknown top-level keys are
        ignored.

        Raises:
            ValidationError: Body is not an object or a collection is not a list
            SaveBlockedError: Every incoming collection is empty while the
                stored document still has data
        """
        self._check_domain(domain)
        if not isinstance(body, dict):
            raise ValidationError("Invalid data format", details={"domain": domain})

        snapshot = _empty_snapshot(domain)
        for name in snapshot:
            items = body.get(name)
            if items is None:
                continue
            if not isinstance(items, list):
                raise ValidationError(
                    "Invalid data format",
                    details={"domain": domain, "collection": name},
                )
            snapshot[name] = items

        if not _has_any_data(snapshot) and _has_any_data(self._snapshots[domain]):
            logger.warning(
                f"Blocked empty save for {domain}",
                extra={"domain": domain},
            )
            raise SaveBlockedError(EMPTY_STATE_MESSAGE, details={"domain": domain})

        self._snapshots[domain] = copy.deepcopy(snapshot)
        self.write_count[domain] += 1
        logger.info(
            f"Saved {domain} snapshot",
            extra={"domain": domain, "counts": {k: len(v) for k, v in snapshot.items()}},
        )
        return self.get(domain)

    def dashboard(self) -> dict[str, dict[str, list[Any]]]:
        """Every dashboard domain in one payload."""
        return {key: self.get(domain) for key, domain in DASHBOARD_SECTIONS.items()}
