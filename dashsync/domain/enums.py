"""
Domain enums for dashboard records.

Values match the strings the API stores and returns.
"""

from enum import Enum


class Priority(str, Enum):
    """Todo priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TodoStatus(str, Enum):
    """Lifecycle status of a todo."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DEAD = "dead"


class SaleStatus(str, Enum):
    """Fulfilment status of a sale."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FULFILLED = "fulfilled"
    DEAD = "dead"


class DeliveryMethod(str, Enum):
    """How a sale reaches the customer."""

    SHIPPING = "shipping"
    LOCAL = "local"


class RecurringPattern(str, Enum):
    """
    Recurrence recorded on a calendar event.

    Stored and round-tripped only; recurring instances are not generated.
    """

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
