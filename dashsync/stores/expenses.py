"""
Expense store: expenses with category and paid-by tags.

Every expense edit is saved immediately; there is no free-text field here
that would benefit from debouncing.
"""

from dataclasses import dataclass, replace
from typing import Any

from dashsync.core.http import DashboardApiClient
from dashsync.domain.models import Expense, ExpenseTagOption, new_id
from dashsync.stores.common import (
    dump_records,
    parse_records,
    pick_fallback_color,
    remove_record,
    replace_record,
)
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.entity_store import EntityStore, EntityStoreConfig, StoreState


@dataclass(frozen=True)
class ExpenseState(StoreState):
    expenses: tuple[Expense, ...] = ()
    categories: tuple[ExpenseTagOption, ...] = ()
    paid_by_options: tuple[ExpenseTagOption, ...] = ()


def parse_expenses_response(data: dict[str, Any], state: ExpenseState) -> dict[str, Any]:
    return {
        "expenses": parse_records(Expense, data.get("expenses")),
        "categories": parse_records(ExpenseTagOption, data.get("categories")),
        "paid_by_options": parse_records(ExpenseTagOption, data.get("paidByOptions")),
    }


def serialize_expenses(state: ExpenseState) -> dict[str, Any]:
    return {
        "expenses": dump_records(state.expenses),
        "categories": dump_records(state.categories),
        "paidByOptions": dump_records(state.paid_by_options),
    }


EXPENSES_CONFIG: EntityStoreConfig[ExpenseState] = EntityStoreConfig(
    coordinator_key="expenses-data",
    endpoint="/api/expenses/neon",
    parse_response=parse_expenses_response,
    serialize_state=serialize_expenses,
)


class ExpenseStore(EntityStore[ExpenseState]):
    """Working copy of `/api/expenses/neon`."""

    def __init__(
        self,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        debounce_seconds: float | None = None,
    ):
        config = EXPENSES_CONFIG
        if debounce_seconds is not None:
            config = replace(config, debounce_seconds=debounce_seconds)
        super().__init__(config, ExpenseState(), api=api, coordinator=coordinator)

    def add_expense(self, name: str, **fields: Any) -> Expense:
        expense = Expense(id=new_id(), name=name, **fields)
        self.commit(expenses=(*self.state.expenses, expense), immediate=True)
        return expense

    def update_expense(self, expense_id: str, **changes: Any) -> None:
        self.commit(
            expenses=replace_record(self.state.expenses, expense_id, lambda e: e.touch(**changes)),
            immediate=True,
        )

    def delete_expense(self, expense_id: str) -> None:
        self.commit(expenses=remove_record(self.state.expenses, expense_id), immediate=True)

    def add_category(self, name: str, color: str | None = None) -> ExpenseTagOption:
        option = ExpenseTagOption(
            id=new_id(), name=name, color=color or pick_fallback_color(self.state.categories)
        )
        self.commit(categories=(*self.state.categories, option), immediate=True)
        return option

    def update_category(self, category_id: str, name: str, color: str) -> None:
        self.commit(
            categories=replace_record(
                self.state.categories, category_id, lambda c: c.updated(name=name, color=color)
            ),
            immediate=True,
        )

    def delete_category(self, category_id: str) -> None:
        self.commit(categories=remove_record(self.state.categories, category_id), immediate=True)

    def add_paid_by(self, name: str, color: str | None = None) -> ExpenseTagOption:
        option = ExpenseTagOption(
            id=new_id(), name=name, color=color or pick_fallback_color(self.state.paid_by_options)
        )
        self.commit(paid_by_options=(*self.state.paid_by_options, option), immediate=True)
        return option

    def update_paid_by(self, option_id: str, name: str, color: str) -> None:
        self.commit(
            paid_by_options=replace_record(
                self.state.paid_by_options, option_id, lambda o: o.updated(name=name, color=color)
            ),
            immediate=True,
        )

    def delete_paid_by(self, option_id: str) -> None:
        self.commit(
            paid_by_options=remove_record(self.state.paid_by_options, option_id), immediate=True
        )
