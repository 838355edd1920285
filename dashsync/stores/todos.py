"""Todo store: todos with subtasks and notes, plus category and owner tags."""

from dataclasses import dataclass, replace
from typing import Any

from dashsync.core.http import DashboardApiClient
from dashsync.domain.enums import TodoStatus
from dashsync.domain.models import Subtask, TagOption, Todo, new_id
from dashsync.stores.common import (
    dump_records,
    move_record,
    parse_records,
    pick_fallback_color,
    remove_record,
    replace_record,
)
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.entity_store import EntityStore, EntityStoreConfig, StoreState


@dataclass(frozen=True)
class TodoState(StoreState):
    todos: tuple[Todo, ...] = ()
    categories: tuple[TagOption, ...] = ()
    owners: tuple[TagOption, ...] = ()


def parse_todos_response(data: dict[str, Any], state: TodoState) -> dict[str, Any]:
    return {
        "todos": parse_records(Todo, data.get("todos")),
        "categories": parse_records(TagOption, data.get("categories")),
        "owners": parse_records(TagOption, data.get("owners")),
    }


def serialize_todos(state: TodoState) -> dict[str, Any]:
    return {
        "todos": dump_records(state.todos),
        "categories": dump_records(state.categories),
        "owners": dump_records(state.owners),
    }


TODOS_CONFIG: EntityStoreConfig[TodoState] = EntityStoreConfig(
    coordinator_key="todos-data",
    endpoint="/api/todos/neon",
    parse_response=parse_todos_response,
    serialize_state=serialize_todos,
)


class TodoStore(EntityStore[TodoState]):
    """
    Working copy of `/api/todos/neon`.

    Edits are debounced except deletes, which the user expects to stick
    straight away.
    """

    def __init__(
        self,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        debounce_seconds: float | None = None,
    ):
        config = TODOS_CONFIG
        if debounce_seconds is not None:
            config = replace(config, debounce_seconds=debounce_seconds)
        super().__init__(config, TodoState(), api=api, coordinator=coordinator)

    # -- todos ---------------------------------------------------------

    def add_todo(self, title: str, **fields: Any) -> Todo:
        todo = Todo(id=new_id(), title=title, **fields)
        self.commit(todos=(*self.state.todos, todo))
        return todo

    def update_todo(self, todo_id: str, **changes: Any) -> None:
        self.commit(todos=replace_record(self.state.todos, todo_id, lambda t: t.touch(**changes)))

    def delete_todo(self, todo_id: str) -> None:
        self.commit(todos=remove_record(self.state.todos, todo_id), immediate=True)

    def toggle_complete(self, todo_id: str) -> None:
        def toggle(todo: Todo) -> Todo:
            completed = not todo.completed
            status = TodoStatus.COMPLETED if completed else TodoStatus.NOT_STARTED
            return todo.touch(completed=completed, status=status)

        self.commit(todos=replace_record(self.state.todos, todo_id, toggle))

    def reorder_todos(self, active_id: str, over_id: str) -> None:
        todos = move_record(self.state.todos, active_id, over_id)
        if todos is not None:
            self.commit(todos=todos)

    def update_notes(self, todo_id: str, notes: str) -> None:
        """Typing into a notes field; relies on the debounce to batch keystrokes."""
        self.update_todo(todo_id, notes=notes)

    # -- subtasks ------------------------------------------------------

    def _change_subtasks(self, todo_id: str, change) -> None:
        def apply(todo: Todo) -> Todo:
            return todo.touch(subtasks=change(tuple(todo.subtasks)))

        self.commit(todos=replace_record(self.state.todos, todo_id, apply))

    def add_subtask(self, todo_id: str, text: str) -> None:
        subtask = Subtask(id=new_id(), text=text)
        self._change_subtasks(todo_id, lambda subtasks: (*subtasks, subtask))

    def update_subtask(self, todo_id: str, subtask_id: str, **changes: Any) -> None:
        self._change_subtasks(
            todo_id,
            lambda subtasks: replace_record(subtasks, subtask_id, lambda s: s.updated(**changes)),
        )

    def toggle_subtask(self, todo_id: str, subtask_id: str) -> None:
        self._change_subtasks(
            todo_id,
            lambda subtasks: replace_record(
                subtasks, subtask_id, lambda s: s.updated(completed=not s.completed)
            ),
        )

    def delete_subtask(self, todo_id: str, subtask_id: str) -> None:
        self._change_subtasks(todo_id, lambda subtasks: remove_record(subtasks, subtask_id))

    # -- categories and owners ----------------------------------------

    def add_category(self, name: str, color: str | None = None) -> TagOption:
        option = TagOption(
            id=new_id(), name=name, color=color or pick_fallback_color(self.state.categories)
        )
        self.commit(categories=(*self.state.categories, option))
        return option

    def update_category(self, category_id: str, name: str, color: str) -> None:
        self.commit(
            categories=replace_record(
                self.state.categories, category_id, lambda c: c.updated(name=name, color=color)
            )
        )

    def delete_category(self, category_id: str) -> None:
        self.commit(categories=remove_record(self.state.categories, category_id))

    def add_owner(self, name: str, color: str | None = None) -> TagOption:
        option = TagOption(
            id=new_id(), name=name, color=color or pick_fallback_color(self.state.owners)
        )
        self.commit(owners=(*self.state.owners, option))
        return option

    def update_owner(self, owner_id: str, name: str, color: str) -> None:
        self.commit(
            owners=replace_record(
                self.state.owners, owner_id, lambda o: o.updated(name=name, color=color)
            )
        )

    def delete_owner(self, owner_id: str) -> None:
        self.commit(owners=remove_record(self.state.owners, owner_id))
