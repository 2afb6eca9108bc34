"""Typed row change events emitted from the SQLAlchemy unit of work.

Every flush is translated into ``ChangeEvent`` values (table, operation, old
and new column values) which are routed to handlers subscribed on the module
level ``dispatcher``. Handlers run inside the flushing transaction, so any
rows they add or delete are written atomically with the change that caused
them. Objects a handler adds or deletes produce events of their own within
the same flush.

Only unit-of-work mutations are observed. Bulk ``query.update()`` and
``query.delete()`` statements bypass the session state and emit nothing.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ChangeOperation(StrEnum):
    """Row lifecycle operations."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single row change observed during a flush."""

    table: str
    operation: ChangeOperation
    instance: Any
    old: dict[str, Any] = field(default_factory=dict)
    new: dict[str, Any] = field(default_factory=dict)

    def changed(self, column: str) -> bool:
        """Check if the column's value actually differs between old and new."""
        return self.old.get(column) != self.new.get(column)


ChangeHandler = Callable[[Session, ChangeEvent], None]


class ChangeEventDispatcher:
    """Routes change events to handlers subscribed by table and operation."""

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, ChangeOperation], list[ChangeHandler]] = defaultdict(list)

    def subscribe(
        self, table: str, operation: ChangeOperation
    ) -> Callable[[ChangeHandler], ChangeHandler]:
        """Decorator registering a handler for one table/operation pair."""

        def decorator(handler: ChangeHandler) -> ChangeHandler:
            self._handlers[(table, operation)].append(handler)
            return handler

        return decorator

    def has_handlers(self, table: str, operation: ChangeOperation) -> bool:
        return bool(self._handlers.get((table, operation)))

    def dispatch(self, session: Session, change: ChangeEvent) -> None:
        """Call every handler for the event in registration order."""
        for handler in self._handlers.get((change.table, change.operation), []):
            logger.debug(f"Dispatching {change.operation} on {change.table} to {handler.__name__}")
            handler(session, change)

    def process_flush(self, session: Session) -> int:
        """Dispatch events for all pending changes in the session.

        Runs in rounds until handlers stop producing new changes. Returns the
        number of events dispatched.
        """
        seen: set[tuple[int, ChangeOperation]] = set()
        dispatched = 0

        while True:
            events = [
                change
                for change in self._collect(session, seen)
                if change is not None
            ]
            if not events:
                return dispatched
            for change in events:
                self.dispatch(session, change)
                dispatched += 1

    def _collect(self, session: Session, seen: set[tuple[int, ChangeOperation]]):
        candidates = (
            [(obj, ChangeOperation.INSERT) for obj in list(session.new)]
            + [(obj, ChangeOperation.DELETE) for obj in list(session.deleted)]
            + [(obj, ChangeOperation.UPDATE) for obj in list(session.dirty)]
        )
        for obj, operation in candidates:
            key = (id(obj), operation)
            if key in seen:
                continue
            seen.add(key)
            table = getattr(obj, "__tablename__", None)
            if table is None or not self.has_handlers(table, operation):
                continue
            yield _build_event(obj, table, operation)


def _column_history(obj: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    """Committed and pending values of every mapped column on ``obj``."""
    state = inspect(obj)
    old: dict[str, Any] = {}
    new: dict[str, Any] = {}
    for column_attr in state.mapper.column_attrs:
        history = state.attrs[column_attr.key].load_history()
        if history.deleted:
            old[column_attr.key] = history.deleted[0]
        elif history.unchanged:
            old[column_attr.key] = history.unchanged[0]
        else:
            old[column_attr.key] = None
        if history.added:
            new[column_attr.key] = history.added[0]
        elif history.unchanged:
            new[column_attr.key] = history.unchanged[0]
        else:
            new[column_attr.key] = None
    return old, new


def _build_event(obj: Any, table: str, operation: ChangeOperation) -> ChangeEvent | None:
    old, new = _column_history(obj)
    if operation == ChangeOperation.INSERT:
        return ChangeEvent(table=table, operation=operation, instance=obj, new=new)
    if operation == ChangeOperation.DELETE:
        return ChangeEvent(table=table, operation=operation, instance=obj, old=old)
    if old == new:
        # Attribute was set to its current value
        return None
    return ChangeEvent(table=table, operation=operation, instance=obj, old=old, new=new)


dispatcher = ChangeEventDispatcher()


@event.listens_for(Session, "before_flush")
def _before_flush(session: Session, flush_context, instances) -> None:
    dispatcher.process_flush(session)
