"""Change notifications delivered after a successful commit."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal

from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

PENDING_CHANGES_KEY = "budgetbud.pending_changes"

ChangeAction = Literal["insert", "update", "delete"]


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one of the user's tables."""

    table: str
    action: ChangeAction
    user_id: str
    record_id: int | str | None = None


ChangeListener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Registry of listeners interested in committed changes."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, change: ChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Change listener failed for %s: %s", change, exc)

    def attach(self, factory: sessionmaker) -> None:
        """Deliver changes staged on sessions from ``factory`` once they commit."""

        event.listen(factory, "after_commit", self._flush_pending)
        event.listen(factory, "after_rollback", _discard_pending)

    def _flush_pending(self, session: Session) -> None:
        pending = session.info.pop(PENDING_CHANGES_KEY, [])
        for change in pending:
            self.publish(change)


def _discard_pending(session: Session) -> None:
    session.info.pop(PENDING_CHANGES_KEY, None)


def record_change(
    session: Session,
    table: str,
    action: ChangeAction,
    user_id: str,
    record_id: int | str | None = None,
) -> None:
    """Stage a change on the session; it is published only if the session commits."""

    session.info.setdefault(PENDING_CHANGES_KEY, []).append(
        ChangeEvent(table=table, action=action, user_id=user_id, record_id=record_id)
    )
