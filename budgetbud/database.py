"""Database handle and session management."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL
from .events import ChangeNotifier

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Explicitly constructed connection handle passed to every operation."""

    def __init__(
        self,
        url: str | None = None,
        *,
        notifier: ChangeNotifier | None = None,
        **engine_kwargs: Any,
    ) -> None:
        self.url = url or DATABASE_URL
        self.notifier = notifier or ChangeNotifier()
        self.engine: Engine = self._create_engine(self.url, engine_kwargs)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )
        self.notifier.attach(self.session_factory)

    @staticmethod
    def _create_engine(url: str, engine_kwargs: dict[str, Any]) -> Engine:
        options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite and url.rstrip("/") in {"sqlite:", "sqlite:///:memory:", "sqlite://"}:
            # A single shared connection keeps the in-memory database alive.
            options["connect_args"] = {"check_same_thread": False}
            options["poolclass"] = StaticPool
        options.update(engine_kwargs)
        engine = create_engine(url, **options)
        if is_sqlite:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional session: commit on success, roll back on error."""
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as exc:  # noqa: BLE001
            session.rollback()
            logger.exception("Database session failed: %s", exc)
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """Create every table that does not exist yet."""
        from .models import Base  # noqa: WPS433 - deferred to avoid circular import

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready at %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
