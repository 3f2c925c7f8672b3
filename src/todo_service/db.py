from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    event,
    false,
    func,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DisconnectionError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from .models import TodoEntity
from .settings import Settings

logger = logging.getLogger(__name__)

metadata = MetaData()

todos = Table(
    "todos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", Text, nullable=False),
    Column("completed", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime, server_default=func.now()),
    sqlite_autoincrement=True,
)

_LIST_SQL = text("SELECT * FROM todos ORDER BY id DESC")
_INSERT_SQL = text("INSERT INTO todos (title, completed) VALUES (:title, :completed) RETURNING *")
_UPDATE_SQL = text(
    "UPDATE todos SET title = :title, completed = COALESCE(:completed, completed) "
    "WHERE id = :id RETURNING *"
)
_DELETE_SQL = text("DELETE FROM todos WHERE id = :id RETURNING *")

_IDLE_SINCE = "idle_since"


class PoolFatalError(SQLAlchemyError):
    """A pooled connection failed while it sat idle; the pool can no longer be trusted."""


class TodoStore:
    """
    Storage client for the todos table.

    Wraps a SQLAlchemy engine whose QueuePool is bounded to ``pool_max``
    connections. Every operation runs exactly one statement on a connection
    checked out for that statement only. A connection idle for longer than
    ``idle_timeout`` seconds is closed and replaced on its next checkout.
    A connection reused after at least ``ping_after`` seconds idle is pinged
    first; if it turns out to be broken it is reported to ``on_fatal`` and the
    request fails. Busy connections are reused without a ping.
    """

    def __init__(
        self,
        url: str,
        pool_max: int = 20,
        idle_timeout: float = 30.0,
        acquire_timeout: float = 2.0,
        ping_after: float = 5.0,
        ssl_required: bool = False,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout = idle_timeout
        self.ping_after = ping_after
        self._on_fatal = on_fatal
        self._clock = clock
        self.engine: Engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_max,
            max_overflow=0,
            pool_timeout=acquire_timeout,
            connect_args=_connect_args(url, ssl_required, acquire_timeout),
        )
        event.listen(self.engine, "checkin", self._on_checkin)
        event.listen(self.engine, "checkout", self._on_checkout)

    @classmethod
    def from_settings(
        cls, settings: Settings, on_fatal: Optional[Callable[[BaseException], None]] = None
    ) -> "TodoStore":
        return cls(
            settings.database_url,
            pool_max=settings.db_pool_max,
            idle_timeout=settings.db_idle_timeout,
            acquire_timeout=settings.db_connect_timeout,
            ping_after=settings.db_ping_after,
            ssl_required=settings.db_ssl_required,
            on_fatal=on_fatal,
        )

    # Pool events

    def _on_checkin(self, dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info[_IDLE_SINCE] = self._clock()

    def _on_checkout(self, dbapi_connection: Any, connection_record: Any, connection_proxy: Any) -> None:
        idle_since = connection_record.info.pop(_IDLE_SINCE, None)
        if idle_since is None:
            # Freshly opened connection
            return

        idle = self._clock() - idle_since
        if idle > self.idle_timeout:
            logger.debug("Closing connection idle for more than %.1fs", self.idle_timeout)
            raise DisconnectionError("connection exceeded idle timeout")
        if idle < self.ping_after:
            return

        try:
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("SELECT 1")
            finally:
                cursor.close()
        except self.engine.dialect.loaded_dbapi.Error as exc:
            if self._on_fatal is not None:
                self._on_fatal(exc)
            raise PoolFatalError("Unexpected error on idle database connection") from exc

    # Operations

    def create_schema(self) -> None:
        """Create the todos table if it does not exist yet."""
        metadata.create_all(self.engine)

    def list_todos(self) -> List[TodoEntity]:
        with self.engine.begin() as conn:
            rows = conn.execute(_LIST_SQL).mappings().all()
        return [_row_to_entity(row) for row in rows]

    def create_todo(self, title: str, completed: bool = False) -> TodoEntity:
        with self.engine.begin() as conn:
            row = conn.execute(_INSERT_SQL, {"title": title, "completed": completed}).mappings().one()
        return _row_to_entity(row)

    def update_todo(self, todo_id: int, title: str, completed: Optional[bool]) -> Optional[TodoEntity]:
        """Return the updated row, or None if no row has this id."""
        with self.engine.begin() as conn:
            row = (
                conn.execute(_UPDATE_SQL, {"id": todo_id, "title": title, "completed": completed})
                .mappings()
                .first()
            )
        return None if row is None else _row_to_entity(row)

    def delete_todo(self, todo_id: int) -> Optional[TodoEntity]:
        """Return the deleted row, or None if no row has this id."""
        with self.engine.begin() as conn:
            row = conn.execute(_DELETE_SQL, {"id": todo_id}).mappings().first()
        return None if row is None else _row_to_entity(row)

    def close(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()


def _row_to_entity(row: Mapping[str, Any]) -> TodoEntity:
    entity: Dict[str, Any] = dict(row)
    # Drivers without a native boolean type (SQLite) hand back 0/1.
    if entity.get("completed") is not None:
        entity["completed"] = bool(entity["completed"])
    return entity  # type: ignore[return-value]


def _connect_args(url: str, ssl_required: bool, acquire_timeout: float) -> Dict[str, Any]:
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        # Pooled connections are handed to whichever worker thread checks them out.
        return {"check_same_thread": False}
    if backend == "postgresql":
        # sslmode=require encrypts without verifying the server certificate.
        return {
            "sslmode": "require" if ssl_required else "disable",
            "connect_timeout": max(1, math.ceil(acquire_timeout)),
        }
    return {}
