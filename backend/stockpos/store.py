# Overview: Ledger store; transactional units, CRUD primitives and live queries over the SQLAlchemy session.

"""
Ledger Store Invariants (authoritative)

- The database is the single source of truth; every engine reads and writes
  through one explicitly constructed LedgerStore.
- transaction() is the only way to group writes. Units nest: inner units
  join the outermost one, which alone commits or rolls back.
- A write made outside a unit commits on its own. If it fails, that write is
  rolled back and the original exception propagates unchanged.
- Live queries are refreshed after every commit that touched one of their
  tables, and never after a rollback. A failing loader or callback is logged
  and never reaches the writer, whose unit has already committed.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator

from sqlalchemy import delete, event
from sqlalchemy.orm import Session

from .models import RESET_ORDER, TABLE_MODELS, StockLocation, User
from .validation import NotFoundError

logger = logging.getLogger(__name__)

_DEPTH_KEY = "ledger_unit_depth"
_PENDING_KEY = "ledger_pending_tables"
_COMMITTED_KEY = "ledger_committed_tables"

# Unconsumed snapshots kept per live query; older ones are dropped.
MAX_PENDING_SNAPSHOTS = 32


class TransactionError(Exception):
    """
    Aggregate failure of a multi-step unit. The unit was rolled back; the
    underlying exception is available as __cause__.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# -----------------------------------------------------------------------------
# Table change tracking
# -----------------------------------------------------------------------------

def _table_names(objects: Iterable[Any]) -> set[str]:
    names = set()
    for obj in objects:
        table = getattr(obj, "__table__", None)
        if table is not None:
            names.add(table.name)
    return names


@event.listens_for(Session, "after_flush")
def _collect_flushed_tables(session, flush_context):
    touched = session.info.setdefault(_PENDING_KEY, set())
    touched |= _table_names(session.new)
    touched |= _table_names(session.dirty)
    touched |= _table_names(session.deleted)


@event.listens_for(Session, "after_commit")
def _promote_committed_tables(session):
    pending = session.info.pop(_PENDING_KEY, set())
    if pending:
        session.info.setdefault(_COMMITTED_KEY, set()).update(pending)


@event.listens_for(Session, "after_rollback")
def _discard_pending_tables(session):
    session.info.pop(_PENDING_KEY, None)


# -----------------------------------------------------------------------------
# Live queries
# -----------------------------------------------------------------------------

class LiveQuery:
    """
    Snapshot of a read plus a subscription to its later values.

    `snapshot` always holds the latest value. Each refresh after a commit is
    also queued (drain it with pending(); only the newest
    MAX_PENDING_SNAPSHOTS are kept) and passed to every callback registered
    with on_change(). cancel() detaches from the store; using the
    object as a context manager cancels on exit.
    """

    def __init__(self, store: "LedgerStore", tables: Iterable[str], loader: Callable[[], Any]):
        self._store = store
        self.tables = frozenset(tables)
        self._loader = loader
        self._updates: deque = deque(maxlen=MAX_PENDING_SNAPSHOTS)
        self._callbacks: list[Callable[[Any], None]] = []
        self.active = True
        self.snapshot = loader()

    def on_change(self, callback: Callable[[Any], None]) -> "LiveQuery":
        self._callbacks.append(callback)
        return self

    def pending(self) -> Iterator[Any]:
        """Yield (and consume) snapshots published since the last call."""
        while self._updates:
            yield self._updates.popleft()

    def refresh(self) -> Any:
        self.snapshot = self._loader()
        self._updates.append(self.snapshot)
        for callback in list(self._callbacks):
            callback(self.snapshot)
        return self.snapshot

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)
            self._callbacks.clear()
            self._updates.clear()

    def __enter__(self) -> "LiveQuery":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"<LiveQuery tables={sorted(self.tables)} active={self.active}>"


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------

class LedgerStore:
    """
    Handle over the embedded database.

    Lifecycle: construct once per application, open() at start (creates the
    schema and seeds defaults), close() at shutdown (cancels live queries and
    releases the session). Must be used inside a Flask app context.
    """

    def __init__(self, db, *, config: dict | None = None):
        self.db = db
        self.config = dict(config or {})
        self._live: list[LiveQuery] = []
        self.is_open = False

    @property
    def session(self):
        return self.db.session

    # --- lifecycle -----------------------------------------------------------

    def open(self) -> "LedgerStore":
        self.db.create_all()
        self.is_open = True
        self.initialize()
        logger.info("Ledger store opened (%s)", self.db.engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        self.cancel_live_queries()
        self.session.remove()
        self.is_open = False
        logger.info("Ledger store closed")

    def initialize(self) -> dict:
        """
        Seed the default stock location and admin account when missing.

        Safe to call repeatedly (idempotent). Returns what was created.
        """
        from .services.auth_service import hash_password

        created = {"location": None, "admin": None}
        with self.transaction() as session:
            if session.query(StockLocation).count() == 0:
                location = StockLocation(
                    name=self.config.get("DEFAULT_LOCATION_NAME", "Main Warehouse"),
                    description=self.config.get("DEFAULT_LOCATION_DESCRIPTION", "Default storage location"),
                )
                session.add(location)
                created["location"] = location

            if session.query(User).count() == 0:
                admin = User(
                    username=self.config.get("DEFAULT_ADMIN_USERNAME", "admin").lower(),
                    full_name=self.config.get("DEFAULT_ADMIN_FULL_NAME", "System Administrator"),
                    password_hash=hash_password(
                        self.config.get("DEFAULT_ADMIN_PASSWORD", "admin123"),
                        rounds=self.config.get("BCRYPT_ROUNDS"),
                    ),
                    role="admin",
                )
                session.add(admin)
                created["admin"] = admin

        if created["admin"] is not None:
            logger.info("Default admin user created")
        return created

    # --- transactional unit --------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self.session.info.get(_DEPTH_KEY, 0) > 0

    @contextmanager
    def transaction(self):
        """
        Group writes into one all-or-nothing unit.

        The outermost unit flushes and commits on success, rolls back on any
        exception and re-raises it. Nested units only join.
        """
        session = self.session
        depth = session.info.get(_DEPTH_KEY, 0)
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
            if depth == 0:
                session.commit()
        except Exception:
            if depth == 0:
                session.rollback()
            raise
        finally:
            session.info[_DEPTH_KEY] = depth

        if depth == 0:
            self.publish()

    def mark_touched(self, *tables: str) -> None:
        """Record tables changed by bulk statements that bypass the flush."""
        self.session.info.setdefault(_PENDING_KEY, set()).update(tables)

    # --- CRUD primitives -----------------------------------------------------

    def get(self, model, row_id: int):
        return self.session.get(model, row_id)

    def require(self, model, row_id: int, label: str | None = None):
        row = self.session.get(model, row_id) if row_id is not None else None
        if row is None:
            raise NotFoundError(f"{label or model.__name__} {row_id} not found")
        return row

    def select(self, model, *criteria, order_by=None) -> list:
        query = self.session.query(model)
        if criteria:
            query = query.filter(*criteria)
        query = query.order_by(*(order_by if order_by is not None else (model.id.asc(),)))
        return query.all()

    def insert(self, model, **values):
        with self.transaction() as session:
            row = model(**values)
            session.add(row)
            session.flush()
        return row

    def update(self, model, row_id: int, **patch):
        """Partial patch; updated_at and sync_status are refreshed on flush."""
        with self.transaction() as session:
            row = self.require(model, row_id)
            for key, value in patch.items():
                setattr(row, key, value)
            session.flush()
        return row

    def delete(self, model, row_id: int) -> None:
        with self.transaction() as session:
            row = self.require(model, row_id)
            session.delete(row)
            session.flush()

    # --- live reads ----------------------------------------------------------

    def live(self, tables: Iterable[str], loader: Callable[[], Any]) -> LiveQuery:
        query = LiveQuery(self, tables, loader)
        self._live.append(query)
        return query

    def live_select(self, model, *criteria, order_by=None) -> LiveQuery:
        return self.live(
            [model.__tablename__],
            lambda: self.select(model, *criteria, order_by=order_by),
        )

    def publish(self) -> int:
        """
        Refresh every live query whose tables were touched by commits since
        the last publish. Returns how many were refreshed.
        """
        touched = self.session.info.pop(_COMMITTED_KEY, set())
        if not touched:
            return 0
        refreshed = 0
        for live in list(self._live):
            if not (live.active and live.tables & touched):
                continue
            try:
                live.refresh()
            except Exception:
                logger.exception("Live query refresh failed: %r", live)
                continue
            refreshed += 1
        logger.debug("Published changes to %s (%d live queries)", sorted(touched), refreshed)
        return refreshed

    def cancel_live_queries(self) -> None:
        for live in list(self._live):
            live.cancel()

    def _detach(self, live: LiveQuery) -> None:
        if live in self._live:
            self._live.remove(live)

    @property
    def live_count(self) -> int:
        return len(self._live)

    # --- table-level operations ----------------------------------------------

    def model_for_table(self, table_name: str):
        model = TABLE_MODELS.get(table_name)
        if model is None:
            raise NotFoundError(f"Unknown table: {table_name}")
        return model

    def clear_all_tables(self) -> None:
        """Delete every row, children before parents. Joins the caller's unit."""
        with self.transaction() as session:
            for model in RESET_ORDER:
                session.execute(delete(model))
                self.mark_touched(model.__tablename__)
            session.expunge_all()
