"""SQLite persistence for signals — append-only, one row per version."""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import structlog

from db import wal_connect, wal_session

from .errors import StoreReadError, StoreWriteError, VersionConflictError
from .models import Signal, SignalQuery, as_utc
from .store import SignalStore

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)

_COLUMNS = (
    "id, user_id, entry_id, key, value, confidence, model, version, "
    "generated_at, expires_at, trigger_capture_id, source_window_days, llm_run_id"
)


def _to_us(dt: datetime | None) -> int | None:
    """Datetime -> integer microseconds since epoch (exact round trip)."""
    if dt is None:
        return None
    return (as_utc(dt) - _EPOCH) // _MICROSECOND


def _from_us(value: int | None) -> datetime | None:
    if value is None:
        return None
    return _EPOCH + timedelta(microseconds=value)


class SQLiteSignalStore(SignalStore):
    """WAL-mode SQLite store for signals.

    Version allocation is serialized with BEGIN IMMEDIATE, which takes the
    database write lock, so concurrent writers in other threads or processes
    wait instead of reading a stale max version. The UNIQUE constraint on
    (user_id, entry_id, key, version) turns any write that slips past that
    into a VersionConflictError.
    """

    def __init__(self, db_path: str | Path, busy_timeout: float = 5.0):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout = busy_timeout
        self._local = threading.local()
        self._init_db()

    def _init_db(self):
        with wal_session(self.db_path, timeout=self.busy_timeout) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS signals (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    entry_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value REAL NOT NULL,
                    confidence REAL NOT NULL,
                    model TEXT NOT NULL,
                    version INTEGER NOT NULL CHECK(version >= 1),
                    generated_at INTEGER NOT NULL,
                    expires_at INTEGER,
                    trigger_capture_id TEXT,
                    source_window_days INTEGER,
                    llm_run_id TEXT,
                    UNIQUE(user_id, entry_id, key, version)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_signals_user ON signals(user_id, generated_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_signals_trigger ON signals(trigger_capture_id)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_signals_run ON signals(llm_run_id)")

    @contextmanager
    def _connection(self):
        """Reuse the thread's transaction connection, else a short-lived session."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        with wal_session(self.db_path, row_factory=True, timeout=self.busy_timeout) as conn:
            yield conn

    @contextmanager
    def transaction(self):
        depth = getattr(self._local, "depth", 0)
        if depth:
            yield from self._savepoint(depth)
            return

        conn = None
        try:
            conn = wal_connect(
                self.db_path, row_factory=True, timeout=self.busy_timeout, autocommit=True
            )
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise StoreWriteError(f"Could not lock signal store: {e}") from e

        self._local.conn = conn
        self._local.depth = 1
        try:
            yield
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise StoreWriteError(f"Commit failed: {e}") from e
        finally:
            self._local.conn = None
            self._local.depth = 0
            conn.close()

    def _savepoint(self, depth: int):
        conn = self._local.conn
        name = f"sp_{depth}"
        conn.execute(f"SAVEPOINT {name}")
        self._local.depth = depth + 1
        try:
            yield
        except BaseException:
            conn.execute(f"ROLLBACK TO {name}")
            conn.execute(f"RELEASE {name}")
            raise
        else:
            conn.execute(f"RELEASE {name}")
        finally:
            self._local.depth = depth

    def get_max_version(self, user_id: str, entry_id: str, key: str) -> int:
        try:
            with self._connection() as conn:
                row = conn.execute(
                    """SELECT MAX(version) FROM signals
                       WHERE user_id = ? AND entry_id = ? AND key = ?""",
                    (user_id, entry_id, key),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreReadError(f"Max version read failed: {e}") from e
        return row[0] or 0

    def create(self, signal: Signal) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    f"INSERT INTO signals ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        signal.id,
                        signal.user_id,
                        signal.entry_id,
                        signal.key,
                        signal.value,
                        signal.confidence,
                        signal.model,
                        signal.version,
                        _to_us(signal.generated_at),
                        _to_us(signal.expires_at),
                        signal.trigger_capture_id,
                        signal.source_window_days,
                        signal.llm_run_id,
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "signals.version" in str(e):
                logger.warning(
                    "signals.version_conflict",
                    user_id=signal.user_id,
                    entry_id=signal.entry_id,
                    key=signal.key,
                    version=signal.version,
                )
                raise VersionConflictError(*signal.partition, signal.version) from e
            raise StoreWriteError(f"Signal insert rejected: {e}") from e
        except (sqlite3.Error, OverflowError) as e:
            raise StoreWriteError(f"Signal insert failed: {e}") from e

    def get(self, user_id: str, query: SignalQuery | None = None) -> list[Signal]:
        query = query or SignalQuery()
        sql, params = self._build_select(user_id, query)
        try:
            with self._connection() as conn:
                rows = conn.execute(sql, params).fetchall()
        except (sqlite3.Error, OverflowError) as e:
            raise StoreReadError(f"Signal query failed: {e}") from e
        return [self._row_to_signal(r) for r in rows]

    @staticmethod
    def _conditions(user_id: str, query: SignalQuery, alias: str) -> tuple[list[str], list]:
        clauses = [f"{alias}.user_id = ?"]
        params: list = [user_id]

        for column in ("entry_id", "key", "trigger_capture_id", "llm_run_id"):
            value = getattr(query, column)
            if value is not None:
                clauses.append(f"{alias}.{column} = ?")
                params.append(value)
        if query.since is not None:
            clauses.append(f"{alias}.generated_at >= ?")
            params.append(_to_us(query.since))
        if query.until is not None:
            clauses.append(f"{alias}.generated_at < ?")
            params.append(_to_us(query.until))
        if query.min_version is not None:
            clauses.append(f"{alias}.version >= ?")
            params.append(query.min_version)
        if query.not_expired_at is not None:
            clauses.append(f"({alias}.expires_at IS NULL OR {alias}.expires_at > ?)")
            params.append(_to_us(query.not_expired_at))
        return clauses, params

    def _build_select(self, user_id: str, query: SignalQuery) -> tuple[str, list]:
        outer, params = self._conditions(user_id, query, "s")
        columns = ", ".join(f"s.{c.strip()}" for c in _COLUMNS.split(","))

        if query.latest_only:
            inner, inner_params = self._conditions(user_id, query, "i")
            sql = f"""
                SELECT {columns} FROM signals s
                JOIN (
                    SELECT i.entry_id, i.key, MAX(i.version) AS max_version
                    FROM signals i
                    WHERE {" AND ".join(inner)}
                    GROUP BY i.entry_id, i.key
                ) m ON s.entry_id = m.entry_id AND s.key = m.key AND s.version = m.max_version
                WHERE {" AND ".join(outer)}
            """
            params = inner_params + params
        else:
            sql = f"SELECT {columns} FROM signals s WHERE {' AND '.join(outer)}"

        if query.newest_first:
            sql += " ORDER BY s.generated_at DESC, s.seq DESC"
        else:
            sql += " ORDER BY s.seq ASC"

        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        return sql, params

    @staticmethod
    def _row_to_signal(row: sqlite3.Row) -> Signal:
        return Signal(
            id=row["id"],
            user_id=row["user_id"],
            entry_id=row["entry_id"],
            key=row["key"],
            value=row["value"],
            confidence=row["confidence"],
            model=row["model"],
            version=row["version"],
            generated_at=_from_us(row["generated_at"]),
            expires_at=_from_us(row["expires_at"]),
            trigger_capture_id=row["trigger_capture_id"],
            source_window_days=row["source_window_days"],
            llm_run_id=row["llm_run_id"],
        )
