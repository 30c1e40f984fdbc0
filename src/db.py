"""Shared SQLite helpers — WAL mode, busy timeout, row_factory defaults."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path


def wal_connect(
    db_path: str | Path,
    row_factory: bool = False,
    timeout: float = 5.0,
    autocommit: bool = False,
) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        timeout: Seconds to wait on a locked database before failing.
        autocommit: If True, disable implicit transactions so callers
            can issue BEGIN/COMMIT themselves.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=timeout,
        isolation_level=None if autocommit else "DEFERRED",
        check_same_thread=False,
    )
    conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    conn.execute("PRAGMA journal_mode=WAL")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def wal_session(db_path: str | Path, row_factory: bool = False, timeout: float = 5.0):
    """Connection that commits on success, rolls back on error, and always closes."""
    conn = wal_connect(db_path, row_factory=row_factory, timeout=timeout)
    try:
        with conn:
            yield conn
    finally:
        conn.close()
