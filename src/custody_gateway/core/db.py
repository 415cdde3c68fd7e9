# Core Module - Central SQLite Connection Helper
#
# The credential store and the case ledger both open connections through
# this module. Every connection gets:
#
#   - WAL journal mode (concurrent readers + one writer)
#   - busy_timeout to avoid SQLITE_BUSY under contention
#
# Each operation opens its own short-lived connection, so concurrent
# requests running in worker threads never share a connection object.
# Any sqlite3.Error surfaces as PersistenceError.

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Union

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


def connect(db_path: Union[str, Path]) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode, busy_timeout and Row results."""
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_MS / 1000)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def session(db_path: Union[str, Path], *, write: bool = False) -> Iterator[sqlite3.Connection]:
    """Yield a connection, committing on success when ``write`` is set.

    Raises:
        PersistenceError: If the database cannot be opened or a statement fails.
    """
    try:
        conn = connect(db_path)
    except sqlite3.Error as exc:
        logger.error("Cannot open database %s: %s", db_path, exc)
        raise PersistenceError(f"Cannot open database: {exc}") from exc

    try:
        yield conn
        if write:
            conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("Database operation failed on %s: %s", db_path, exc)
        raise PersistenceError(f"Database operation failed: {exc}") from exc
    finally:
        conn.close()


def initialize(db_path: Union[str, Path], statements: Iterable[str]) -> None:
    """Create the parent directory and run idempotent schema statements."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with session(path, write=True) as conn:
        for statement in statements:
            conn.execute(statement)
