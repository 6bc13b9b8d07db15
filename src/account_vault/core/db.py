# Account Vault - Local SQLite Helper
#
# The per-device stores (passphrase cache, key salts) open short-lived
# connections through `session()`, which applies the same PRAGMAs everywhere:
#
#   - WAL journal mode (a reader never blocks the writer)
#   - busy_timeout so concurrent sessions wait instead of failing
#   - secure_delete so forgotten passphrases are zeroed on disk

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union


def connect(db_path: Union[str, Path], *, row_factory: bool = True) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and safe PRAGMAs.

    Args:
        db_path: Path to the database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
    """
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA secure_delete=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def session(db_path: Union[str, Path]) -> Iterator[sqlite3.Connection]:
    """Yield a connection, commit on success, roll back on error, always close."""
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
