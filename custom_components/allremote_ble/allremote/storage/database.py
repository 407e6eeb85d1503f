"""SQLite storage for remembered module passwords."""

import sqlite3
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .base import PasswordStore
from ..const import DEFAULT_PASSWORD
from ..exceptions import StorageError


_LOGGER = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS passwords (
        address TEXT PRIMARY KEY,
        password TEXT NOT NULL,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
"""

# rowid breaks ties between saves within the same clock tick
_BY_RECENCY = "ORDER BY updated_at DESC, rowid DESC"


class SQLitePasswordStore(PasswordStore):
    """
    Password store backed by a single SQLite table.

    Addresses are kept upper-case. The most recently saved row doubles as
    the "last connected device".
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        default_password: str = DEFAULT_PASSWORD,
    ):
        """
        Args:
            db_path: Database file, ~/.allremote/passwords.db when omitted
            default_password: Password tried when none is stored
        """
        if db_path is None:
            home = Path.home() / ".allremote"
            home.mkdir(parents=True, exist_ok=True)
            db_path = str(home / "passwords.db")

        self._db_path = db_path
        self._default = default_password
        with self._connect("initialize database") as conn:
            conn.execute(_SCHEMA)

    @contextmanager
    def _connect(self, action: str) -> Iterator[sqlite3.Connection]:
        """Open a committing connection, turning sqlite errors into StorageError."""
        try:
            with sqlite3.connect(self._db_path) as conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Failed to {action}: {e}") from e

    def get(self, address: str) -> Optional[str]:
        with self._connect("load password") as conn:
            row = conn.execute(
                "SELECT password FROM passwords WHERE address = ?",
                (address.upper(),),
            ).fetchone()
        return row[0] if row else None

    def set(self, address: str, password: str) -> None:
        now = time.time()
        with self._connect("save password") as conn:
            conn.execute(
                "INSERT INTO passwords (address, password, created_at, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(address) DO UPDATE SET "
                "password = excluded.password, updated_at = excluded.updated_at",
                (address.upper(), password, now, now),
            )
        _LOGGER.debug("Saved password (%d chars) for %s", len(password), address)

    def clear(self, address: str) -> bool:
        with self._connect("delete password") as conn:
            deleted = conn.execute(
                "DELETE FROM passwords WHERE address = ?", (address.upper(),)
            ).rowcount > 0
        if deleted:
            _LOGGER.debug("Deleted password for %s", address)
        return deleted

    def get_last_connected_device(self) -> Optional[str]:
        with self._connect("read last connected device") as conn:
            row = conn.execute(
                f"SELECT address FROM passwords {_BY_RECENCY} LIMIT 1"
            ).fetchone()
        return row[0] if row else None

    def get_default(self) -> str:
        return self._default

    def list_addresses(self) -> List[str]:
        """Addresses with a stored password, most recently saved first."""
        with self._connect("list passwords") as conn:
            rows = conn.execute(f"SELECT address FROM passwords {_BY_RECENCY}").fetchall()
        return [row[0] for row in rows]
