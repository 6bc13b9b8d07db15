# Account Vault - Local Passphrase Cache
#
# Per-device, non-synced store for the passphrase-policy secret. Written only
# when the user explicitly opts in ("remember on this device"); cleared by
# "forget passphrase". Lives next to the other local stores in the data dir
# and must never be replicated to the record store.

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..core.db import session

logger = logging.getLogger(__name__)


class PassphraseStore:
    """SQLite store of remembered passphrases, one row per owner.

    Args:
        db_path: Path to SQLite file. Defaults to the configured data dir.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            from ..config import get_settings
            db_path = get_settings().passphrase_db_path
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        with session(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS remembered_passphrases (
                    owner_id TEXT PRIMARY KEY,
                    passphrase TEXT NOT NULL,
                    remembered_at TEXT NOT NULL
                )
            """)
        try:
            # Owner read/write only
            os.chmod(self.db_path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.db_path, exc_info=True)

    def get(self, owner_id: str) -> Optional[str]:
        """Return the remembered passphrase for ``owner_id``, or None."""
        with session(self.db_path) as conn:
            row = conn.execute(
                "SELECT passphrase FROM remembered_passphrases WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()
        return row["passphrase"] if row else None

    def has(self, owner_id: str) -> bool:
        return self.get(owner_id) is not None

    def remember(self, owner_id: str, passphrase: str) -> None:
        """Store (or replace) the passphrase for ``owner_id`` on this device."""
        now = datetime.now(timezone.utc).isoformat()
        with session(self.db_path) as conn:
            conn.execute(
                """INSERT INTO remembered_passphrases (owner_id, passphrase, remembered_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(owner_id) DO UPDATE SET
                       passphrase = excluded.passphrase,
                       remembered_at = excluded.remembered_at""",
                (owner_id, passphrase, now),
            )

    def forget(self, owner_id: str) -> bool:
        """Delete the remembered passphrase. Returns True if one existed."""
        with session(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM remembered_passphrases WHERE owner_id = ?", (owner_id,)
            )
            return cur.rowcount > 0
