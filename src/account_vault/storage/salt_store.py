# Account Vault - Key Salt Store
#
# Non-secret, per-account material the passphrase policy needs to re-derive
# the same key later:
#
#   salt      16 random bytes, base64, created on first use
#   verifier  CipherToken of a fixed canary, written after the first
#             successful derivation; decrypting it checks a passphrase
#             before any record is touched
#
# Both values are safe to keep beside the owner's record set; export() and
# put() carry them to another device.

import base64
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from ..core import EventSeverity, EventType, log_key_event
from ..core.db import session
from ..crypto.exceptions import InvalidInput
from ..crypto.key_derivation import SALT_LENGTH, generate_salt

logger = logging.getLogger(__name__)


class KeySaltStore:
    """SQLite store of per-account key salts and passphrase verifiers.

    Args:
        db_path: Path to SQLite file. Defaults to the configured data dir.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            from ..config import get_settings
            db_path = get_settings().salt_db_path
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        with session(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS key_salts (
                    owner_id TEXT PRIMARY KEY,
                    salt TEXT NOT NULL,
                    verifier TEXT,
                    created_at TEXT NOT NULL
                )
            """)

    def get_salt(self, owner_id: str) -> Optional[bytes]:
        with session(self.db_path) as conn:
            row = conn.execute(
                "SELECT salt FROM key_salts WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        return base64.b64decode(row["salt"]) if row else None

    def get_or_create_salt(self, owner_id: str) -> bytes:
        """Return the owner's salt, generating and persisting one on first use."""
        salt = generate_salt()
        with session(self.db_path) as conn:
            # INSERT OR IGNORE keeps the first writer's salt if two race
            cur = conn.execute(
                "INSERT OR IGNORE INTO key_salts (owner_id, salt, created_at) VALUES (?, ?, ?)",
                (
                    owner_id,
                    base64.b64encode(salt).decode("ascii"),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            created = cur.rowcount > 0

        if created:
            log_key_event(
                EventType.SALT_CREATED,
                EventSeverity.INFO,
                "Key salt created for passphrase policy",
                owner_id=owner_id,
            )
            return salt
        return self.get_salt(owner_id)

    def get_verifier(self, owner_id: str) -> Optional[str]:
        with session(self.db_path) as conn:
            row = conn.execute(
                "SELECT verifier FROM key_salts WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        return row["verifier"] if row else None

    def set_verifier(self, owner_id: str, verifier: str) -> bool:
        """Attach the canary token to an existing salt row.

        The first verifier wins. Returns False if one was already stored.

        Raises:
            KeyError: If no salt is stored for the owner
        """
        with session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE key_salts SET verifier = ? WHERE owner_id = ? AND verifier IS NULL",
                (verifier, owner_id),
            )
            if cur.rowcount > 0:
                return True
            exists = conn.execute(
                "SELECT 1 FROM key_salts WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        if not exists:
            raise KeyError(f"No salt stored for owner {owner_id!r}")
        return False

    def export(self, owner_id: str) -> Optional[Dict[str, Optional[str]]]:
        """
        Return the owner's salt and verifier as JSON-safe strings.

        The result is meant to be stored beside the owner's record set so
        another device can re-derive the same key with put().
        """
        with session(self.db_path) as conn:
            row = conn.execute(
                "SELECT salt, verifier FROM key_salts WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        if row is None:
            return None
        return {"salt": row["salt"], "verifier": row["verifier"]}

    def put(self, owner_id: str, salt: bytes, verifier: Optional[str] = None) -> bool:
        """
        Store salt and verifier exported from another device.

        Never overwrites: if the owner already has the same salt, only a
        missing verifier is filled in and False is returned.

        Raises:
            InvalidInput: If the salt is too short, or a different salt is
                already stored for the owner
        """
        if not isinstance(salt, bytes) or len(salt) < SALT_LENGTH:
            raise InvalidInput(f"Salt must be at least {SALT_LENGTH} bytes")

        encoded = base64.b64encode(salt).decode("ascii")
        with session(self.db_path) as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO key_salts (owner_id, salt, verifier, created_at) VALUES (?, ?, ?, ?)",
                (owner_id, encoded, verifier, datetime.now(timezone.utc).isoformat()),
            )
            created = cur.rowcount > 0

        if created:
            log_key_event(
                EventType.SALT_IMPORTED,
                EventSeverity.INFO,
                "Key salt imported for passphrase policy",
                owner_id=owner_id,
            )
            return True

        if self.get_salt(owner_id) != salt:
            raise InvalidInput(f"A different key salt is already stored for owner {owner_id!r}")
        if verifier is not None:
            self.set_verifier(owner_id, verifier)
        return False

    def delete(self, owner_id: str) -> bool:
        """Drop salt and verifier. Previously encrypted values become unrecoverable."""
        with session(self.db_path) as conn:
            cur = conn.execute("DELETE FROM key_salts WHERE owner_id = ?", (owner_id,))
            deleted = cur.rowcount > 0
        if deleted:
            logger.warning("Key salt deleted for owner %s", owner_id)
        return deleted
