# Account Vault - Local Stores
#
# Per-device SQLite stores used by the passphrase key policy.

from .passphrase_store import PassphraseStore
from .salt_store import KeySaltStore

__all__ = ["PassphraseStore", "KeySaltStore"]
