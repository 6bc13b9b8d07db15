# Account Vault - Main Package
#
# Client-side field encryption for the personal account vault: bank data,
# mail credentials and other logins are encrypted field by field before they
# are written to the record store.

__version__ = "0.1.0"
__author__ = "Account Vault Team"
__description__ = "Client-side field-level encryption for a personal account vault"

from .crypto import (
    DecryptionFailed,
    DerivedKey,
    InvalidInput,
    KeyContext,
    KeyContextState,
    KeyPolicyKind,
    NoActiveSession,
    PassphrasePolicy,
    SessionEvent,
    SilentPolicy,
    VaultCryptoError,
    derive_key,
)
from .records import RecordKind

__all__ = [
    "__version__",
    "KeyContext",
    "KeyContextState",
    "SessionEvent",
    "KeyPolicyKind",
    "SilentPolicy",
    "PassphrasePolicy",
    "DerivedKey",
    "derive_key",
    "RecordKind",
    "VaultCryptoError",
    "InvalidInput",
    "DecryptionFailed",
    "NoActiveSession",
]
