# Account Vault - Field-Level Encryption
#
# Sensitive record fields are encrypted on the client before they reach the
# record store, with a key that is never persisted server-side.
#
# PBKDF2-SHA256 key derivation (silent or passphrase policy)
# AES-256-GCM field tokens

from .exceptions import (
    DecryptionFailed,
    InvalidInput,
    NoActiveSession,
    VaultCryptoError,
    user_message,
)
from .key_derivation import (
    DerivedKey,
    KeyPolicy,
    KeyPolicyKind,
    PassphrasePolicy,
    SilentPolicy,
    check_passphrase_strength,
    derive_key,
    generate_salt,
)
from .field_cipher import decrypt, encrypt, is_cipher_token
from .record_codec import decode, encode
from .key_context import KeyContext, KeyContextState, SessionEvent

__all__ = [
    # Errors
    "VaultCryptoError",
    "InvalidInput",
    "DecryptionFailed",
    "NoActiveSession",
    "user_message",
    # Key derivation
    "DerivedKey",
    "KeyPolicy",
    "KeyPolicyKind",
    "SilentPolicy",
    "PassphrasePolicy",
    "derive_key",
    "generate_salt",
    "check_passphrase_strength",
    # Field cipher
    "encrypt",
    "decrypt",
    "is_cipher_token",
    # Record codec
    "encode",
    "decode",
    # Session key
    "KeyContext",
    "KeyContextState",
    "SessionEvent",
]
