"""
Field Encryption Exception Classes
"""

from typing import Optional


class VaultCryptoError(Exception):
    """Base exception for the field encryption layer"""
    pass


class InvalidInput(VaultCryptoError, ValueError):
    """Raised when an owner id, passphrase, salt or record is missing or malformed"""
    pass


class DecryptionFailed(VaultCryptoError):
    """Raised when a token cannot be parsed or authenticated under the given key"""

    def __init__(self, message: str = "Decryption failed", field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NoActiveSession(VaultCryptoError):
    """Raised when a key is requested while no owner is signed in"""
    pass


def user_message(error: VaultCryptoError) -> str:
    """Map an error to a message safe to show in the vault UI."""
    if isinstance(error, DecryptionFailed):
        return "Could not read this record: wrong key or corrupted data."
    if isinstance(error, NoActiveSession):
        return "Your session has ended. Please sign in again."
    if isinstance(error, InvalidInput):
        return f"Invalid input: {error}"
    return "Unexpected encryption error."
