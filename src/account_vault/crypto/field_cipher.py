# Account Vault - Field Cipher
#
# One plaintext string ⇄ one self-contained CipherToken (AES-256-GCM)
#
# Token format (v1):
#
#     "v1:" + urlsafe_b64(nonce(12) + ciphertext + tag(16))
#
# The prefix names the scheme, the random nonce travels inside the token, so
# any process holding the same DerivedKey can decrypt it without metadata.
# A fresh nonce per call makes encryption non-deterministic.

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import DecryptionFailed, InvalidInput
from .key_derivation import DerivedKey

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "v1:"
NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
TAG_LENGTH = 16

# Shortest valid payload: nonce + tag (empty plaintext)
_MIN_PAYLOAD = NONCE_LENGTH + TAG_LENGTH


def _require_key(key: DerivedKey) -> None:
    if not isinstance(key, DerivedKey):
        raise InvalidInput(f"Expected a DerivedKey; got {type(key).__name__}")


def encrypt(plaintext: str, key: DerivedKey) -> str:
    """
    Encrypt one string value.

    Args:
        plaintext: Value to protect
        key: Field key from derive_key()

    Returns:
        CipherToken string, safe to store in any text field

    Raises:
        InvalidInput: plaintext is not a str or key is not a DerivedKey
    """
    if not isinstance(plaintext, str):
        raise InvalidInput(f"Only string values can be encrypted; got {type(plaintext).__name__}")
    _require_key(key)

    # Must be unique per encryption
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = AESGCM(key.material).encrypt(nonce, plaintext.encode("utf-8"), None)

    return TOKEN_PREFIX + base64.urlsafe_b64encode(nonce + ciphertext).decode("ascii")


def decrypt(token: str, key: DerivedKey) -> str:
    """
    Decrypt a CipherToken.

    Args:
        token: Output of encrypt()
        key: The key the token was encrypted with

    Returns:
        Original plaintext

    Raises:
        DecryptionFailed: Malformed token, wrong key or tampered ciphertext
        InvalidInput: key is not a DerivedKey
    """
    _require_key(key)

    if not is_cipher_token(token):
        raise DecryptionFailed("Value is not a cipher token")

    try:
        payload = base64.urlsafe_b64decode(token[len(TOKEN_PREFIX):].encode("ascii"))
    except (binascii.Error, ValueError):
        raise DecryptionFailed("Cipher token is not valid base64")

    if len(payload) < _MIN_PAYLOAD:
        raise DecryptionFailed("Cipher token is truncated")

    nonce, ciphertext = payload[:NONCE_LENGTH], payload[NONCE_LENGTH:]
    try:
        plaintext = AESGCM(key.material).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        # Wrong key or tampering; GCM tag fails either way
        logger.debug("GCM authentication failed for key %s", key.fingerprint)
        raise DecryptionFailed("Cipher token failed authentication")

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionFailed("Decrypted value is not valid UTF-8")


def is_cipher_token(value) -> bool:
    """Structural check: does ``value`` look like a v1 CipherToken?

    Does not authenticate anything; use decrypt() for that.
    """
    return (
        isinstance(value, str)
        and value.startswith(TOKEN_PREFIX)
        and len(value) > len(TOKEN_PREFIX)
    )
