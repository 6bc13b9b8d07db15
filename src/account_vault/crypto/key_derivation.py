# Account Vault - Key Derivation
#
# Owner id (+ optional passphrase) → 256-bit field key (PBKDF2-HMAC-SHA256)
#
# Two policies, modelled as a tagged union:
#
#   SilentPolicy      key = PBKDF2(owner_id, salt = pepper || owner_id)
#                     No user action; any device re-derives the key after
#                     sign-in. LOW ASSURANCE: the owner id is not secret and
#                     the pepper ships with the application, so this only
#                     obfuscates data at rest in a compromised record store.
#                     It offers no protection against anyone holding the
#                     client code and the owner id.
#
#   PassphrasePolicy  key = PBKDF2(passphrase, salt = account_salt || owner_id)
#                     The random per-account salt is stored (not secret); the
#                     passphrase is needed on every device. Losing it makes
#                     every value encrypted under it permanently unreadable.

import hashlib
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import InvalidInput

KEY_LENGTH = 32  # 256 bits for AES-256
SALT_LENGTH = 16  # 128-bit per-account salt
MIN_PASSPHRASE_LENGTH = 8


class KeyPolicyKind(str, Enum):
    """Which derivation strategy produced a key."""
    SILENT = "silent"
    PASSPHRASE = "passphrase"


@dataclass(frozen=True)
class SilentPolicy:
    """Identifier-derived key with an application-wide pepper (low assurance)."""
    pepper: bytes
    iterations: int = 100_000

    kind = KeyPolicyKind.SILENT

    def __post_init__(self):
        if not self.pepper:
            raise InvalidInput("Silent policy requires a non-empty pepper")
        if self.iterations <= 0:
            raise InvalidInput("PBKDF2 iterations must be positive")


@dataclass(frozen=True)
class PassphrasePolicy:
    """Passphrase-derived key with a random, persisted per-account salt."""
    salt: bytes = field(repr=False)
    iterations: int = 600_000

    kind = KeyPolicyKind.PASSPHRASE

    def __post_init__(self):
        if not isinstance(self.salt, bytes) or len(self.salt) < SALT_LENGTH:
            raise InvalidInput(f"Passphrase policy requires a salt of at least {SALT_LENGTH} bytes")
        if self.iterations <= 0:
            raise InvalidInput("PBKDF2 iterations must be positive")


KeyPolicy = Union[SilentPolicy, PassphrasePolicy]


@dataclass(frozen=True)
class DerivedKey:
    """
    A 256-bit symmetric key bound to the owner it was derived for.

    Key material is excluded from repr/str so it cannot leak into logs.
    """
    material: bytes = field(repr=False)
    owner_id: str
    policy: KeyPolicyKind

    def __post_init__(self):
        if len(self.material) != KEY_LENGTH:
            raise InvalidInput(f"Key material must be {KEY_LENGTH} bytes; got {len(self.material)}")

    @property
    def fingerprint(self) -> str:
        """Short fingerprint for display (first 8 hex chars of SHA-256).

        Safe for logging; does not reveal the key itself.
        """
        return hashlib.sha256(self.material).hexdigest()[:8]


def generate_salt() -> bytes:
    """Generate a cryptographically random per-account salt."""
    return os.urandom(SALT_LENGTH)


def default_policy() -> SilentPolicy:
    """Silent policy built from the configured pepper and iteration count."""
    from ..config import get_settings

    settings = get_settings()
    return SilentPolicy(
        pepper=settings.pepper.encode("utf-8"),
        iterations=settings.silent_iterations,
    )


def check_passphrase_strength(passphrase: str) -> Tuple[bool, str]:
    """
    Advisory check for a user-chosen passphrase.

    Derivation does not enforce this; callers show the message before the
    user commits to the passphrase policy.

    Returns:
        (is_ok, message)
    """
    if len(passphrase) < MIN_PASSPHRASE_LENGTH:
        return False, f"Passphrase should be at least {MIN_PASSPHRASE_LENGTH} characters long"
    if passphrase.strip() != passphrase:
        return False, "Passphrase should not start or end with whitespace"
    return True, ""


def _pbkdf2(secret: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret.encode("utf-8"))


def derive_key(
    owner_id: str,
    passphrase: Optional[str] = None,
    policy: Optional[KeyPolicy] = None,
) -> DerivedKey:
    """
    Derive the field key for an owner.

    Deterministic: the same owner id, passphrase and policy always produce
    the same key material. No network or disk I/O.

    Args:
        owner_id: Stable identifier issued by the authentication provider
        passphrase: User secret (required by PassphrasePolicy, ignored otherwise)
        policy: Derivation policy (default: silent policy from settings)

    Returns:
        DerivedKey for ``owner_id``

    Raises:
        InvalidInput: Empty owner id, or missing passphrase under PassphrasePolicy
    """
    if not isinstance(owner_id, str) or not owner_id:
        raise InvalidInput("Owner id must be a non-empty string")

    if policy is None:
        policy = default_policy()

    owner_bytes = owner_id.encode("utf-8")

    if isinstance(policy, PassphrasePolicy):
        if not isinstance(passphrase, str) or not passphrase:
            raise InvalidInput("A passphrase is required by the passphrase key policy")
        material = _pbkdf2(passphrase, policy.salt + owner_bytes, policy.iterations)
    elif isinstance(policy, SilentPolicy):
        material = _pbkdf2(owner_id, policy.pepper + owner_bytes, policy.iterations)
    else:
        raise InvalidInput(f"Unknown key policy: {policy!r}")

    return DerivedKey(material=material, owner_id=owner_id, policy=policy.kind)
