# Account Vault - Key Context
#
# Session-scoped owner of the field key. One instance per authenticated
# session, handed to the CRUD components; never a module-level singleton.
#
# State machine:
#
#   UNBOUND ──sign_in(owner)──▶ UNBOUND (owner known, key not yet derived)
#      ▲                           │ first current_key()/encode/decode
#      │                           ▼
#      └──sign_out / owner change── BOUND(owner)  (key cached in memory)
#
# Sign-out and owner switch drop the key and any in-memory passphrase before
# the lock is released, so no caller can observe another owner's key.

import base64
import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from . import field_cipher, record_codec
from ..core import EventSeverity, EventType, log_key_event
from .exceptions import DecryptionFailed, InvalidInput, NoActiveSession
from .key_derivation import (
    DerivedKey,
    KeyPolicyKind,
    PassphrasePolicy,
    SilentPolicy,
    default_policy,
    derive_key,
)
from .record_codec import FieldSpec

if TYPE_CHECKING:
    from ..storage import KeySaltStore, PassphraseStore

logger = logging.getLogger(__name__)

# Encrypted under a fresh passphrase key and stored beside the salt
CANARY_PLAINTEXT = "ACCOUNT_VAULT_KEY_OK"


class KeyContextState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class SessionEvent(str, Enum):
    """Session lifecycle events emitted by the authentication provider."""
    SIGNED_IN = "signed-in"
    SIGNED_OUT = "signed-out"


class KeyContext:
    """
    Binds a key policy to the signed-in owner.

    Silent policy: no user action; the key is a function of the owner id and
    the configured pepper (low assurance, see key_derivation).

    Passphrase policy: the user supplies a passphrase via set_passphrase()
    (optionally remembered on this device); the per-account salt comes from
    the salt store. A wrong passphrase is rejected at bind time by the stored
    verifier.
    """

    def __init__(
        self,
        policy_kind: KeyPolicyKind = KeyPolicyKind.SILENT,
        silent_policy: Optional[SilentPolicy] = None,
        passphrase_iterations: Optional[int] = None,
        salt_store: Optional["KeySaltStore"] = None,
        passphrase_store: Optional["PassphraseStore"] = None,
    ):
        """
        Args:
            policy_kind: Which derivation strategy this session uses
            silent_policy: Pepper/iterations for the silent policy
                           (default: from settings)
            passphrase_iterations: PBKDF2 rounds for the passphrase policy
                                   (default: from settings)
            salt_store: Per-account salt store (passphrase policy only;
                        default store created on first use)
            passphrase_store: Local passphrase cache (passphrase policy only;
                              default store created on first use)
        """
        self.policy_kind = KeyPolicyKind(policy_kind)
        self._silent_policy = silent_policy
        self._passphrase_iterations = passphrase_iterations
        self._salt_store = salt_store
        self._passphrase_store = passphrase_store

        self._lock = threading.RLock()
        self._owner_id: Optional[str] = None
        self._key: Optional[DerivedKey] = None
        self._passphrase: Optional[str] = None

    @classmethod
    def from_settings(cls, settings=None) -> "KeyContext":
        """Build a context for the configured policy and local stores."""
        from ..config import get_settings
        from ..storage import KeySaltStore, PassphraseStore

        settings = settings or get_settings()
        kind = KeyPolicyKind(settings.key_policy)
        return cls(
            policy_kind=kind,
            silent_policy=SilentPolicy(
                pepper=settings.pepper.encode("utf-8"),
                iterations=settings.silent_iterations,
            ),
            passphrase_iterations=settings.passphrase_iterations,
            salt_store=KeySaltStore(settings.salt_db_path) if kind is KeyPolicyKind.PASSPHRASE else None,
            passphrase_store=PassphraseStore(settings.passphrase_db_path) if kind is KeyPolicyKind.PASSPHRASE else None,
        )

    # ── State ─────────────────────────────────────────────────────

    @property
    def owner_id(self) -> Optional[str]:
        """Currently signed-in owner (None when signed out)."""
        return self._owner_id

    @property
    def bound_owner_id(self) -> Optional[str]:
        """Owner the cached key belongs to (None when no key is cached)."""
        key = self._key
        return key.owner_id if key else None

    @property
    def state(self) -> KeyContextState:
        return KeyContextState.BOUND if self._key is not None else KeyContextState.UNBOUND

    # ── Session lifecycle ─────────────────────────────────────────

    def sign_in(self, owner_id: str) -> None:
        """
        Record the signed-in owner. The key is derived lazily.

        Signing in as a different owner discards the previous key first.
        """
        if not isinstance(owner_id, str) or not owner_id:
            raise InvalidInput("Owner id must be a non-empty string")

        with self._lock:
            if self._owner_id == owner_id:
                return
            if self._owner_id is not None:
                self._discard("owner changed")
                self._passphrase = None
            self._owner_id = owner_id

        log_key_event(
            EventType.SESSION_SIGNED_IN,
            EventSeverity.INFO,
            "Owner signed in",
            owner_id=owner_id,
            details={"policy": self.policy_kind.value},
        )

    def sign_out(self) -> None:
        """Forget the owner, the key and any in-memory passphrase."""
        with self._lock:
            owner_id = self._owner_id
            self._discard("signed out")
            self._passphrase = None
            self._owner_id = None

        if owner_id is not None:
            log_key_event(
                EventType.SESSION_SIGNED_OUT,
                EventSeverity.INFO,
                "Owner signed out",
                owner_id=owner_id,
            )

    def handle_session_event(self, event: SessionEvent, owner_id: Optional[str] = None) -> None:
        """Drive the state machine from authentication provider events."""
        event = SessionEvent(event)
        if event is SessionEvent.SIGNED_IN:
            self.sign_in(owner_id)
        else:
            self.sign_out()

    def _discard(self, reason: str) -> None:
        # Caller holds the lock
        key = self._key
        self._key = None
        if key is not None:
            log_key_event(
                EventType.KEY_DISCARDED,
                EventSeverity.INFO,
                f"Key discarded: {reason}",
                owner_id=key.owner_id,
                details={"fingerprint": key.fingerprint},
            )

    # ── Passphrase policy ─────────────────────────────────────────

    def set_passphrase(self, passphrase: str, remember: bool = False) -> None:
        """
        Supply the passphrase for the signed-in owner.

        Args:
            passphrase: The user's secret
            remember: Cache it in the local, per-device passphrase store.
                      Only on explicit user opt-in.

        Raises:
            NoActiveSession: No owner signed in
            InvalidInput: Empty passphrase, or the silent policy is active
            DecryptionFailed: ``remember`` is set and the stored verifier
                rejects the passphrase (nothing is remembered)
        """
        if self.policy_kind is not KeyPolicyKind.PASSPHRASE:
            raise InvalidInput("Passphrases are only used by the passphrase key policy")
        if not isinstance(passphrase, str) or not passphrase:
            raise InvalidInput("Passphrase must be a non-empty string")

        with self._lock:
            owner_id = self._require_owner()
            self._discard("passphrase changed")
            self._passphrase = passphrase
            if remember:
                # Check against the verifier before it is written to disk
                try:
                    self.current_key()
                except DecryptionFailed:
                    self._passphrase = None
                    raise
                self._get_passphrase_store().remember(owner_id, passphrase)

        if remember:
            log_key_event(
                EventType.PASSPHRASE_REMEMBERED,
                EventSeverity.INFO,
                "Passphrase remembered on this device",
                owner_id=owner_id,
            )

    def forget_passphrase(self) -> bool:
        """
        Clear the in-memory and the locally remembered passphrase.

        Also drops the in-memory key; the next operation needs the
        passphrase again.

        Returns:
            True if a remembered passphrase was deleted from the local store
        """
        with self._lock:
            owner_id = self._require_owner()
            self._discard("passphrase forgotten")
            self._passphrase = None
            removed = False
            if self.policy_kind is KeyPolicyKind.PASSPHRASE:
                removed = self._get_passphrase_store().forget(owner_id)

        log_key_event(
            EventType.PASSPHRASE_FORGOTTEN,
            EventSeverity.INFO,
            "Passphrase forgotten",
            owner_id=owner_id,
            details={"removed_from_device": removed},
        )
        return removed

    def has_remembered_passphrase(self) -> bool:
        """True if this device holds a remembered passphrase for the owner."""
        if self.policy_kind is not KeyPolicyKind.PASSPHRASE:
            return False
        with self._lock:
            owner_id = self._require_owner()
            return self._get_passphrase_store().has(owner_id)

    def export_key_params(self) -> Optional[Dict[str, Optional[str]]]:
        """
        Salt and verifier for the signed-in owner, or None before first use.

        Store the result with the owner's records; import_key_params() on
        another device lets the same passphrase re-derive the same key.
        """
        self._require_passphrase_policy()
        with self._lock:
            owner_id = self._require_owner()
            return self._get_salt_store().export(owner_id)

    def import_key_params(self, params: Mapping[str, Optional[str]]) -> bool:
        """
        Seed this device's salt store from export_key_params() output.

        Returns:
            True if the salt was stored, False if it was already present

        Raises:
            InvalidInput: Malformed params, or a different salt already stored
        """
        self._require_passphrase_policy()
        try:
            salt = base64.b64decode(params["salt"], validate=True)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"Key params need a base64 'salt': {e}") from e
        verifier = params.get("verifier")
        if verifier is not None and not field_cipher.is_cipher_token(verifier):
            raise InvalidInput("Key params 'verifier' is not a cipher token")

        with self._lock:
            owner_id = self._require_owner()
            return self._get_salt_store().put(owner_id, salt, verifier)

    def _require_passphrase_policy(self) -> None:
        if self.policy_kind is not KeyPolicyKind.PASSPHRASE:
            raise InvalidInput("Key params exist only under the passphrase policy")

    def _get_salt_store(self) -> "KeySaltStore":
        if self._salt_store is None:
            from ..storage import KeySaltStore
            self._salt_store = KeySaltStore()
        return self._salt_store

    def _get_passphrase_store(self) -> "PassphraseStore":
        if self._passphrase_store is None:
            from ..storage import PassphraseStore
            self._passphrase_store = PassphraseStore()
        return self._passphrase_store

    # ── Key access ────────────────────────────────────────────────

    def _require_owner(self) -> str:
        if self._owner_id is None:
            raise NoActiveSession("No owner is signed in")
        return self._owner_id

    def current_key(self) -> DerivedKey:
        """
        Return the session key, deriving it on first use.

        Raises:
            NoActiveSession: No owner signed in
            InvalidInput: Passphrase policy without a passphrase
            DecryptionFailed: Passphrase rejected by the stored verifier
        """
        with self._lock:
            owner_id = self._require_owner()
            key = self._key
            if key is not None and key.owner_id == owner_id:
                return key

            if key is not None:
                # Owner switched without sign-out; never reuse a stale key
                self._discard("bound to a different owner")

            key = self._derive(owner_id)
            self._key = key

        log_key_event(
            EventType.KEY_DERIVED,
            EventSeverity.INFO,
            "Session key derived",
            owner_id=owner_id,
            details={"policy": key.policy.value, "fingerprint": key.fingerprint},
        )
        return key

    def _derive(self, owner_id: str) -> DerivedKey:
        # Caller holds the lock
        if self.policy_kind is KeyPolicyKind.SILENT:
            return derive_key(owner_id, policy=self._silent_policy or default_policy())

        passphrase = self._passphrase
        if passphrase is None:
            passphrase = self._get_passphrase_store().get(owner_id)
        if not passphrase:
            raise InvalidInput("A passphrase is required; call set_passphrase() first")

        salt_store = self._get_salt_store()
        policy = PassphrasePolicy(
            salt=salt_store.get_or_create_salt(owner_id),
            iterations=self._passphrase_iterations or self._default_passphrase_iterations(),
        )
        key = derive_key(owner_id, passphrase, policy)

        verifier = salt_store.get_verifier(owner_id)
        if verifier is None:
            if not salt_store.set_verifier(owner_id, field_cipher.encrypt(CANARY_PLAINTEXT, key)):
                # Another process stored its verifier first
                verifier = salt_store.get_verifier(owner_id)
        if verifier is not None:
            try:
                ok = field_cipher.decrypt(verifier, key) == CANARY_PLAINTEXT
            except DecryptionFailed:
                ok = False
            if not ok:
                log_key_event(
                    EventType.DECRYPTION_FAILED,
                    EventSeverity.CRITICAL,
                    "Passphrase rejected by stored verifier",
                    owner_id=owner_id,
                )
                raise DecryptionFailed("Passphrase does not match this account")

        self._passphrase = passphrase
        return key

    @staticmethod
    def _default_passphrase_iterations() -> int:
        from ..config import get_settings
        return get_settings().passphrase_iterations

    # ── Convenience wrappers ──────────────────────────────────────

    def encrypt_value(self, plaintext: str) -> str:
        return field_cipher.encrypt(plaintext, self.current_key())

    def decrypt_value(self, token: str) -> str:
        key = self.current_key()
        try:
            return field_cipher.decrypt(token, key)
        except DecryptionFailed:
            self._log_read_failure(key, None)
            raise

    def encode_record(self, record: Mapping, fields: FieldSpec) -> Dict[str, Any]:
        """Encrypt the sensitive fields of ``record`` with the session key."""
        return record_codec.encode(record, fields, self.current_key())

    def decode_record(self, record: Mapping, fields: FieldSpec) -> Dict[str, Any]:
        """
        Decrypt the sensitive fields of ``record`` with the session key.

        Raises:
            DecryptionFailed: Any sensitive field is corrupted or was
                encrypted under another key
        """
        key = self.current_key()
        try:
            return record_codec.decode(record, fields, key)
        except DecryptionFailed as e:
            self._log_read_failure(key, e.field)
            raise

    @staticmethod
    def _log_read_failure(key: DerivedKey, field: Optional[str]) -> None:
        log_key_event(
            EventType.DECRYPTION_FAILED,
            EventSeverity.ALERT,
            "Stored value could not be decrypted (wrong key or corrupted data)",
            owner_id=key.owner_id,
            details={"field": field, "fingerprint": key.fingerprint},
        )
