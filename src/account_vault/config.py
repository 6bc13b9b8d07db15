# Account Vault - Configuration
#
# Settings come from environment variables, optionally seeded from a .env
# file in the working directory (python-dotenv). Nothing here is secret except
# the silent-policy pepper, which must be overridden in production.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .crypto.exceptions import InvalidInput

ENV_PREFIX = "ACCOUNT_VAULT_"

DEFAULT_PEPPER = "account-vault-dev-pepper"
DEFAULT_SILENT_ITERATIONS = 100_000
DEFAULT_PASSPHRASE_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256
VALID_POLICIES = ("silent", "passphrase")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the encryption layer and its local stores."""

    pepper: str = DEFAULT_PEPPER
    silent_iterations: int = DEFAULT_SILENT_ITERATIONS
    passphrase_iterations: int = DEFAULT_PASSPHRASE_ITERATIONS
    key_policy: str = "silent"
    data_dir: Path = Path("data")
    audit_dir: Path = Path("audit_logs")

    @property
    def passphrase_db_path(self) -> Path:
        return self.data_dir / "passphrases.db"

    @property
    def salt_db_path(self) -> Path:
        return self.data_dir / "key_salts.db"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _positive_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidInput(f"{ENV_PREFIX}{name} must be an integer; got {raw!r}")
    if value <= 0:
        raise InvalidInput(f"{ENV_PREFIX}{name} must be positive; got {value}")
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Priority:
    1. Environment variables
    2. .env file (does not override variables already set)
    3. Defaults

    Raises:
        InvalidInput: If a numeric setting or the policy name is invalid
    """
    load_dotenv(env_file, override=False)

    policy = (_env("KEY_POLICY", "silent") or "silent").lower()
    if policy not in VALID_POLICIES:
        raise InvalidInput(
            f"{ENV_PREFIX}KEY_POLICY must be one of {', '.join(VALID_POLICIES)}; got {policy!r}"
        )

    return Settings(
        pepper=_env("PEPPER", DEFAULT_PEPPER),
        silent_iterations=_positive_int("SILENT_ITERATIONS", DEFAULT_SILENT_ITERATIONS),
        passphrase_iterations=_positive_int("PASSPHRASE_ITERATIONS", DEFAULT_PASSPHRASE_ITERATIONS),
        key_policy=policy,
        data_dir=Path(_env("DATA_DIR", "data")),
        audit_dir=Path(_env("AUDIT_DIR", "audit_logs")),
    )


# ── Singleton ────────────────────────────────────────────────────────

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or load the process-wide Settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the cached settings (for testing)."""
    global _settings
    _settings = settings
