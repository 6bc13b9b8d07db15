"""
Shared pytest fixtures for the Account Vault test suite.

Autouse fixtures below isolate tests from live application data:
  - Settings      -> temp data/audit dirs, low PBKDF2 iteration counts
  - Audit logger  -> temp directory (prevents test events in real audit logs)
"""

import pytest

from account_vault.config import Settings, set_settings
from account_vault.core.audit_log import AuditLogger, set_audit_logger
from account_vault.crypto.key_derivation import SilentPolicy

# Keep PBKDF2 cheap in tests; derivation semantics don't depend on the count
TEST_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def settings(tmp_path):
    """Replace cached settings with a temp-dir, low-iteration configuration."""
    test_settings = Settings(
        pepper="test-pepper",
        silent_iterations=TEST_ITERATIONS,
        passphrase_iterations=TEST_ITERATIONS,
        key_policy="silent",
        data_dir=tmp_path / "data",
        audit_dir=tmp_path / "audit_logs",
    )
    set_settings(test_settings)
    yield test_settings
    set_settings(None)


@pytest.fixture(autouse=True)
def audit_logger(settings):
    """Redirect the global AuditLogger to the temp audit dir for every test.

    Without this, any test that (directly or indirectly) logs a key event
    writes into the real ``./audit_logs/`` directory.
    """
    logger = AuditLogger(log_dir=settings.audit_dir)
    set_audit_logger(logger)
    yield logger
    logger.close()
    set_audit_logger(None)


@pytest.fixture
def silent_policy():
    return SilentPolicy(pepper=b"test-pepper", iterations=TEST_ITERATIONS)
