"""Tests for key derivation.

Covers:
  - Deterministic derivation (silent and passphrase policies)
  - Key separation across owners, passphrases, salts and peppers
  - Input validation (InvalidInput)
  - DerivedKey hygiene (repr, fingerprint)
  - Salt generation and passphrase strength advice
"""

import pytest

from account_vault.crypto import field_cipher
from account_vault.crypto.exceptions import InvalidInput
from account_vault.crypto.key_derivation import (
    KEY_LENGTH,
    SALT_LENGTH,
    DerivedKey,
    KeyPolicyKind,
    PassphrasePolicy,
    SilentPolicy,
    check_passphrase_strength,
    default_policy,
    derive_key,
    generate_salt,
)

TEST_ITERATIONS = 1_000


@pytest.fixture
def passphrase_policy():
    return PassphrasePolicy(salt=b"\x01" * SALT_LENGTH, iterations=TEST_ITERATIONS)


class TestSilentPolicy:

    def test_deterministic(self, silent_policy):
        k1 = derive_key("user-42", policy=silent_policy)
        k2 = derive_key("user-42", policy=silent_policy)
        assert k1.material == k2.material
        assert k1 == k2

    def test_derived_keys_are_interchangeable(self, silent_policy):
        k1 = derive_key("user-42", policy=silent_policy)
        k2 = derive_key("user-42", policy=silent_policy)
        token = field_cipher.encrypt("secret", k1)
        assert field_cipher.decrypt(token, k2) == "secret"

    def test_key_length(self, silent_policy):
        key = derive_key("u1", policy=silent_policy)
        assert len(key.material) == KEY_LENGTH

    def test_different_owners_different_keys(self, silent_policy):
        assert derive_key("u1", policy=silent_policy).material != derive_key("u2", policy=silent_policy).material

    def test_different_pepper_different_keys(self):
        a = SilentPolicy(pepper=b"pepper-a", iterations=TEST_ITERATIONS)
        b = SilentPolicy(pepper=b"pepper-b", iterations=TEST_ITERATIONS)
        assert derive_key("u1", policy=a).material != derive_key("u1", policy=b).material

    def test_passphrase_ignored(self, silent_policy):
        with_pp = derive_key("u1", passphrase="whatever", policy=silent_policy)
        without = derive_key("u1", policy=silent_policy)
        assert with_pp.material == without.material

    def test_records_owner_and_policy(self, silent_policy):
        key = derive_key("u1", policy=silent_policy)
        assert key.owner_id == "u1"
        assert key.policy is KeyPolicyKind.SILENT

    def test_default_policy_uses_settings(self, settings):
        policy = default_policy()
        assert policy.pepper == settings.pepper.encode("utf-8")
        assert policy.iterations == settings.silent_iterations
        assert derive_key("u1").material == derive_key("u1", policy=policy).material

    def test_empty_pepper_rejected(self):
        with pytest.raises(InvalidInput):
            SilentPolicy(pepper=b"")

    def test_non_positive_iterations_rejected(self):
        with pytest.raises(InvalidInput):
            SilentPolicy(pepper=b"p", iterations=0)


class TestPassphrasePolicy:

    def test_deterministic(self, passphrase_policy):
        k1 = derive_key("u1", "correct horse", passphrase_policy)
        k2 = derive_key("u1", "correct horse", passphrase_policy)
        assert k1.material == k2.material
        assert k1.policy is KeyPolicyKind.PASSPHRASE

    def test_passphrase_changes_key(self, passphrase_policy):
        k1 = derive_key("u1", "correct horse", passphrase_policy)
        k2 = derive_key("u1", "wrong horse!!", passphrase_policy)
        assert k1.material != k2.material

    def test_salt_changes_key(self):
        p1 = PassphrasePolicy(salt=b"\x01" * SALT_LENGTH, iterations=TEST_ITERATIONS)
        p2 = PassphrasePolicy(salt=b"\x02" * SALT_LENGTH, iterations=TEST_ITERATIONS)
        assert derive_key("u1", "pp-123456", p1).material != derive_key("u1", "pp-123456", p2).material

    def test_owner_changes_key(self, passphrase_policy):
        k1 = derive_key("u1", "same passphrase", passphrase_policy)
        k2 = derive_key("u2", "same passphrase", passphrase_policy)
        assert k1.material != k2.material

    def test_differs_from_silent(self, passphrase_policy, silent_policy):
        assert derive_key("u1", "u1", passphrase_policy).material != derive_key("u1", policy=silent_policy).material

    def test_missing_passphrase(self, passphrase_policy):
        with pytest.raises(InvalidInput):
            derive_key("u1", None, passphrase_policy)

    def test_empty_passphrase(self, passphrase_policy):
        with pytest.raises(InvalidInput):
            derive_key("u1", "", passphrase_policy)

    def test_short_salt_rejected(self):
        with pytest.raises(InvalidInput):
            PassphrasePolicy(salt=b"short")

    def test_salt_hidden_from_repr(self, passphrase_policy):
        assert "\\x01" not in repr(passphrase_policy)


class TestInputValidation:

    @pytest.mark.parametrize("owner_id", ["", None, 42])
    def test_invalid_owner_id(self, owner_id, silent_policy):
        with pytest.raises(InvalidInput):
            derive_key(owner_id, policy=silent_policy)

    def test_invalid_input_is_value_error(self, silent_policy):
        with pytest.raises(ValueError):
            derive_key("", policy=silent_policy)

    def test_unknown_policy(self):
        with pytest.raises(InvalidInput):
            derive_key("u1", policy=object())


class TestDerivedKey:

    def test_repr_hides_material(self, silent_policy):
        key = derive_key("u1", policy=silent_policy)
        assert key.material.hex() not in repr(key)
        assert "material" not in repr(key)

    def test_fingerprint(self, silent_policy):
        key = derive_key("u1", policy=silent_policy)
        assert len(key.fingerprint) == 8
        assert key.fingerprint == derive_key("u1", policy=silent_policy).fingerprint
        assert key.fingerprint != derive_key("u2", policy=silent_policy).fingerprint

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidInput):
            DerivedKey(material=b"short", owner_id="u1", policy=KeyPolicyKind.SILENT)

    def test_immutable(self, silent_policy):
        key = derive_key("u1", policy=silent_policy)
        with pytest.raises(AttributeError):
            key.owner_id = "u2"


class TestHelpers:

    def test_generate_salt_random(self):
        s1, s2 = generate_salt(), generate_salt()
        assert len(s1) == SALT_LENGTH
        assert s1 != s2

    def test_strength_short(self):
        ok, msg = check_passphrase_strength("short")
        assert not ok
        assert "8" in msg

    def test_strength_whitespace(self):
        ok, _ = check_passphrase_strength(" padded passphrase ")
        assert not ok

    def test_strength_ok(self):
        assert check_passphrase_strength("correct horse battery") == (True, "")
