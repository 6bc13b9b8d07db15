# Account Vault - Record Codec
#
# Applies the field cipher to the sensitive subset of a record:
#
#   encode(record, fields, key)  before store.write()
#   decode(record, fields, key)  after store.read()
#
# Only non-empty string values of the named fields are touched. Ids, owner
# ids, timestamps, nested objects and None pass through, and the key set and
# key order never change. The caller's mapping is copied, never mutated.
#
# decode is all-or-nothing: one undecryptable field fails the whole record.

from collections.abc import Mapping
from typing import Any, Callable, Dict, FrozenSet, Iterable, Union

from . import field_cipher
from .exceptions import DecryptionFailed, InvalidInput
from .key_derivation import DerivedKey
from ..records import RecordKind

FieldSpec = Union[RecordKind, Iterable[str]]


def resolve_fields(fields: FieldSpec) -> FrozenSet[str]:
    """Normalize a field spec (RecordKind or iterable of names) to a set."""
    if isinstance(fields, RecordKind):
        return fields.sensitive_fields
    if isinstance(fields, str):
        # A bare string would iterate per character
        return frozenset({fields})
    try:
        return frozenset(fields)
    except TypeError as e:
        raise InvalidInput(
            f"Fields must be a RecordKind or an iterable of names; got {type(fields).__name__}"
        ) from e


def _transform(
    record: Mapping,
    fields: FieldSpec,
    op: Callable[[str, str], str],
) -> Dict[str, Any]:
    if not isinstance(record, Mapping):
        raise InvalidInput(f"Record must be a mapping; got {type(record).__name__}")

    sensitive = resolve_fields(fields)
    out = dict(record)
    for name in out:
        value = out[name]
        if name in sensitive and isinstance(value, str) and value:
            out[name] = op(name, value)
    return out


def encode(record: Mapping, fields: FieldSpec, key: DerivedKey) -> Dict[str, Any]:
    """
    Encrypt the sensitive fields of a record.

    Args:
        record: Field name → value mapping
        fields: Sensitive field names, or a RecordKind
        key: Field key

    Returns:
        New dict with sensitive string values replaced by CipherTokens
    """
    return _transform(record, fields, lambda name, value: field_cipher.encrypt(value, key))


def decode(record: Mapping, fields: FieldSpec, key: DerivedKey) -> Dict[str, Any]:
    """
    Decrypt the sensitive fields of a record.

    Raises:
        DecryptionFailed: Any sensitive field fails to decrypt; ``.field``
            names the first one. No partially decoded record is returned.
    """
    def _decrypt(name: str, value: str) -> str:
        try:
            return field_cipher.decrypt(value, key)
        except DecryptionFailed as e:
            raise DecryptionFailed(f"Field '{name}': {e}", field=name) from e

    return _transform(record, fields, _decrypt)
