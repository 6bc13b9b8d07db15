"""Record kinds stored by the vault and their sensitive fields.

Each vault collection holds owner-scoped documents. Ids, the owner field and
the created/updated timestamps stay readable by the store (queries filter on
the owner); everything the user typed is encrypted before it is written.
"""

from enum import Enum
from typing import Dict, FrozenSet

# Non-sensitive fields common to every collection
OWNER_FIELD = "userId"
CREATED_FIELD = "createdAt"
UPDATED_FIELD = "updatedAt"


class RecordKind(str, Enum):
    """Vault collections, valued by their collection name in the record store."""

    BANK_DATA = "bankData"
    MAIL_ACCOUNTS = "gmailAccounts"
    OTHER_ACCOUNTS = "otherAccounts"

    @property
    def sensitive_fields(self) -> FrozenSet[str]:
        return SENSITIVE_FIELDS[self]


SENSITIVE_FIELDS: Dict[RecordKind, FrozenSet[str]] = {
    RecordKind.BANK_DATA: frozenset({
        "bankName",
        "firstName",
        "lastName",
        "idNumber",
        "accountType",
        "accountNumber",
    }),
    RecordKind.MAIL_ACCOUNTS: frozenset({"username", "password"}),
    RecordKind.OTHER_ACCOUNTS: frozenset({"platform", "username", "password"}),
}


def sensitive_fields_for(kind: str) -> FrozenSet[str]:
    """Sensitive field set for a collection name (e.g. ``"bankData"``).

    Raises:
        ValueError: Unknown collection name.
    """
    return RecordKind(kind).sensitive_fields
