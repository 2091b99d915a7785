"""
Sync domain types.

Cache values (AccountRef, TransactionIdentity), the incremental sync cursor,
the connection selector and the classifier's verdicts.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union

from up_ynab_sync.clients.up import UpAccount, UpTransaction

IMPORT_ID_PREFIX = "up:"
EXTERNAL_REF_TAG = "upId:"
EXTERNAL_REF_PATTERN = re.compile(r"upId:([a-f0-9-]{36}\b)", re.IGNORECASE)


class Connection(str, Enum):
    """The two independently configured Up connections."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class EventType(str, Enum):
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    TRANSACTION_SETTLED = "TRANSACTION_SETTLED"
    TRANSACTION_DELETED = "TRANSACTION_DELETED"
    PING = "PING"


@dataclass(frozen=True)
class AccountRef:
    """YNAB account mirroring an Up account."""
    account_id: str
    transfer_payee_id: str
    external_ref: Optional[str] = None


@dataclass(frozen=True)
class TransactionIdentity:
    """YNAB transaction created for an Up transaction."""
    id: str
    transfer_transaction_id: Optional[str] = None


@dataclass(frozen=True)
class SyncCursor:
    """YNAB server knowledge plus the earliest date mirrored so far."""
    server_knowledge: int = 0
    since_date: Optional[date] = None


@dataclass(frozen=True)
class Ignore:
    reason: str


@dataclass(frozen=True)
class Process:
    transaction: UpTransaction
    account: UpAccount


Classification = Union[Ignore, Process]


def make_import_id(transaction_id: str) -> str:
    # Up ids are UUIDs; without dashes the id fits YNAB's 36 character limit.
    return IMPORT_ID_PREFIX + transaction_id.replace("-", "")


def format_external_ref(up_account_id: str) -> str:
    return f"{EXTERNAL_REF_TAG}{up_account_id}"


def parse_external_ref(note: Optional[str]) -> Optional[str]:
    """Up account id embedded in a YNAB account note, if any."""
    if not note:
        return None
    match = EXTERNAL_REF_PATTERN.search(note)
    return match.group(1) if match else None
