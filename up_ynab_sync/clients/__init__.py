"""
API clients for the two ledgers:
- up: Up Bank (source ledger), one client per connection
- ynab: YNAB (destination ledger), one client per budget
"""

from .up import (
    UpClient,
    UpTransaction,
    UpAccount,
    UpWebhook,
    UpAccountType,
    UpOwnershipType,
    MoneyAmount,
)
from .ynab import (
    YnabClient,
    YnabAccountType,
    ClearedState,
    DestinationTransaction,
)

__all__ = [
    'UpClient',
    'UpTransaction',
    'UpAccount',
    'UpWebhook',
    'UpAccountType',
    'UpOwnershipType',
    'MoneyAmount',
    'YnabClient',
    'YnabAccountType',
    'ClearedState',
    'DestinationTransaction',
]
