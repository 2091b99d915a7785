"""
Account Provisioning

Mirrors Up accounts into YNAB the first time they are referenced, either as
the owner of a transaction or as the other side of a transfer.
"""

import logging

from up_ynab_sync.clients.up import UpAccount, UpAccountType
from up_ynab_sync.clients.ynab import ACCOUNT_NAME_MAX_LENGTH, YnabAccountType
from up_ynab_sync.sync.connections import UpConnections
from up_ynab_sync.sync.ledger import YnabLedger
from up_ynab_sync.sync.locks import KeyedLocks
from up_ynab_sync.sync.models import AccountRef

logger = logging.getLogger(__name__)


def ynab_account_type(account_type: UpAccountType) -> YnabAccountType:
    # Savers and home loans both land in savings; YNAB's loan types need extra setup.
    if account_type == UpAccountType.TRANSACTIONAL:
        return YnabAccountType.CHECKING
    return YnabAccountType.SAVINGS


def ynab_account_name(account: UpAccount) -> str:
    return f"Up: {account.display_name} ({account.id})"[:ACCOUNT_NAME_MAX_LENGTH]


class AccountProvisioner:
    """
    Find-or-create of YNAB accounts, serialized per Up account id so two
    deliveries touching the same new account create it only once.
    """

    def __init__(self, ledger: YnabLedger, connections: UpConnections):
        self.ledger = ledger
        self.connections = connections
        self._locks = KeyedLocks()

    async def resolve_destination_account(self, account: UpAccount) -> AccountRef:
        async with self._locks.hold(account.id):
            ref = await self.ledger.find_account(account.id)
            if ref is None:
                ref = await self.create_destination_account(account)
        return ref

    async def create_destination_account(self, account: UpAccount) -> AccountRef:
        return await self.ledger.create_account(
            name=ynab_account_name(account),
            account_type=ynab_account_type(account.account_type),
            up_account_id=account.id,
        )

    async def resolve_transfer_payee(self, up_account_id: str) -> str:
        """YNAB transfer payee id for the account on the other side of a transfer."""
        async with self._locks.hold(up_account_id):
            ref = await self.ledger.find_account(up_account_id)
            if ref is None:
                account = await self.connections.find_account(up_account_id)
                ref = await self.create_destination_account(account)
        return ref.transfer_payee_id
