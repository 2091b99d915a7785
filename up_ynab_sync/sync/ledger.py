"""
YNAB ledger with read-through / write-through caches.

Owns the YNAB client and the two sync caches. Lookups refresh the relevant
cache from YNAB's delta endpoints on a miss; creations write the new mapping
straight into the cache.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Optional

from up_ynab_sync.clients.ynab import DestinationTransaction, YnabAccountType, YnabClient
from up_ynab_sync.sync.cache import SyncCache
from up_ynab_sync.sync.models import (
    AccountRef,
    TransactionIdentity,
    format_external_ref,
    parse_external_ref,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 4


class YnabLedger:

    def __init__(self, client: YnabClient, tz: tzinfo, window_days: int = DEFAULT_WINDOW_DAYS):
        self.client = client
        self.tz = tz
        self.window_days = window_days
        self.accounts: SyncCache[AccountRef] = SyncCache("account")
        self.transactions: SyncCache[TransactionIdentity] = SyncCache("transaction")

    def today(self) -> date:
        return datetime.now(self.tz).date()

    # ==================== ACCOUNTS ====================

    async def find_account(self, up_account_id: str) -> Optional[AccountRef]:
        """YNAB account linked to ``up_account_id``, refreshing the cache on a miss."""
        if up_account_id not in self.accounts:
            await self.refresh_accounts()
        return self.accounts.get(up_account_id)

    async def refresh_accounts(self) -> None:
        # The accounts endpoint has no date filter; only the knowledge token applies.
        cursor = self.accounts.cursor
        logger.info("Updating ynab account cache")
        data = await self.client.get_accounts(cursor.server_knowledge)

        added = 0
        for account in data["accounts"]:
            if account.get("deleted"):
                continue
            up_account_id = parse_external_ref(account.get("note"))
            if up_account_id:
                self.accounts.insert(up_account_id, AccountRef(
                    account_id=account["id"],
                    transfer_payee_id=account["transfer_payee_id"],
                    external_ref=up_account_id,
                ))
                added += 1

        self.accounts.advance(data["server_knowledge"])
        logger.debug(f"Account cache refreshed: {added} linked accounts, knowledge {data['server_knowledge']}")

    async def create_account(
        self,
        name: str,
        account_type: YnabAccountType,
        up_account_id: str,
        balance: int = 0,
    ) -> AccountRef:
        account = await self.client.create_account(
            name=name,
            account_type=account_type,
            note=format_external_ref(up_account_id),
            balance=balance,
        )
        ref = AccountRef(
            account_id=account["id"],
            transfer_payee_id=account["transfer_payee_id"],
            external_ref=up_account_id,
        )
        self.accounts.insert(up_account_id, ref)
        logger.info(f"Created ynab account {ref.account_id} for up account {up_account_id}")
        return ref

    # ==================== TRANSACTIONS ====================

    async def find_transaction(
        self,
        import_id: str,
        transaction_date: Optional[date] = None,
    ) -> Optional[TransactionIdentity]:
        """
        YNAB transaction carrying ``import_id``.

        ``transaction_date`` widens the mirrored window when the transaction
        is older than anything synced so far.
        """
        if import_id not in self.transactions:
            await self.refresh_transactions(transaction_date)
        return self.transactions.get(import_id)

    async def refresh_transactions(self, relevant_date: Optional[date] = None) -> None:
        cursor = self.transactions.plan_window(self.today(), self.window_days, relevant_date)
        logger.info("Updating ynab transaction cache")
        data = await self.client.get_transactions(cursor.since_date, cursor.server_knowledge)

        added = 0
        for transaction in data["transactions"]:
            if transaction.get("deleted") or not transaction.get("import_id"):
                continue
            self.transactions.insert(transaction["import_id"], TransactionIdentity(
                id=transaction["id"],
                transfer_transaction_id=transaction.get("transfer_transaction_id"),
            ))
            added += 1

        self.transactions.advance(data["server_knowledge"], cursor.since_date)
        logger.debug(f"Transaction cache refreshed: {added} imported transactions since {cursor.since_date}")

    async def create_transaction(self, transaction: DestinationTransaction) -> TransactionIdentity:
        created = await self.client.create_transaction(transaction)
        identity = TransactionIdentity(
            id=created["id"],
            transfer_transaction_id=created.get("transfer_transaction_id"),
        )
        import_id = created.get("import_id")
        if import_id:
            logger.info(f"Adding {import_id} to transaction cache.")
            self.transactions.insert(import_id, identity)
        return identity

    async def update_transaction(self, transaction_id: str, transaction: DestinationTransaction) -> None:
        await self.client.update_transaction(transaction_id, transaction)

    def status(self) -> dict:
        return {
            "accounts": self.accounts.status(),
            "transactions": self.transactions.status(),
        }
