"""
Reconciliation Engine

Turns one Up transaction into the matching YNAB transaction:
- Known import id: refresh cleared state and amount only
- New import id: create with account, date, memo, payee (or transfer payee)
- Settled transfer: clear the linked YNAB transaction on the other side
"""

import logging
from datetime import tzinfo

from up_ynab_sync.clients.up import UpAccount, UpTransaction
from up_ynab_sync.clients.ynab import ClearedState, DestinationTransaction
from up_ynab_sync.exceptions import TransferPairingWarning
from up_ynab_sync.sentry_integration import capture_message
from up_ynab_sync.sync.ledger import YnabLedger
from up_ynab_sync.sync.locks import KeyedLocks
from up_ynab_sync.sync.models import TransactionIdentity, make_import_id
from up_ynab_sync.sync.provisioning import AccountProvisioner

logger = logging.getLogger(__name__)

# Up amounts are in cents, YNAB amounts in milliunits.
MILLIUNITS_PER_BASE_UNIT = 10


def to_milliunits(value_in_base_units: int) -> int:
    return value_in_base_units * MILLIUNITS_PER_BASE_UNIT


def cleared_state(transaction: UpTransaction) -> ClearedState:
    return ClearedState.CLEARED if transaction.is_settled else ClearedState.UNCLEARED


def build_memo(transaction: UpTransaction, tz: tzinfo) -> str:
    memo = transaction.created_at.astimezone(tz).strftime("%H:%M")
    if transaction.message:
        memo += f": {transaction.message}"
    if transaction.foreign_amount:
        memo += f" ({transaction.foreign_amount.currency_code} {transaction.foreign_amount.value})"
    return memo


class ReconciliationEngine:

    def __init__(self, ledger: YnabLedger, provisioner: AccountProvisioner, tz: tzinfo):
        self.ledger = ledger
        self.provisioner = provisioner
        self.tz = tz
        self._locks = KeyedLocks()

    async def reconcile(self, transaction: UpTransaction, account: UpAccount) -> TransactionIdentity:
        import_id = make_import_id(transaction.id)

        # Lookup and create must not interleave for the same import id.
        async with self._locks.hold(import_id):
            local_date = transaction.created_at.astimezone(self.tz).date()
            identity = await self.ledger.find_transaction(import_id, local_date)
            if identity is not None:
                await self._update_existing(identity, transaction)
            else:
                identity = await self._create_new(import_id, transaction, account)

        if identity.transfer_transaction_id and transaction.is_settled:
            logger.info(f"Clearing other side of transfer {identity.transfer_transaction_id}.")
            await self.ledger.update_transaction(
                identity.transfer_transaction_id,
                DestinationTransaction(cleared=ClearedState.CLEARED),
            )

        return identity

    async def _update_existing(self, identity: TransactionIdentity, transaction: UpTransaction) -> None:
        update = DestinationTransaction(
            cleared=cleared_state(transaction),
            amount=to_milliunits(transaction.amount.value_in_base_units),
        )
        logger.info(f"Updating transaction {identity.id}: {update.to_payload()}")
        await self.ledger.update_transaction(identity.id, update)

    async def _create_new(
        self,
        import_id: str,
        transaction: UpTransaction,
        account: UpAccount,
    ) -> TransactionIdentity:
        account_ref = await self.provisioner.resolve_destination_account(account)

        new = DestinationTransaction(
            cleared=cleared_state(transaction),
            amount=to_milliunits(transaction.amount.value_in_base_units),
            account_id=account_ref.account_id,
            date=transaction.created_at.astimezone(self.tz).date().isoformat(),
            import_id=import_id,
            memo=build_memo(transaction, self.tz),
            payee_name=transaction.description,
        )
        if transaction.transfer_account_id:
            # Transfers are identified by the other account's transfer payee.
            new.payee_id = await self.provisioner.resolve_transfer_payee(transaction.transfer_account_id)
            new.payee_name = None
            logger.info(f"transferAccount:{transaction.transfer_account_id} mapped to payee_id:{new.payee_id}")

        logger.info(f"Creating transaction {import_id}", extra={"ynab_transaction": new.to_payload()})
        identity = await self.ledger.create_transaction(new)

        if new.payee_id and not identity.transfer_transaction_id:
            warning = TransferPairingWarning(identity.id)
            logger.warning(f"WARNING: {warning}", extra={"warning": type(warning).__name__})
            capture_message(str(warning), level="warning", import_id=import_id)

        return identity
