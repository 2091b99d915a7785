"""Shared fixtures: fake Up connections and a YNAB ledger over a mocked client."""

import hashlib
import hmac
import json
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from up_ynab_sync.clients.up import (
    MoneyAmount,
    UpAccount,
    UpAccountType,
    UpClient,
    UpOwnershipType,
    UpTransaction,
)
from up_ynab_sync.clients.ynab import YnabClient
from up_ynab_sync.sync.connections import UpConnections
from up_ynab_sync.sync.ledger import YnabLedger

MELBOURNE = ZoneInfo("Australia/Melbourne")
PRIMARY_SECRET = "primary-webhook-secret"
SECONDARY_SECRET = "secondary-webhook-secret"


def make_transaction(
    id="t1",
    account_id="a1",
    amount=-1500,
    settled=True,
    description="Coffee",
    message=None,
    foreign_amount=None,
    transfer_account_id=None,
    created_at=None,
):
    return UpTransaction(
        id=id,
        account_id=account_id,
        created_at=created_at or datetime(2024, 3, 5, 14, 30, tzinfo=MELBOURNE),
        is_settled=settled,
        description=description,
        amount=MoneyAmount("AUD", f"{amount / 100:.2f}", amount),
        message=message,
        foreign_amount=foreign_amount,
        transfer_account_id=transfer_account_id,
    )


def make_account(id="a1", name="Spending", account_type=UpAccountType.TRANSACTIONAL, joint=False):
    return UpAccount(
        id=id,
        account_type=account_type,
        display_name=name,
        ownership_type=UpOwnershipType.JOINT if joint else UpOwnershipType.INDIVIDUAL,
    )


def webhook_body(event_type="TRANSACTION_CREATED", transaction_id="t1") -> bytes:
    event = {
        "data": {
            "type": "webhook-events",
            "id": "evt-1",
            "attributes": {"eventType": event_type, "createdAt": "2024-03-05T14:30:01+11:00"},
            "relationships": {
                "webhook": {"data": {"type": "webhooks", "id": "wh-1"}},
            },
        }
    }
    if transaction_id:
        event["data"]["relationships"]["transaction"] = {"data": {"type": "transactions", "id": transaction_id}}
    return json.dumps(event).encode("utf-8")


def sign(body: bytes, secret: str = PRIMARY_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class FakeYnab:
    """Side effects for a mocked YnabClient that hand out sequential ids."""

    def __init__(self):
        self.accounts_created = 0
        self.transactions_created = 0
        self.transfer_transaction_id = None
        self.echo_import_id = True

    async def create_account(self, name, account_type, note, balance=0):
        self.accounts_created += 1
        n = self.accounts_created
        return {"id": f"ynab-acc-{n}", "transfer_payee_id": f"payee-{n}", "name": name, "note": note}

    async def create_transaction(self, transaction):
        self.transactions_created += 1
        return {
            "id": f"ynab-txn-{self.transactions_created}",
            "import_id": transaction.import_id if self.echo_import_id else None,
            "transfer_transaction_id": self.transfer_transaction_id,
        }


@pytest.fixture
def fake_ynab():
    return FakeYnab()


@pytest.fixture
def ynab_client(fake_ynab):
    client = AsyncMock(spec=YnabClient)
    client.get_accounts.return_value = {"accounts": [], "server_knowledge": 5}
    client.get_transactions.return_value = {"transactions": [], "server_knowledge": 10}
    client.create_account.side_effect = fake_ynab.create_account
    client.create_transaction.side_effect = fake_ynab.create_transaction
    client.update_transaction.return_value = {}
    return client


@pytest.fixture
def ledger(ynab_client):
    return YnabLedger(ynab_client, tz=MELBOURNE, window_days=4)


@pytest.fixture
def connections():
    primary = UpClient("primary-token", PRIMARY_SECRET)
    secondary = UpClient("secondary-token", SECONDARY_SECRET)
    for client in (primary, secondary):
        client.get_transaction = AsyncMock()
        client.get_account = AsyncMock()
        client.list_webhooks = AsyncMock(return_value=[])
        client.create_webhook = AsyncMock()
        client.delete_webhook = AsyncMock()
    return UpConnections(primary=primary, secondary=secondary)
