"""
Unit Tests for the reconciliation engine

Tests:
- New standalone debit (account + transaction creation)
- Duplicate delivery resolves to an update
- Transfer pairs and settlement propagation
- Memo formatting
- Serialized handling of concurrent deliveries

Run with: pytest tests/test_reconciliation_engine.py -v
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx
import pytest

from conftest import MELBOURNE, PRIMARY_SECRET, make_account, make_transaction
from up_ynab_sync.clients.up import MoneyAmount, UpAccountType, UpClient
from up_ynab_sync.clients.ynab import ClearedState, DestinationTransaction, YnabAccountType
from up_ynab_sync.exceptions import RemoteCallFailure
from up_ynab_sync.sync.engine import ReconciliationEngine, build_memo, to_milliunits
from up_ynab_sync.sync.models import TransactionIdentity
from up_ynab_sync.sync.provisioning import AccountProvisioner


@pytest.fixture
def engine(ledger, connections):
    return ReconciliationEngine(ledger, AccountProvisioner(ledger, connections), MELBOURNE)


def created_transaction(ynab_client) -> DestinationTransaction:
    return ynab_client.create_transaction.call_args.args[0]


class TestNewTransaction:

    @pytest.mark.asyncio
    async def test_standalone_debit(self, engine, ynab_client):
        identity = await engine.reconcile(make_transaction(), make_account())

        assert identity == TransactionIdentity(id="ynab-txn-1")
        ynab_client.create_account.assert_called_once()
        assert ynab_client.create_account.call_args.kwargs["account_type"] == YnabAccountType.CHECKING

        sent = created_transaction(ynab_client)
        assert sent.amount == -15000
        assert sent.cleared == ClearedState.CLEARED
        assert sent.payee_name == "Coffee"
        assert sent.payee_id is None
        assert sent.import_id == "up:t1"
        assert sent.account_id == "ynab-acc-1"
        assert sent.date == "2024-03-05"
        assert sent.memo == "14:30"
        ynab_client.update_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_transaction_is_uncleared(self, engine, ynab_client):
        await engine.reconcile(make_transaction(settled=False), make_account())

        assert created_transaction(ynab_client).cleared == ClearedState.UNCLEARED

    @pytest.mark.asyncio
    async def test_date_uses_local_timezone(self, engine, ynab_client):
        # 23:30 UTC on the 4th is the morning of the 5th in Melbourne.
        utc = datetime(2024, 3, 4, 23, 30, tzinfo=timezone.utc)

        await engine.reconcile(make_transaction(created_at=utc), make_account())

        sent = created_transaction(ynab_client)
        assert sent.date == "2024-03-05"
        assert sent.memo == "10:30"

    @pytest.mark.asyncio
    async def test_existing_account_is_reused(self, engine, ledger, ynab_client):
        await ledger.create_account("Up: Spending (a1)", YnabAccountType.CHECKING, "a1")
        ynab_client.create_account.reset_mock()

        await engine.reconcile(make_transaction(), make_account())

        ynab_client.create_account.assert_not_called()
        assert created_transaction(ynab_client).account_id == "ynab-acc-1"


class TestDuplicateDelivery:

    @pytest.mark.asyncio
    async def test_second_delivery_updates_only(self, engine, ynab_client):
        first = await engine.reconcile(make_transaction(), make_account())
        second = await engine.reconcile(make_transaction(), make_account())

        assert first == second
        assert ynab_client.create_transaction.call_count == 1
        ynab_client.update_transaction.assert_called_once()
        transaction_id, update = ynab_client.update_transaction.call_args.args
        assert transaction_id == "ynab-txn-1"
        assert update.to_payload() == {"cleared": "cleared", "amount": -15000}

    @pytest.mark.asyncio
    async def test_settlement_updates_amount_and_cleared(self, engine, ledger, ynab_client):
        ledger.transactions.insert("up:t1", TransactionIdentity("ynab-existing"))

        await engine.reconcile(make_transaction(amount=-1650, settled=True), make_account())

        transaction_id, update = ynab_client.update_transaction.call_args.args
        assert transaction_id == "ynab-existing"
        assert update.to_payload() == {"cleared": "cleared", "amount": -16500}
        ynab_client.create_transaction.assert_not_called()
        ynab_client.create_account.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_transaction_found_in_ynab(self, engine, ynab_client):
        ynab_client.get_transactions.return_value = {
            "transactions": [{"id": "ynab-from-server", "import_id": "up:t1"}],
            "server_knowledge": 12,
        }

        identity = await engine.reconcile(make_transaction(), make_account())

        assert identity.id == "ynab-from-server"
        ynab_client.create_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_create_once(self, engine, ynab_client):
        async def slow_listing(since_date, knowledge):
            await asyncio.sleep(0)
            return {"transactions": [], "server_knowledge": 10}

        ynab_client.get_transactions.side_effect = slow_listing

        results = await asyncio.gather(
            engine.reconcile(make_transaction(), make_account()),
            engine.reconcile(make_transaction(), make_account()),
        )

        assert results[0] == results[1]
        assert ynab_client.create_transaction.call_count == 1
        assert len(engine._locks) == 0


class TestTransfers:

    @pytest.mark.asyncio
    async def test_transfer_uses_counterpart_payee(self, engine, connections, ynab_client, fake_ynab):
        fake_ynab.transfer_transaction_id = "ynab-other-side"
        connections.primary.get_account.return_value = make_account("a2", "Savings", UpAccountType.SAVER)

        await engine.reconcile(make_transaction(amount=-500, transfer_account_id="a2"), make_account())

        sent = created_transaction(ynab_client)
        assert sent.payee_id == "payee-2"
        assert sent.payee_name is None
        second_account = ynab_client.create_account.call_args_list[1].kwargs
        assert second_account["account_type"] == YnabAccountType.SAVINGS
        assert second_account["note"] == "upId:a2"

    @pytest.mark.asyncio
    async def test_settled_transfer_clears_other_side(self, engine, connections, ynab_client, fake_ynab):
        fake_ynab.transfer_transaction_id = "ynab-other-side"
        connections.primary.get_account.return_value = make_account("a2", "Savings", UpAccountType.SAVER)

        identity = await engine.reconcile(make_transaction(amount=-500, transfer_account_id="a2"), make_account())

        assert identity.transfer_transaction_id == "ynab-other-side"
        transaction_id, update = ynab_client.update_transaction.call_args.args
        assert transaction_id == "ynab-other-side"
        assert update.to_payload() == {"cleared": "cleared"}

    @pytest.mark.asyncio
    async def test_pending_transfer_leaves_other_side(self, engine, connections, ynab_client, fake_ynab):
        fake_ynab.transfer_transaction_id = "ynab-other-side"
        connections.primary.get_account.return_value = make_account("a2", "Savings", UpAccountType.SAVER)

        await engine.reconcile(
            make_transaction(amount=-500, settled=False, transfer_account_id="a2"), make_account()
        )

        ynab_client.update_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_later_settlement_clears_other_side(self, engine, ledger, ynab_client):
        ledger.transactions.insert("up:t1", TransactionIdentity("ynab-txn", "ynab-other-side"))

        await engine.reconcile(make_transaction(amount=-500, transfer_account_id="a2"), make_account())

        calls = [call.args for call in ynab_client.update_transaction.call_args_list]
        assert [transaction_id for transaction_id, _ in calls] == ["ynab-txn", "ynab-other-side"]
        assert calls[1][1].to_payload() == {"cleared": "cleared"}

    @pytest.mark.asyncio
    async def test_unpaired_transfer_is_only_a_warning(self, engine, connections, ynab_client, caplog):
        connections.primary.get_account.return_value = make_account("a2", "Savings", UpAccountType.SAVER)

        with caplog.at_level(logging.WARNING):
            identity = await engine.reconcile(
                make_transaction(amount=-500, transfer_account_id="a2"), make_account()
            )

        assert identity.transfer_transaction_id is None
        assert "Transaction ynab-txn-1 hasn't been created as a transfer." in caplog.text
        assert [r.warning for r in caplog.records if hasattr(r, "warning")] == ["TransferPairingWarning"]
        ynab_client.update_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_counterpart_from_secondary_connection(self, engine, connections, ynab_client):
        connections.primary.get_account.side_effect = RemoteCallFailure("up", 404, "not found")
        connections.secondary.get_account.return_value = make_account("a2", "Partner", UpAccountType.TRANSACTIONAL)

        await engine.reconcile(make_transaction(amount=-500, transfer_account_id="a2"), make_account())

        connections.secondary.get_account.assert_called_once_with("a2")
        assert created_transaction(ynab_client).payee_id == "payee-2"

    @pytest.mark.asyncio
    async def test_counterpart_from_secondary_when_primary_unreachable(self, engine, connections, ynab_client):
        def unreachable(request):
            raise httpx.ConnectError("primary unreachable", request=request)

        connections.primary = UpClient("primary-token", PRIMARY_SECRET, transport=httpx.MockTransport(unreachable))
        connections.secondary.get_account.return_value = make_account("a2", "Partner", UpAccountType.TRANSACTIONAL)

        await engine.reconcile(make_transaction(amount=-500, transfer_account_id="a2"), make_account())

        connections.secondary.get_account.assert_called_once_with("a2")
        assert created_transaction(ynab_client).payee_id == "payee-2"


class TestMemo:

    def test_time_only(self):
        assert build_memo(make_transaction(), MELBOURNE) == "14:30"

    def test_with_message(self):
        memo = build_memo(make_transaction(message="Rent share"), MELBOURNE)

        assert memo == "14:30: Rent share"

    def test_with_foreign_amount(self):
        foreign = MoneyAmount("USD", "-10.00", -1000)

        memo = build_memo(make_transaction(message="Books", foreign_amount=foreign), MELBOURNE)

        assert memo == "14:30: Books (USD -10.00)"

    def test_milliunits(self):
        assert to_milliunits(-1500) == -15000
        assert to_milliunits(0) == 0
