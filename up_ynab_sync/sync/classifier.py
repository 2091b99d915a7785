"""
Webhook Event Classifier

Authenticates an Up webhook delivery and decides whether it needs
reconciling. Skip rules, in order:
1. Credit side of an internal transfer (the debit side carries the link)
2. Joint account seen through the secondary connection (primary handles it)
"""

import json
import logging
from typing import Optional

from up_ynab_sync.exceptions import InvalidSignature
from up_ynab_sync.sync.connections import UpConnections, parse_connection
from up_ynab_sync.sync.models import Classification, Connection, EventType, Ignore, Process

logger = logging.getLogger(__name__)

RECONCILED_EVENTS = {EventType.TRANSACTION_CREATED.value, EventType.TRANSACTION_SETTLED.value}


class EventClassifier:

    def __init__(self, connections: UpConnections):
        self.connections = connections

    async def classify(self, body: bytes, signature: Optional[str], selector: Optional[str]) -> Classification:
        """
        Raises:
            InvalidAccountBinding: selector is not primary/secondary
            InvalidSignature: signature missing or wrong
            RemoteCallFailure: fetching the transaction or account failed
        """
        connection = parse_connection(selector)
        up = self.connections.client_for(connection)

        if not up.verify_webhook_signature(body, signature):
            logger.error("Invalid signature.")
            raise InvalidSignature()

        try:
            event = json.loads(body)
            event_type = event["data"]["attributes"]["eventType"]
            transaction_id = None
            if event_type in RECONCILED_EVENTS:
                transaction_id = event["data"]["relationships"]["transaction"]["data"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Unreadable webhook body: {e}")
            return Ignore("unreadable event")

        if transaction_id is not None:
            return await self._classify_transaction(transaction_id, connection)

        if event_type == EventType.TRANSACTION_DELETED.value:
            logger.info("Transaction deleted.")
            return Ignore("transaction deleted")

        logger.info(f"Ignoring {event_type} event")
        return Ignore(f"unhandled event {event_type}")

    async def _classify_transaction(self, transaction_id: str, connection: Connection) -> Classification:
        up = self.connections.client_for(connection)
        transaction = await up.get_transaction(transaction_id)
        logger.info(f"Found transaction {transaction.id}", extra={"up_transaction": transaction.id})

        if transaction.transfer_account_id and transaction.amount.value_in_base_units > 0:
            logger.info("We only need to process one side of an internal transfer.")
            return Ignore("credit side of internal transfer")

        account = await up.get_account(transaction.account_id)
        if account.is_joint and connection is Connection.SECONDARY:
            logger.info("We will process this transaction using the primary account.")
            return Ignore("joint account handled by primary")

        return Process(transaction=transaction, account=account)
