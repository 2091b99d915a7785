"""
Webhook Sync Service

Entry points used by the HTTP layer:
- handle_webhook: classify an Up delivery and reconcile it into YNAB
- provision_webhook: register the callback URL with Up for one connection
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from up_ynab_sync.config import Settings
from up_ynab_sync.exceptions import ConfigurationError
from up_ynab_sync.sync.classifier import EventClassifier
from up_ynab_sync.sync.connections import UpConnections, parse_connection
from up_ynab_sync.sync.engine import ReconciliationEngine
from up_ynab_sync.sync.ledger import YnabLedger
from up_ynab_sync.sync.models import Ignore
from up_ynab_sync.sync.provisioning import AccountProvisioner

logger = logging.getLogger(__name__)

WEBHOOK_DESCRIPTION = "up-ynab-sync {connection}"


class WebhookSyncService:
    """Process-wide holder of the Up connections and the cached YNAB ledger."""

    def __init__(self, settings: Settings, connections: UpConnections, ledger: YnabLedger):
        self.settings = settings
        self.connections = connections
        self.ledger = ledger
        self.classifier = EventClassifier(connections)
        self.provisioner = AccountProvisioner(ledger, connections)
        self.engine = ReconciliationEngine(ledger, self.provisioner, ledger.tz)
        self.started_at = datetime.now(timezone.utc)

    async def handle_webhook(self, body: bytes, signature: Optional[str], selector: Optional[str]) -> Dict[str, Any]:
        verdict = await self.classifier.classify(body, signature, selector)
        if isinstance(verdict, Ignore):
            return {"status": "ignored", "reason": verdict.reason}

        identity = await self.engine.reconcile(verdict.transaction, verdict.account)
        return {
            "status": "processed",
            "transaction_id": identity.id,
            "transfer_transaction_id": identity.transfer_transaction_id,
        }

    def callback_url(self, selector: str) -> str:
        return str(httpx.URL(self.settings.WEBHOOK_URL).copy_set_param("account", selector))

    async def provision_webhook(self, selector: Optional[str], replace_existing: bool = False) -> str:
        """
        Register a new Up webhook for a connection and return the operator message
        containing its secret.

        Raises:
            InvalidAccountBinding: selector is not primary/secondary
            ConfigurationError: WEBHOOK_URL missing, secret already set, or
                webhooks already registered without replace_existing
        """
        connection = parse_connection(selector)

        if not self.settings.WEBHOOK_URL:
            raise ConfigurationError("Environmental variable WEBHOOK_URL is missing.")

        secret_variable = self.settings.webhook_secret_variable(connection.value)
        _, configured_secret = self.settings.up_credentials(connection.value)
        if configured_secret:
            raise ConfigurationError(f"Environmental variable {secret_variable} is already set.")

        url = self.callback_url(connection.value)
        up = self.connections.client_for(connection)

        matching = [webhook for webhook in await up.list_webhooks() if webhook.url == url]
        if matching and not replace_existing:
            raise ConfigurationError(
                f"Found {len(matching)} existing webhooks using this url. "
                f"Delete them with replaceExisting=true"
            )
        for webhook in matching:
            logger.info(f"Deleting webhook: {webhook.id}")
            await up.delete_webhook(webhook.id)

        created = await up.create_webhook(url, WEBHOOK_DESCRIPTION.format(connection=connection.value))
        logger.info(f"Created webhook {created.id} for {connection.value}")
        return f"Save the secret as a variable in {secret_variable}: {created.secret_key}"

    def status(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "caches": self.ledger.status(),
        }
