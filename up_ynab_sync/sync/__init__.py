"""
Up → YNAB Sync Module

- classifier: webhook authentication and skip rules
- engine: create/update of YNAB transactions, transfer clearing
- cache / ledger: incremental mirrors of YNAB accounts and transactions
- provisioning: YNAB accounts for Up accounts on first reference
- service: entry points for the HTTP layer
"""

from functools import lru_cache
from zoneinfo import ZoneInfo

from up_ynab_sync.clients import UpClient, YnabClient
from up_ynab_sync.config import Settings, get_settings
from up_ynab_sync.sync.connections import UpConnections
from up_ynab_sync.sync.ledger import YnabLedger
from up_ynab_sync.sync.service import WebhookSyncService


def build_sync_service(settings: Settings) -> WebhookSyncService:
    timeout = settings.HTTP_TIMEOUT_SECONDS
    connections = UpConnections(
        primary=UpClient(settings.UP_PRIMARY_TOKEN, settings.UP_PRIMARY_WEBHOOK, timeout=timeout),
        secondary=UpClient(settings.UP_SECONDARY_TOKEN, settings.UP_SECONDARY_WEBHOOK, timeout=timeout),
    )
    ledger = YnabLedger(
        YnabClient(settings.YNAB_TOKEN, settings.YNAB_BUDGET, timeout=timeout),
        tz=ZoneInfo(settings.SYNC_TIMEZONE),
        window_days=settings.SYNC_WINDOW_DAYS,
    )
    return WebhookSyncService(settings, connections, ledger)


@lru_cache()
def get_sync_service() -> WebhookSyncService:
    """Shared service; its caches live as long as the process."""
    return build_sync_service(get_settings())


__all__ = [
    'WebhookSyncService',
    'build_sync_service',
    'get_sync_service',
]
