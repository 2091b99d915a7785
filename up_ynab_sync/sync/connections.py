"""Binding between the connection selector and the two Up clients."""

import logging
from dataclasses import dataclass
from typing import Optional

from up_ynab_sync.clients.up import UpAccount, UpClient
from up_ynab_sync.exceptions import ConfigurationError, InvalidAccountBinding, RemoteCallFailure
from up_ynab_sync.sync.models import Connection

logger = logging.getLogger(__name__)


def parse_connection(selector: Optional[str]) -> Connection:
    if selector == Connection.PRIMARY.value:
        return Connection.PRIMARY
    if selector == Connection.SECONDARY.value:
        return Connection.SECONDARY
    raise InvalidAccountBinding(selector)


@dataclass
class UpConnections:
    primary: UpClient
    secondary: UpClient

    def client_for(self, connection: Connection) -> UpClient:
        if connection is Connection.PRIMARY:
            return self.primary
        return self.secondary

    async def find_account(self, account_id: str) -> UpAccount:
        """
        Fetch an Up account through whichever connection can see it.

        Transfers can point at accounts owned by the other person, so a
        failure on primary falls back to secondary.
        """
        try:
            return await self.primary.get_account(account_id)
        except (RemoteCallFailure, ConfigurationError) as e:
            logger.info(f"Account {account_id} not visible to primary ({e}), trying secondary")
            return await self.secondary.get_account(account_id)
