"""
Incremental Sync Cache

An in-memory mirror of one YNAB listing endpoint, keyed by a correlation
field (Up account id for accounts, import id for transactions), plus the
cursor used to fetch only what changed since the last refresh.

Entries are never evicted. A refresh only layers newer server data on top.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Generic, Optional, TypeVar

from up_ynab_sync.sync.models import SyncCursor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncCache(Generic[T]):

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[str, T] = {}
        self._cursor = SyncCursor()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> SyncCursor:
        return self._cursor

    def get(self, key: str) -> Optional[T]:
        return self._entries.get(key)

    def insert(self, key: str, value: T) -> None:
        self._entries[key] = value

    def plan_window(
        self,
        today: date,
        default_days: int,
        relevant_date: Optional[date] = None,
    ) -> SyncCursor:
        """
        Cursor to use for the next refresh.

        The window starts at the remembered since-date, or ``default_days``
        before ``today`` on a cold cache. A relevant date earlier than that
        widens the window, and the knowledge token drops to 0 so the whole
        wider window is fetched again.
        """
        server_knowledge = self._cursor.server_knowledge
        since_date = self._cursor.since_date or today - timedelta(days=default_days)
        if relevant_date is not None and relevant_date < since_date:
            logger.info(f"Pushing back the {self.name} sync date to {relevant_date}")
            since_date = relevant_date
            server_knowledge = 0
        return SyncCursor(server_knowledge=server_knowledge, since_date=since_date)

    def advance(self, server_knowledge: int, since_date: Optional[date] = None) -> None:
        """Record the cursor returned by a completed refresh."""
        if self._cursor.since_date is not None:
            if since_date is None or since_date > self._cursor.since_date:
                since_date = self._cursor.since_date
        self._cursor = SyncCursor(server_knowledge=server_knowledge, since_date=since_date)

    def status(self) -> dict:
        return {
            "name": self.name,
            "entries": len(self._entries),
            "server_knowledge": self._cursor.server_knowledge,
            "since_date": self._cursor.since_date.isoformat() if self._cursor.since_date else None,
        }
