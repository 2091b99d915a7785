"""
YNAB API Client

Thin async wrapper over the budget-scoped YNAB endpoints used by the sync:
delta listing of accounts and transactions, account creation, and
transaction creation/update.

API reference: https://api.ynab.com/
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from up_ynab_sync.exceptions import ConfigurationError, RemoteCallFailure

logger = logging.getLogger(__name__)

YNAB_API_BASE = "https://api.ynab.com/v1"
ACCOUNT_NAME_MAX_LENGTH = 50


class YnabAccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CASH = "cash"
    CREDIT_CARD = "creditCard"
    LINE_OF_CREDIT = "lineOfCredit"
    OTHER_ASSET = "otherAsset"
    OTHER_LIABILITY = "otherLiability"
    MORTGAGE = "mortgage"
    AUTO_LOAN = "autoLoan"
    STUDENT_LOAN = "studentLoan"
    PERSONAL_LOAN = "personalLoan"
    MEDICAL_DEBT = "medicalDebt"
    OTHER_DEBT = "otherDebt"


class ClearedState(str, Enum):
    CLEARED = "cleared"
    UNCLEARED = "uncleared"
    RECONCILED = "reconciled"


@dataclass
class DestinationTransaction:
    """
    Transaction fields sent to YNAB.

    Only ``cleared`` is mandatory; updates send just the fields that are set.
    """
    cleared: ClearedState
    amount: Optional[int] = None
    account_id: Optional[str] = None
    date: Optional[str] = None
    import_id: Optional[str] = None
    memo: Optional[str] = None
    payee_id: Optional[str] = None
    payee_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return remove_empty_properties(asdict(self))


def remove_empty_properties(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None and empty-string values so partial updates leave them untouched."""
    result = {}
    for key, value in data.items():
        if value is None or value == "":
            continue
        result[key] = value.value if isinstance(value, Enum) else value
    return result


class YnabClient:
    """Client for a single YNAB budget."""

    def __init__(
        self,
        api_key: str = "",
        budget_id: str = "",
        base_url: str = YNAB_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key or not budget_id:
            raise ConfigurationError("YNAB api key and budget id are both required.")
        self.api_key = api_key
        self.budget_id = budget_id
        self.base_url = f"{base_url.rstrip('/')}/budgets/{budget_id}"
        self.timeout = timeout
        self._transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=payload, headers=self.headers)
        except httpx.TimeoutException:
            logger.error(f"YNAB request timed out: {method} {endpoint}")
            raise RemoteCallFailure("ynab", None, "timed out")
        except httpx.RequestError as e:
            logger.error(f"YNAB request error: {e}")
            raise RemoteCallFailure("ynab", None, str(e))

        if not response.is_success:
            logger.error(f"YNAB returned {response.status_code} for {method} {endpoint}")
            raise RemoteCallFailure("ynab", response.status_code, response.text)
        return response.json()

    async def get_accounts(self, last_knowledge_of_server: int = 0) -> Dict[str, Any]:
        """Accounts changed since ``last_knowledge_of_server``: ``{accounts, server_knowledge}``."""
        json = await self._request(
            "GET", "accounts",
            params={"last_knowledge_of_server": last_knowledge_of_server},
        )
        return json["data"]

    async def get_transactions(self, since_date: date, last_knowledge_of_server: int = 0) -> Dict[str, Any]:
        """Transactions on or after ``since_date`` changed since the knowledge token."""
        json = await self._request(
            "GET", "transactions",
            params={
                "since_date": since_date.isoformat(),
                "last_knowledge_of_server": last_knowledge_of_server,
            },
        )
        return json["data"]

    async def create_account(
        self,
        name: str,
        account_type: YnabAccountType,
        note: str,
        balance: int = 0,
    ) -> Dict[str, Any]:
        payload = {
            "account": {
                "name": name[:ACCOUNT_NAME_MAX_LENGTH],
                "type": account_type.value,
                "balance": balance,
                "note": note,
            }
        }
        json = await self._request("POST", "accounts", payload=payload)
        return json["data"]["account"]

    async def create_transaction(self, transaction: DestinationTransaction) -> Dict[str, Any]:
        json = await self._request("POST", "transactions", payload={"transaction": transaction.to_payload()})
        return json["data"]["transaction"]

    async def update_transaction(self, transaction_id: str, transaction: DestinationTransaction) -> Dict[str, Any]:
        json = await self._request(
            "PUT", f"transactions/{transaction_id}",
            payload={"transaction": transaction.to_payload()},
        )
        return json["data"]["transaction"]
