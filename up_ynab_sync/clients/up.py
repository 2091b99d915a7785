"""
Up Bank API Client

Read access to transactions and accounts, webhook management, and
verification of the X-Up-Authenticity-Signature header.

API reference: https://developer.up.com.au/
"""

import hmac
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from up_ynab_sync.exceptions import ConfigurationError, RemoteCallFailure

logger = logging.getLogger(__name__)

UP_API_BASE = "https://api.up.com.au/api/v1"


class UpAccountType(str, Enum):
    TRANSACTIONAL = "TRANSACTIONAL"
    SAVER = "SAVER"
    HOME_LOAN = "HOME_LOAN"


class UpOwnershipType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    JOINT = "JOINT"


@dataclass(frozen=True)
class MoneyAmount:
    currency_code: str
    value: str
    value_in_base_units: int

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional["MoneyAmount"]:
        if not data:
            return None
        return cls(
            currency_code=data["currencyCode"],
            value=data["value"],
            value_in_base_units=int(data["valueInBaseUnits"]),
        )


@dataclass(frozen=True)
class UpTransaction:
    """A single Up transaction resource."""
    id: str
    account_id: str
    created_at: datetime
    is_settled: bool
    description: str
    amount: MoneyAmount
    message: Optional[str] = None
    foreign_amount: Optional[MoneyAmount] = None
    transfer_account_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UpTransaction":
        attributes = data["attributes"]
        relationships = data["relationships"]
        transfer = (relationships.get("transferAccount") or {}).get("data")
        return cls(
            id=data["id"],
            account_id=relationships["account"]["data"]["id"],
            created_at=datetime.fromisoformat(attributes["createdAt"]),
            is_settled=attributes["status"] == "SETTLED",
            description=attributes["description"],
            amount=MoneyAmount.from_api(attributes["amount"]),
            message=attributes.get("message") or None,
            foreign_amount=MoneyAmount.from_api(attributes.get("foreignAmount")),
            transfer_account_id=transfer["id"] if transfer else None,
        )


@dataclass(frozen=True)
class UpAccount:
    id: str
    account_type: UpAccountType
    display_name: str
    ownership_type: UpOwnershipType

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UpAccount":
        attributes = data["attributes"]
        return cls(
            id=data["id"],
            account_type=UpAccountType(attributes["accountType"]),
            display_name=attributes["displayName"],
            ownership_type=UpOwnershipType(attributes["ownershipType"]),
        )

    @property
    def is_joint(self) -> bool:
        return self.ownership_type == UpOwnershipType.JOINT


@dataclass(frozen=True)
class UpWebhook:
    id: str
    url: str
    description: Optional[str]
    created_at: datetime
    secret_key: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UpWebhook":
        attributes = data["attributes"]
        return cls(
            id=data["id"],
            url=attributes["url"],
            description=attributes.get("description"),
            created_at=datetime.fromisoformat(attributes["createdAt"]),
            secret_key=attributes.get("secretKey"),
        )


class UpClient:
    """
    Client for one Up connection (one personal access token).

    The webhook secret belongs to the connection as well, since Up issues
    one secret per registered webhook.
    """

    def __init__(
        self,
        api_key: str = "",
        webhook_secret: str = "",
        base_url: str = UP_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Up API key required.")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def full_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        headers = self.headers
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"Up request timed out: {method} {url}")
            raise RemoteCallFailure("up", None, "timed out")
        except httpx.RequestError as e:
            logger.error(f"Up request error: {e}")
            raise RemoteCallFailure("up", None, str(e))

        if not response.is_success:
            logger.error(f"Up returned {response.status_code} for {method} {url}")
            raise RemoteCallFailure("up", response.status_code, response.text)
        if not response.content:
            return None
        return response.json()

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("GET", self.full_url(endpoint), params=params)

    async def get_all_pages(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Follow ``links.next`` until the last page."""
        data: List[Dict[str, Any]] = []
        json = await self._request("GET", self.full_url(endpoint), params=params)
        while True:
            data.extend(json["data"])
            next_link = (json.get("links") or {}).get("next")
            if not next_link:
                return data
            json = await self._request("GET", next_link)

    async def get_transaction(self, transaction_id: str) -> UpTransaction:
        json = await self.get(f"transactions/{transaction_id}")
        return UpTransaction.from_api(json["data"])

    async def get_account(self, account_id: str) -> UpAccount:
        json = await self.get(f"accounts/{account_id}")
        return UpAccount.from_api(json["data"])

    async def list_webhooks(self) -> List[UpWebhook]:
        return [UpWebhook.from_api(item) for item in await self.get_all_pages("webhooks")]

    async def create_webhook(self, url: str, description: str) -> UpWebhook:
        payload = {"data": {"attributes": {"url": url, "description": description}}}
        json = await self._request("POST", self.full_url("webhooks"), payload=payload)
        return UpWebhook.from_api(json["data"])

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request("DELETE", self.full_url(f"webhooks/{webhook_id}"))

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Verify an Up webhook signature.

        Up signs the raw request body with HMAC-SHA256 keyed by the webhook's
        secret and sends the hex digest.
        """
        if not signature or not self.webhook_secret:
            return False

        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            body,
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(expected, signature)
