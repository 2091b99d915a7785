"""
Sync error taxonomy.

InvalidAccountBinding and InvalidSignature end a webhook delivery with 403.
RemoteCallFailure propagates out of the delivery and surfaces as a 500.
TransferPairingWarning is only ever logged.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for reconciliation errors."""
    pass


class InvalidAccountBinding(SyncError):
    """The connection selector is neither ``primary`` nor ``secondary``."""

    def __init__(self, selector: Optional[str]):
        self.selector = selector
        super().__init__("Invalid account")


class InvalidSignature(SyncError):
    """The webhook authenticity signature did not verify."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class ConfigurationError(SyncError):
    """Required configuration is missing or already set."""
    pass


class RemoteCallFailure(SyncError):
    """
    A failed call to the Up or YNAB API.

    ``status_code`` is None when no response arrived (timeout or connection error).
    """

    def __init__(self, service: str, status_code: Optional[int], body: str):
        self.service = service
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"{service} request failed: {body}")
        else:
            super().__init__(f"{service} {status_code}: {body}")


class TransferPairingWarning(UserWarning):
    """YNAB did not link a transaction created with a transfer payee to its other side."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} hasn't been created as a transfer.")
