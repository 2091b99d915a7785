"""
Up Webhook Router

Endpoints:
- POST /api/webhook?account=primary|secondary - Receive Up webhook deliveries
- GET /api/init?account=...&replaceExisting=... - Register the webhook with Up
- GET /api/sync/status - Cache cursor state

The webhook endpoint is public but protected by the
X-Up-Authenticity-Signature header. Failures talking to Up or YNAB are left
to the global exception handler so Up sees a 5xx and retries.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from up_ynab_sync.exceptions import ConfigurationError, InvalidAccountBinding, InvalidSignature
from up_ynab_sync.logging_config import clear_request_context, set_request_context
from up_ynab_sync.sentry_integration import set_tag
from up_ynab_sync.sync import WebhookSyncService, get_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Up Sync"])


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    account: Optional[str] = Query(None, description="Connection the webhook was registered on"),
    x_up_authenticity_signature: Optional[str] = Header(None, alias="X-Up-Authenticity-Signature"),
    service: WebhookSyncService = Depends(get_sync_service),
):
    """
    Receive an Up webhook event.

    **Returns:**
    - 403: unknown account or invalid signature
    - 200: event reconciled or deliberately ignored
    """
    set_request_context(request.headers.get("X-Request-ID"), account)
    set_tag("connection", account or "unknown")

    body = await request.body()
    logger.info(f"Webhook: {body.decode('utf-8', errors='replace')}")
    try:
        result = await service.handle_webhook(body, x_up_authenticity_signature, account)
    except InvalidAccountBinding as e:
        logger.error("ERROR: Invalid account.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except InvalidSignature as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    finally:
        clear_request_context()

    logger.info(f"Webhook result: {result['status']}", extra={"result": result})
    return result


@router.get("/init")
async def init_webhook(
    account: Optional[str] = Query(None, description="Connection to register the webhook on"),
    replace_existing: bool = Query(False, alias="replaceExisting"),
    service: WebhookSyncService = Depends(get_sync_service),
):
    """
    Register a new Up webhook pointing at WEBHOOK_URL.

    The response carries the webhook secret, which must be saved as
    UP_PRIMARY_WEBHOOK / UP_SECONDARY_WEBHOOK before deliveries are accepted.
    """
    try:
        message = await service.provision_webhook(account, replace_existing)
    except InvalidAccountBinding as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ConfigurationError as e:
        logger.error(f"Webhook provisioning refused: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {"message": message}


@router.get("/sync/status")
async def sync_status(service: WebhookSyncService = Depends(get_sync_service)):
    """Sizes and cursors of the YNAB caches held by this process."""
    return {
        "module": "up-ynab-sync",
        "status": "operational",
        **service.status(),
    }
