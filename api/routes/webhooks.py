"""
Webhook Routes

Stripe subscription lifecycle events. The raw body is needed for signature
verification, so the request is read directly instead of through a model.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request, Header

from api.dependencies import get_reconciler
from store.repository import StoreBackendError
from store.webhook_reconciler import (
    WebhookReconciler,
    WebhookAuthenticationError,
    WebhookNotConfiguredError,
)
from utils.logger import logger

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    """Handle customer.subscription.updated / customer.subscription.deleted"""
    body = await request.body()

    try:
        event = reconciler.authenticate(body, stripe_signature)
    except WebhookNotConfiguredError:
        logger.error("STRIPE_WEBHOOK_SECRET not set")
        raise HTTPException(status_code=500, detail="Webhook not configured")
    except WebhookAuthenticationError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook")

    try:
        outcome = reconciler.reconcile(event)
    except StoreBackendError as e:
        logger.error(f"Webhook update error: {e}")
        raise HTTPException(status_code=500, detail="Update failed")

    logger.debug(f"Stripe webhook {outcome.event_type}: {outcome.action.value}")
    return {"received": True}
