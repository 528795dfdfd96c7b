"""
Developer API Routes

Free-tier usage for the developer portal and the "I've paid" flow that links
a Stripe subscription to a device by email.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from api.dependencies import get_app_service, get_verifier
from api.schemas.developer_schemas import VerifySubscriptionRequest
from store.app_service import AppService
from store.payment_provider import PaymentProviderError, PaymentProviderNotConfiguredError
from store.repository import StoreBackendError
from store.subscription_verifier import SubscriptionVerifier, SubscriptionNotFoundError
from utils.logger import logger

router = APIRouter()


@router.get("/usage")
async def get_usage(
    device_id: Optional[str] = Query(None, alias="deviceId"),
    service: AppService = Depends(get_app_service),
):
    """Upload count, subscription state and whether another upload is allowed"""
    if not device_id:
        raise HTTPException(status_code=400, detail="deviceId required")

    try:
        decision = service.check_admission(device_id)
    except StoreBackendError as e:
        logger.error(f"Usage lookup failed for device {device_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load usage")

    return {"data": decision.to_usage_dict()}


@router.post("/verify-subscription")
async def verify_subscription(
    request: VerifySubscriptionRequest,
    verifier: SubscriptionVerifier = Depends(get_verifier),
):
    """Attach the Stripe subscription paid with this email to the device"""
    try:
        result = verifier.verify(request.device_id, str(request.email))
    except PaymentProviderNotConfiguredError:
        raise HTTPException(status_code=503, detail="Subscription verification is not configured")
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except (PaymentProviderError, StoreBackendError) as e:
        logger.error(f"Verify subscription error: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify subscription")

    return {"data": result.to_dict()}
