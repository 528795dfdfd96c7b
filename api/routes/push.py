"""Push token registration"""

from fastapi import APIRouter, HTTPException, Depends

from api.dependencies import get_backend, get_clock
from api.schemas.developer_schemas import PushRegisterRequest
from store.models import Clock
from store.repository import StoreBackend, StoreBackendError
from utils.logger import logger

router = APIRouter()


@router.post("/register")
async def register_push_token(
    request: PushRegisterRequest,
    backend: StoreBackend = Depends(get_backend),
    clock: Clock = Depends(get_clock),
):
    """Register or update an Expo push token (enabled=false opts out)"""
    try:
        backend.upsert_push_token(request.token, request.enabled, clock())
    except StoreBackendError as e:
        logger.error(f"Push register error: {e}")
        raise HTTPException(status_code=500, detail="Failed to register")

    return {"ok": True}
