"""
App API Routes

Submission (admission checked), catalog listing and owner-only deletes.
Every item returned to the client carries the Review Gate fields computed
at read time.
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, HTTPException, Depends, Query, status

from api.dependencies import get_app_service, get_storage_gateway
from api.schemas.app_schemas import SubmitAppRequest, DeleteAppRequest
from store.admission_policy import SubscriptionRequiredError
from store.app_service import AppService, AppNotFoundError, NotAppOwnerError
from store.models import AppRecord, format_timestamp
from store.repository import StoreBackendError
from store.storage_gateway import StorageGateway
from utils.logger import logger

router = APIRouter()


def to_ipa_app(app: AppRecord, service: AppService, storage: StorageGateway) -> Dict[str, Any]:
    """Shape an app record the way the mobile client renders it"""
    created_at = format_timestamp(app.created_at) or ""
    item = {
        "id": app.id,
        "name": app.name,
        "developerName": app.developer_name,
        "icon": storage.icon_display_url(app.icon_path),
        "description": app.description or "",
        "version": app.version,
        "size": "-",
        "category": app.category.value,
        "downloads": 0,
        "rating": 0,
        "ipaUrl": "",
        "ipaPath": app.ipa_path or None,
        "device": app.device.value,
        "screenshots": [],
        "iosVersionRequired": "14.0",
        "lastUpdated": created_at,
        "status": app.status.value,
        "createdAt": created_at,
        "socialLinks": None,
        "appStoreLink": app.app_store_link,
    }
    if app.social_twitter or app.social_website:
        item["socialLinks"] = {
            "twitter": app.social_twitter,
            "website": app.social_website,
        }

    item.update(service.review_state(app).to_dict())
    return item


# ============================================================================
# Submission
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_app(
    request: SubmitAppRequest,
    service: AppService = Depends(get_app_service),
):
    """Submit a new app. New apps start in review."""
    try:
        record = await service.submit(request.to_record())
    except SubscriptionRequiredError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"error": "Subscription required", "code": e.code, "message": e.message},
        )
    except StoreBackendError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to submit app", "details": str(e)},
        )

    return {
        "data": {
            "id": record.id,
            "name": record.name,
            "status": record.status.value,
            "created_at": format_timestamp(record.created_at),
        }
    }


# ============================================================================
# Catalog
# ============================================================================

@router.get("")
async def list_apps(
    status_filter: Optional[str] = Query(None, alias="status"),
    device_id: Optional[str] = Query(None, alias="deviceId"),
    limit: Optional[int] = Query(None),
    service: AppService = Depends(get_app_service),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """List store apps (approved and pending by default) or a device's uploads"""
    try:
        apps = service.list_apps(status=status_filter, device_id=device_id, limit=limit)
    except StoreBackendError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to list apps", "details": str(e)})

    return {"data": [to_ipa_app(app, service, storage) for app in apps]}


@router.get("/{app_id}")
async def get_app(
    app_id: str,
    device_id: Optional[str] = Query(None, alias="deviceId"),
    service: AppService = Depends(get_app_service),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Get a single app; canDelete tells the uploader's device it may delete it"""
    try:
        app = service.get_app(app_id)
    except AppNotFoundError:
        raise HTTPException(status_code=404, detail="App not found")
    except StoreBackendError as e:
        logger.error(f"App lookup failed for {app_id}: {e}")
        raise HTTPException(status_code=404, detail="App not found")

    data = to_ipa_app(app, service, storage)
    data["canDelete"] = app.is_owned_by(device_id)
    return {"data": data}


@router.delete("/{app_id}")
async def delete_app(
    app_id: str,
    request: Optional[DeleteAppRequest] = None,
    service: AppService = Depends(get_app_service),
):
    """Delete an app. Only the device that uploaded it may do so."""
    device_id = request.device_id if request else None
    if not device_id:
        raise HTTPException(status_code=400, detail="deviceId required")

    try:
        service.delete_app(app_id, device_id)
    except AppNotFoundError:
        raise HTTPException(status_code=404, detail="App not found")
    except NotAppOwnerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreBackendError as e:
        logger.error(f"App delete error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete app")

    return {"data": {"deleted": True}}
