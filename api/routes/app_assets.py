"""App asset (icon) routes"""

from typing import Optional

from fastapi import APIRouter, HTTPException, UploadFile, File, Depends, status

from api.dependencies import get_storage_gateway
from api.schemas.storage_schemas import IconBase64UploadRequest, AssetUrlRequest
from store.repository import StoreBackendError
from store.storage_gateway import StorageGateway, UploadRejectedError
from utils.logger import logger

router = APIRouter()


@router.post("/upload-base64", status_code=status.HTTP_201_CREATED)
async def upload_icon_base64(
    request: IconBase64UploadRequest,
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Upload an icon as base64 JSON"""
    try:
        result = storage.upload_icon_base64(request.file, request.filename, request.mime_type)
    except UploadRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except StoreBackendError as e:
        logger.error(f"App-assets upload error: {e}")
        raise HTTPException(status_code=500, detail="Storage upload failed. Please try again later.")

    return {"data": result}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_icon(
    file: Optional[UploadFile] = File(None),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Upload an icon as multipart/form-data (field "file")"""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    data = await file.read()
    try:
        result = storage.upload_icon(data, file.filename, file.content_type)
    except UploadRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except StoreBackendError as e:
        logger.error(f"App-assets upload error: {e}")
        raise HTTPException(status_code=500, detail={"error": "Upload failed", "details": str(e)})

    return {"data": result}


@router.post("/url")
async def get_asset_url(
    request: AssetUrlRequest,
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Long-lived (1 year) signed URL for an icon"""
    try:
        url = storage.icon_url(request.path)
    except StoreBackendError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to get URL", "details": str(e)})

    return {"data": {"url": url}}
