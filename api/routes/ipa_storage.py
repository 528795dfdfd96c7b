"""
IPA Storage Routes

Uploads go to the ipa-files bucket. Download links are short-lived and, when
the app is named, only handed out once the Review Gate allows it.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, UploadFile, File, Depends, status

from api.dependencies import get_app_service, get_storage_gateway
from api.schemas.storage_schemas import Base64UploadRequest, IpaDownloadRequest
from store.app_service import AppService, AppNotFoundError
from store.repository import StoreBackendError
from store.storage_gateway import StorageGateway, UploadRejectedError
from utils.logger import logger

router = APIRouter()


def _upload_failed(e: StoreBackendError) -> HTTPException:
    logger.error(f"IPA upload error: {e}")
    return HTTPException(
        status_code=500,
        detail={
            "error": "Storage upload failed. The server or storage service may be temporarily unavailable.",
            "details": str(e),
        },
    )


@router.post("/upload-base64", status_code=status.HTTP_201_CREATED)
async def upload_ipa_base64(
    request: Base64UploadRequest,
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Upload an IPA as base64 JSON (max 2GB decoded)"""
    try:
        result = storage.upload_ipa_base64(request.file, request.filename)
    except UploadRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except StoreBackendError as e:
        raise _upload_failed(e)

    return {"data": result}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_ipa(
    file: Optional[UploadFile] = File(None),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Upload an IPA as multipart/form-data (field "file")"""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    data = await file.read()
    try:
        result = storage.upload_ipa(data, file.filename)
    except UploadRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except StoreBackendError as e:
        raise _upload_failed(e)

    return {"data": result}


@router.post("/download")
async def get_download_url(
    request: IpaDownloadRequest,
    service: AppService = Depends(get_app_service),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """One-hour signed download link"""
    path = request.path

    if request.app_id:
        try:
            app = service.get_app(request.app_id)
        except AppNotFoundError:
            raise HTTPException(status_code=404, detail="App not found")
        except StoreBackendError as e:
            logger.error(f"App lookup failed for {request.app_id}: {e}")
            raise HTTPException(status_code=404, detail="App not found")

        state = service.review_state(app)
        if not state.can_download:
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "App is still under review",
                    "availabilityLabel": state.label,
                    "remainingSeconds": state.remaining_seconds,
                },
            )
        # a named app only ever unlocks its own IPA
        if path and path != app.ipa_path:
            raise HTTPException(status_code=400, detail="path does not belong to this app")
        path = app.ipa_path

    if not path:
        raise HTTPException(status_code=400, detail="path is required")

    try:
        result = storage.ipa_download_url(path)
    except StoreBackendError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to create download link", "details": str(e)},
        )

    return {"data": result}
