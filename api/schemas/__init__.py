"""Request/response schemas for the HTTP API"""

from .app_schemas import (
    SubmitAppRequest,
    DeleteAppRequest,
)
from .developer_schemas import (
    VerifySubscriptionRequest,
    PushRegisterRequest,
)
from .storage_schemas import (
    Base64UploadRequest,
    IconBase64UploadRequest,
    AssetUrlRequest,
    IpaDownloadRequest,
)

__all__ = [
    "SubmitAppRequest",
    "DeleteAppRequest",
    "VerifySubscriptionRequest",
    "PushRegisterRequest",
    "Base64UploadRequest",
    "IconBase64UploadRequest",
    "AssetUrlRequest",
    "IpaDownloadRequest",
]
