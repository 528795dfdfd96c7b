"""Storage upload/download schemas"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Base64UploadRequest(BaseModel):
    """IPA upload as base64 JSON (avoids multipart issues on some clients)"""
    file: str = Field(..., min_length=1, description="Base64-encoded IPA")
    filename: Optional[str] = None


class IconBase64UploadRequest(BaseModel):
    """Icon upload as base64 JSON"""
    model_config = ConfigDict(populate_by_name=True)

    file: str = Field(..., min_length=1, description="Base64-encoded image")
    filename: str = "icon.jpg"
    mime_type: str = Field(default="image/jpeg", alias="mimeType")


class AssetUrlRequest(BaseModel):
    path: str = Field(..., min_length=1)


class IpaDownloadRequest(BaseModel):
    """
    Signed download link request.

    With appId the Review Gate is checked first and the app's own IPA path
    is used when path is omitted.
    """
    model_config = ConfigDict(populate_by_name=True)

    path: Optional[str] = None
    app_id: Optional[str] = Field(default=None, alias="appId")
