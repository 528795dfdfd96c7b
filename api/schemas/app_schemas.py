"""App submission API schemas"""

from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from store.models import AppCategory, AppRecord, DeviceCompatibility


class SubmitAppRequest(BaseModel):
    """Body of POST /api/apps. Wire names are camelCase for the mobile client."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200, description="App name")
    description: str = Field(default="", max_length=5000)
    developer_name: str = Field(..., alias="developerName", min_length=1, max_length=200)
    version: str = Field(..., min_length=1, max_length=50)
    category: AppCategory
    ipa_path: str = Field(..., alias="ipaPath", min_length=1, description="Storage path returned by the IPA upload")
    device: DeviceCompatibility = DeviceCompatibility.BOTH
    icon_path: Optional[str] = Field(default=None, alias="iconPath", max_length=500)
    social_twitter: Optional[str] = Field(default=None, alias="socialTwitter", max_length=200)
    social_website: Optional[str] = Field(default=None, alias="socialWebsite")
    app_store_link: Optional[str] = Field(default=None, alias="appStoreLink")
    device_id: Optional[str] = Field(default=None, alias="deviceId", description="Submitting device, omitted for anonymous")

    @field_validator('social_website', 'app_store_link')
    @classmethod
    def validate_url_or_empty(cls, v):
        if not v:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError('Must be a valid URL')
        return v

    def to_record(self) -> AppRecord:
        """Draft record; id, status and created_at are assigned on submit"""
        return AppRecord(
            name=self.name,
            description=self.description or "",
            developer_name=self.developer_name,
            version=self.version,
            category=self.category,
            ipa_path=self.ipa_path,
            device=self.device,
            icon_path=self.icon_path or None,
            social_twitter=self.social_twitter or None,
            social_website=self.social_website or None,
            app_store_link=self.app_store_link or None,
            uploaded_by_device_id=self.device_id or None,
        )


class DeleteAppRequest(BaseModel):
    """Body of DELETE /api/apps/{id}"""
    model_config = ConfigDict(populate_by_name=True)

    device_id: Optional[str] = Field(default=None, alias="deviceId")
