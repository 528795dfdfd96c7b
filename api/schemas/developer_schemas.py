"""Developer subscription and push registration schemas"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class VerifySubscriptionRequest(BaseModel):
    """Body of POST /api/developer/verify-subscription"""
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., alias="deviceId", min_length=1)
    email: EmailStr


class PushRegisterRequest(BaseModel):
    """Body of POST /api/push/register"""
    token: str = Field(..., min_length=1)
    enabled: bool
