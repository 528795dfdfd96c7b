"""
Upload Admission Policy - decides whether a device may submit another app

Rules, in order:
1. No device id -> always allowed (anonymous/legacy submissions are never
   quota-limited).
2. Active subscription (period end strictly after now) -> allowed.
3. Otherwise allowed while the device's upload count is below the free limit.

The policy is a pure function over already-fetched state. Fetching and
persisting that state is the submission service's job.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from store.models import DeviceUsage, SubscriptionRecord

DEFAULT_FREE_UPLOAD_LIMIT = 5

SUBSCRIPTION_REQUIRED_CODE = "SUBSCRIPTION_REQUIRED"


class AdmissionReason(str, Enum):
    """Why a submission was admitted or refused"""
    ANONYMOUS = "anonymous"
    SUBSCRIBED = "subscribed"
    WITHIN_FREE_LIMIT = "within_free_limit"
    SUBSCRIPTION_REQUIRED = "subscription_required"


class SubscriptionRequiredError(Exception):
    """Raised when a device has used its free uploads and is not subscribed"""

    def __init__(self, device_id: str, upload_count: int, free_limit: int, price_label: str = "$10/month"):
        self.device_id = device_id
        self.upload_count = upload_count
        self.free_limit = free_limit
        self.code = SUBSCRIPTION_REQUIRED_CODE
        self.message = (
            f"You've used your {free_limit} free uploads. "
            f"Subscribe for {price_label} for unlimited uploads."
        )
        super().__init__(self.message)


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of evaluating the policy for one device"""
    allowed: bool
    reason: AdmissionReason
    upload_count: int = 0
    free_limit: int = DEFAULT_FREE_UPLOAD_LIMIT
    is_subscribed: bool = False

    def to_usage_dict(self) -> Dict[str, Any]:
        """Shape returned by GET /api/developer/usage"""
        return {
            "uploadCount": self.upload_count,
            "isSubscribed": self.is_subscribed,
            "freeLimit": self.free_limit,
            "canUpload": self.allowed,
        }


class AdmissionPolicy:
    """Free-tier quota with subscription override"""

    def __init__(self, free_upload_limit: int = DEFAULT_FREE_UPLOAD_LIMIT):
        if free_upload_limit < 0:
            raise ValueError("free_upload_limit must be non-negative")
        self.free_upload_limit = free_upload_limit

    @staticmethod
    def is_subscribed(subscription: Optional[SubscriptionRecord], now: datetime) -> bool:
        return subscription is not None and subscription.is_active(now)

    def evaluate(
        self,
        device_id: Optional[str],
        subscription: Optional[SubscriptionRecord],
        usage: Optional[DeviceUsage],
        now: datetime,
    ) -> AdmissionDecision:
        """
        Evaluate the policy.

        Args:
            device_id: Submitting device, or None for anonymous submissions
            subscription: The device's subscription record, if any
            usage: The device's usage ledger entry, if any
            now: Current time (injected for testability)

        Returns:
            AdmissionDecision
        """
        used = usage.upload_count if usage is not None else 0

        if not device_id:
            return AdmissionDecision(
                allowed=True,
                reason=AdmissionReason.ANONYMOUS,
                upload_count=0,
                free_limit=self.free_upload_limit,
            )

        if self.is_subscribed(subscription, now):
            return AdmissionDecision(
                allowed=True,
                reason=AdmissionReason.SUBSCRIBED,
                upload_count=used,
                free_limit=self.free_upload_limit,
                is_subscribed=True,
            )

        if used < self.free_upload_limit:
            return AdmissionDecision(
                allowed=True,
                reason=AdmissionReason.WITHIN_FREE_LIMIT,
                upload_count=used,
                free_limit=self.free_upload_limit,
            )

        return AdmissionDecision(
            allowed=False,
            reason=AdmissionReason.SUBSCRIPTION_REQUIRED,
            upload_count=used,
            free_limit=self.free_upload_limit,
        )
