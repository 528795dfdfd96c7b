"""
App Service - submission, catalog reads and owner-only deletes

Submission flow:
    admission check -> insert record (status pending) -> side effects

The insert is the primary operation; its failure fails the request. The
side effects (usage ledger increment, subscriber push, admin email) run after
the record exists, each on its own, and a failure in any of them is logged
and never reaches the client.
"""

from typing import Optional, List

from store.admission_policy import (
    AdmissionPolicy,
    AdmissionDecision,
    SubscriptionRequiredError,
)
from store.email_service import EmailService
from store.models import AppRecord, AppStatus, Clock, utc_now
from store.push_service import PushService
from store.repository import StoreBackend
from store.review_gate import ReviewGate, ReviewState
from utils.logger import logger

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100


class AppNotFoundError(Exception):
    """Raised when an app id does not exist"""

    def __init__(self, app_id: str):
        self.app_id = app_id
        super().__init__(f"App not found: {app_id}")


class NotAppOwnerError(Exception):
    """Raised when a device tries to delete an app it did not upload"""

    def __init__(self, app_id: str, device_id: str):
        self.app_id = app_id
        self.device_id = device_id
        super().__init__("Only the developer who uploaded this app can delete it")


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit <= 0:
        return DEFAULT_LIST_LIMIT
    return min(limit, MAX_LIST_LIMIT)


class AppService:
    """Request-scoped facade over the gating policy and the store"""

    def __init__(
        self,
        backend: StoreBackend,
        policy: AdmissionPolicy,
        gate: ReviewGate,
        push_service: Optional[PushService] = None,
        email_service: Optional[EmailService] = None,
        clock: Clock = utc_now,
        price_label: str = "$10/month",
    ):
        self.backend = backend
        self.policy = policy
        self.gate = gate
        self.push_service = push_service
        self.email_service = email_service
        self.clock = clock
        self.price_label = price_label

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_admission(self, device_id: Optional[str]) -> AdmissionDecision:
        """canSubmit(deviceId): fetch the device's state and run the policy"""
        now = self.clock()
        if not device_id:
            return self.policy.evaluate(None, None, None, now)

        # usage is read even for subscribers, the usage endpoint reports it
        subscription = self.backend.get_subscription(device_id)
        usage = self.backend.get_usage(device_id)
        return self.policy.evaluate(device_id, subscription, usage, now)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, draft: AppRecord) -> AppRecord:
        """
        Create a new app record if the submitting device is admitted.

        Raises:
            SubscriptionRequiredError: free uploads used up and not subscribed
            StoreBackendError: the record could not be created
        """
        device_id = draft.uploaded_by_device_id or None
        decision = self.check_admission(device_id)
        if not decision.allowed:
            logger.info(f"Submission refused for device {device_id}: {decision.upload_count} uploads used")
            raise SubscriptionRequiredError(
                device_id=device_id,
                upload_count=decision.upload_count,
                free_limit=decision.free_limit,
                price_label=self.price_label,
            )

        draft.uploaded_by_device_id = device_id
        draft.status = AppStatus.PENDING
        draft.created_at = self.clock()

        record = self.backend.insert_app(draft)
        logger.info(f"App submitted: {record.id} '{record.name}' (device={device_id or 'anonymous'})")

        if device_id:
            self._record_usage(device_id)
        await self._notify_subscribers(record)
        await self._notify_admin(record)

        return record

    def _record_usage(self, device_id: str) -> None:
        try:
            usage = self.backend.increment_upload_count(device_id, self.clock())
            logger.debug(f"Device {device_id} upload count is now {usage.upload_count}")
        except Exception as e:
            logger.error(f"Usage tracking error for device {device_id}: {e}")

    async def _notify_subscribers(self, record: AppRecord) -> None:
        if self.push_service is None:
            return
        try:
            tokens = self.backend.list_enabled_push_tokens()
            if tokens:
                await self.push_service.notify_new_app(
                    tokens, record.id, record.name, record.developer_name
                )
        except Exception as e:
            logger.error(f"Push notification error: {e}")

    async def _notify_admin(self, record: AppRecord) -> None:
        if self.email_service is None:
            return
        try:
            await self.email_service.send_app_pending_review(
                app_id=record.id,
                app_name=record.name,
                developer_name=record.developer_name,
                version=record.version,
                category=record.category.value,
            )
        except Exception as e:
            logger.error(f"Admin email error: {e}")

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_apps(
        self,
        status: Optional[str] = None,
        device_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AppRecord]:
        """
        Apps uploaded by a device (any status) or, without a device, apps in
        the requested status (default: approved and pending). Newest first.
        """
        if device_id:
            return self.backend.list_apps(device_id=device_id, limit=clamp_limit(limit))

        if status:
            try:
                statuses = [AppStatus(status)]
            except ValueError:
                return []
        else:
            statuses = [AppStatus.APPROVED, AppStatus.PENDING]

        return self.backend.list_apps(statuses=statuses, limit=clamp_limit(limit))

    def get_app(self, app_id: str) -> AppRecord:
        app = self.backend.get_app(app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return app

    def delete_app(self, app_id: str, device_id: str) -> None:
        """Owner-only delete. The device's upload count is not refunded."""
        app = self.get_app(app_id)
        if not app.is_owned_by(device_id):
            raise NotAppOwnerError(app_id, device_id)

        self.backend.delete_app(app_id)
        logger.info(f"App deleted: {app_id} by device {device_id}")

    def review_state(self, app: AppRecord) -> ReviewState:
        return self.gate.evaluate_app(app, self.clock())
