"""
Subscription Verification - links a paid Stripe subscription to a device

The user pays on Stripe's hosted page, then enters the email they paid with.
We find the customer for that email, pick its first active subscription in
Stripe's order and upsert the device's subscription record.

Re-verifying a device with a different email moves the device to the new
customer (last verification wins). That is logged, not rejected.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any

from store.models import SubscriptionRecord, Clock, utc_now, format_timestamp
from store.payment_provider import PaymentProvider, PaymentProviderNotConfiguredError
from store.repository import StoreBackend
from utils.logger import logger


class SubscriptionNotFoundError(Exception):
    """Raised when no customer or no active subscription matches the email"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class VerificationResult:
    success: bool
    current_period_end: datetime
    customer_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "currentPeriodEnd": format_timestamp(self.current_period_end),
            "canUpload": True,
        }


class SubscriptionVerifier:
    """Pull-based reconciliation of a claimed subscriber email"""

    def __init__(self, backend: StoreBackend, provider: PaymentProvider, clock: Clock = utc_now):
        self.backend = backend
        self.provider = provider
        self.clock = clock

    def verify(self, device_id: str, email: str) -> VerificationResult:
        """
        Verify the subscription for an email and attach it to a device.

        Raises:
            PaymentProviderNotConfiguredError: Stripe is not configured
            PaymentProviderError: Stripe call failed
            SubscriptionNotFoundError: no customer or no active subscription
            StoreBackendError: the subscription record could not be saved
        """
        if not self.provider.is_configured:
            raise PaymentProviderNotConfiguredError("Subscription verification is not configured")

        customers = self.provider.find_customers_by_email(email)
        if not customers:
            raise SubscriptionNotFoundError("No subscription found for this email")

        customer = customers[0]
        if len(customers) > 1:
            logger.info(f"{len(customers)} customers share this email, using {customer.id}")

        subscriptions = self.provider.list_active_subscriptions(customer.id)
        active = [s for s in subscriptions if s.current_period_end is not None]
        if not active:
            raise SubscriptionNotFoundError("No active subscription found for this email")

        period_end = active[0].current_period_end

        existing = self.backend.get_subscription(device_id)
        if existing and existing.stripe_customer_id and existing.stripe_customer_id != customer.id:
            logger.warning(
                f"Device {device_id} reassigned from customer "
                f"{existing.stripe_customer_id} to {customer.id}"
            )

        self.backend.upsert_subscription(SubscriptionRecord(
            device_id=device_id,
            current_period_end=period_end,
            stripe_customer_id=customer.id,
            updated_at=self.clock(),
        ))

        logger.info(f"Subscription verified for device {device_id} until {format_timestamp(period_end)}")
        return VerificationResult(success=True, current_period_end=period_end, customer_id=customer.id)
