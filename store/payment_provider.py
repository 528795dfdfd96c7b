"""
Payment Provider - thin Stripe adapter

Only the two lookups Subscription Verification needs: customers by email and
a customer's active subscriptions. Results are converted to plain dataclasses
so the rest of the code never touches Stripe objects.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Any

from config import settings
from store.models import parse_timestamp
from utils.logger import logger


class PaymentProviderNotConfiguredError(Exception):
    """Raised when no Stripe secret key is configured"""
    pass


class PaymentProviderError(Exception):
    """Raised when a call to the payment provider fails"""
    pass


@dataclass
class ProviderCustomer:
    id: str
    email: Optional[str] = None


@dataclass
class ProviderSubscription:
    id: str
    customer_id: str
    status: str
    current_period_end: Optional[datetime] = None


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict"""
    if isinstance(obj, dict):
        return obj.get(name, default)
    try:
        return obj[name]
    except (KeyError, TypeError, IndexError):
        return getattr(obj, name, default)


def period_end_from_subscription(subscription: Any) -> Optional[datetime]:
    """
    Current period end of a Stripe subscription.

    Newer Stripe API versions moved current_period_end from the subscription
    onto its items, so fall back to the first item when it is missing.
    """
    period_end = _field(subscription, "current_period_end")
    if period_end is None:
        items = _field(subscription, "items")
        data = _field(items, "data") if items is not None else None
        if data:
            period_end = _field(data[0], "current_period_end")
    return parse_timestamp(period_end)


class PaymentProvider(ABC):
    """Interface used by Subscription Verification"""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def find_customers_by_email(self, email: str) -> List[ProviderCustomer]:
        """Customers with this exact email, in provider order"""
        pass

    @abstractmethod
    def list_active_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        """Active subscriptions of a customer, in provider order"""
        pass


class StripePaymentProvider(PaymentProvider):
    """Stripe REST API through the official stripe library"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise PaymentProviderNotConfiguredError("Subscription verification is not configured")
        return self.api_key

    def find_customers_by_email(self, email: str) -> List[ProviderCustomer]:
        api_key = self._require_key()
        import stripe

        try:
            customers = stripe.Customer.list(email=email, limit=10, api_key=api_key)
        except Exception as e:
            logger.error(f"Stripe customer lookup error: {e}")
            raise PaymentProviderError("Failed to look up customer") from e

        return [
            ProviderCustomer(id=_field(c, "id"), email=_field(c, "email"))
            for c in _field(customers, "data") or []
        ]

    def list_active_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        api_key = self._require_key()
        import stripe

        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                status="active",
                limit=10,
                api_key=api_key,
            )
        except Exception as e:
            logger.error(f"Stripe subscription lookup error: {e}")
            raise PaymentProviderError("Failed to look up subscriptions") from e

        return [
            ProviderSubscription(
                id=_field(s, "id"),
                customer_id=customer_id,
                status=_field(s, "status", "active"),
                current_period_end=period_end_from_subscription(s),
            )
            for s in _field(subscriptions, "data") or []
        ]


# Singleton instance
_payment_provider: Optional[PaymentProvider] = None


def get_payment_provider() -> PaymentProvider:
    """Get or create the Stripe provider singleton"""
    global _payment_provider
    if _payment_provider is None:
        _payment_provider = StripePaymentProvider()
    return _payment_provider
