"""
App Store Gating Policy

Decides when an uploaded app may be submitted, when it becomes downloadable
and when a paid subscription lifts the free upload quota:

- AdmissionPolicy: free-tier quota per device with subscription override
- ReviewGate: 48h review hold unless approved earlier, recomputed on read
- SubscriptionVerifier: links a Stripe subscription to a device by email
- WebhookReconciler: keeps subscription period ends in sync with Stripe

Persistence and delivery are delegated to Supabase, Stripe, Expo push and
SendGrid through the adapters in this package.
"""

from store.models import (
    AppRecord,
    AppStatus,
    AppCategory,
    DeviceCompatibility,
    DeviceUsage,
    SubscriptionRecord,
    utc_now,
)
from store.admission_policy import (
    AdmissionPolicy,
    AdmissionDecision,
    AdmissionReason,
    SubscriptionRequiredError,
    SUBSCRIPTION_REQUIRED_CODE,
)
from store.review_gate import ReviewGate, ReviewState
from store.repository import (
    StoreBackend,
    StoreBackendError,
    InMemoryBackend,
    SupabaseBackend,
    get_store_backend,
)
from store.payment_provider import (
    PaymentProvider,
    StripePaymentProvider,
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    get_payment_provider,
)
from store.subscription_verifier import (
    SubscriptionVerifier,
    SubscriptionNotFoundError,
    VerificationResult,
)
from store.webhook_reconciler import (
    WebhookReconciler,
    WebhookAuthenticationError,
    WebhookNotConfiguredError,
)
from store.app_service import AppService, AppNotFoundError, NotAppOwnerError
from store.storage_gateway import StorageGateway, UploadRejectedError

__all__ = [
    # Data model
    'AppRecord',
    'AppStatus',
    'AppCategory',
    'DeviceCompatibility',
    'DeviceUsage',
    'SubscriptionRecord',
    'utc_now',
    # Policy
    'AdmissionPolicy',
    'AdmissionDecision',
    'AdmissionReason',
    'SubscriptionRequiredError',
    'SUBSCRIPTION_REQUIRED_CODE',
    'ReviewGate',
    'ReviewState',
    # Persistence
    'StoreBackend',
    'StoreBackendError',
    'InMemoryBackend',
    'SupabaseBackend',
    'get_store_backend',
    # Payments
    'PaymentProvider',
    'StripePaymentProvider',
    'PaymentProviderError',
    'PaymentProviderNotConfiguredError',
    'get_payment_provider',
    'SubscriptionVerifier',
    'SubscriptionNotFoundError',
    'VerificationResult',
    'WebhookReconciler',
    'WebhookAuthenticationError',
    'WebhookNotConfiguredError',
    # Services
    'AppService',
    'AppNotFoundError',
    'NotAppOwnerError',
    'StorageGateway',
    'UploadRejectedError',
]
