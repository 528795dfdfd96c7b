"""
FastAPI dependencies

Every collaborator a route needs is built here so tests can swap any of them
through ``app.dependency_overrides``.
"""

from fastapi import Depends

from config import settings, Settings
from store.admission_policy import AdmissionPolicy
from store.app_service import AppService
from store.email_service import EmailService, get_email_service
from store.models import Clock, utc_now
from store.payment_provider import PaymentProvider, get_payment_provider
from store.push_service import PushService, get_push_service
from store.repository import StoreBackend, get_store_backend
from store.review_gate import ReviewGate
from store.storage_gateway import StorageGateway
from store.subscription_verifier import SubscriptionVerifier
from store.webhook_reconciler import WebhookReconciler


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    return utc_now


def get_backend() -> StoreBackend:
    return get_store_backend()


def get_provider() -> PaymentProvider:
    return get_payment_provider()


def get_push() -> PushService:
    return get_push_service()


def get_email() -> EmailService:
    return get_email_service()


def get_admission_policy(config: Settings = Depends(get_settings)) -> AdmissionPolicy:
    return AdmissionPolicy(free_upload_limit=config.FREE_UPLOAD_LIMIT)


def get_review_gate(config: Settings = Depends(get_settings)) -> ReviewGate:
    return ReviewGate(review_period=config.review_period)


def get_app_service(
    backend: StoreBackend = Depends(get_backend),
    policy: AdmissionPolicy = Depends(get_admission_policy),
    gate: ReviewGate = Depends(get_review_gate),
    push: PushService = Depends(get_push),
    email: EmailService = Depends(get_email),
    clock: Clock = Depends(get_clock),
    config: Settings = Depends(get_settings),
) -> AppService:
    return AppService(
        backend=backend,
        policy=policy,
        gate=gate,
        push_service=push,
        email_service=email,
        clock=clock,
        price_label=config.SUBSCRIPTION_PRICE_LABEL,
    )


def get_storage_gateway(
    backend: StoreBackend = Depends(get_backend),
    clock: Clock = Depends(get_clock),
    config: Settings = Depends(get_settings),
) -> StorageGateway:
    return StorageGateway(
        backend=backend,
        clock=clock,
        ipa_bucket=config.IPA_BUCKET,
        assets_bucket=config.APP_ASSETS_BUCKET,
        max_ipa_bytes=config.MAX_IPA_BYTES,
        max_icon_bytes=config.MAX_ICON_BYTES,
    )


def get_verifier(
    backend: StoreBackend = Depends(get_backend),
    provider: PaymentProvider = Depends(get_provider),
    clock: Clock = Depends(get_clock),
) -> SubscriptionVerifier:
    return SubscriptionVerifier(backend=backend, provider=provider, clock=clock)


def get_reconciler(
    backend: StoreBackend = Depends(get_backend),
    clock: Clock = Depends(get_clock),
    config: Settings = Depends(get_settings),
) -> WebhookReconciler:
    return WebhookReconciler(
        backend=backend,
        secret=config.STRIPE_WEBHOOK_SECRET,
        clock=clock,
        tolerance_seconds=config.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )
