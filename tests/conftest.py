#!/usr/bin/env python3
"""
Pytest Configuration and Shared Fixtures

Provides a controllable clock, in-memory collaborators and a FastAPI app
wired to them through dependency overrides.
"""

import base64
import hashlib
import hmac
import json
import sys
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Settings
from store.email_service import Email, EmailService
from store.models import AppRecord, AppCategory, AppStatus
from store.payment_provider import (
    PaymentProvider,
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    ProviderCustomer,
    ProviderSubscription,
)
from store.push_service import PushService
from store.repository import InMemoryBackend


WEBHOOK_SECRET = "whsec_test_secret"
START_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKES
# ============================================================================

class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakePaymentProvider(PaymentProvider):
    """Stripe stand-in keyed by email and customer id"""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.customers: Dict[str, List[ProviderCustomer]] = {}
        self.subscriptions: Dict[str, List[ProviderSubscription]] = {}
        self.error: Optional[Exception] = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    def add_subscriber(self, email: str, customer_id: str, period_end: Optional[datetime]) -> None:
        self.customers.setdefault(email, []).append(ProviderCustomer(id=customer_id, email=email))
        self.subscriptions.setdefault(customer_id, []).append(
            ProviderSubscription(
                id=f"sub_{customer_id}_{len(self.subscriptions.get(customer_id, []))}",
                customer_id=customer_id,
                status="active",
                current_period_end=period_end,
            )
        )

    def _check(self) -> None:
        if not self.configured:
            raise PaymentProviderNotConfiguredError("Subscription verification is not configured")
        if self.error is not None:
            raise PaymentProviderError(str(self.error))

    def find_customers_by_email(self, email: str) -> List[ProviderCustomer]:
        self._check()
        return list(self.customers.get(email, []))

    def list_active_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        self._check()
        return list(self.subscriptions.get(customer_id, []))


class RecordingPushService(PushService):
    """Records notifications instead of calling Expo"""

    def __init__(self):
        super().__init__(push_url="http://push.invalid", timeout=1)
        self.sent: List[Dict[str, Any]] = []
        self.fail = False

    async def send(self, tokens, title, body, data=None) -> int:
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.sent.append({"tokens": list(tokens), "title": title, "body": body, "data": data})
        return len(tokens)


class RecordingEmailService(EmailService):
    """Records emails instead of calling SendGrid"""

    def __init__(self):
        super().__init__(sendgrid_api_key="", admin_email="review@antimatter.io")
        self.sent: List[Email] = []
        self.fail = False

    async def send(self, email: Email) -> bool:
        if self.fail:
            raise RuntimeError("email service unavailable")
        self.sent.append(email)
        return True


# ============================================================================
# CORE FIXTURES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def push():
    return RecordingPushService()


@pytest.fixture
def email():
    return RecordingEmailService()


@pytest.fixture
def test_settings():
    """Settings with a webhook secret and small upload limits"""
    return Settings(
        STORE_BACKEND="memory",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        MAX_IPA_BYTES=1024 * 1024,
        MAX_ICON_BYTES=64 * 1024,
        FREE_UPLOAD_LIMIT=5,
        REVIEW_PERIOD_HOURS=48,
    )


@pytest.fixture
def seed_app(backend, clock):
    """Insert an app record directly into the backend"""
    def _seed(**overrides) -> AppRecord:
        fields = {
            "name": "Seeded App",
            "developer_name": "Seed Dev",
            "version": "1.0",
            "category": AppCategory.UTILITIES,
            "ipa_path": "seed.ipa",
            "status": AppStatus.PENDING,
            "created_at": clock(),
        }
        fields.update(overrides)
        return backend.insert_app(AppRecord(**fields))
    return _seed

    """v1 signature as Stripe computes it: HMAC-SHA256 over <t>.<body>"""
def stripe_signature(body: str, timestamp: int, secret: str = WEBHOOK_SECRET) -> str:
    """v1 signature as Stripe computes it: HMAC-SHA256 over "<t>.<body>\""""
    signed = f"{timestamp}.{body}".encode()
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


@pytest.fixture
def sign_webhook():
    """
    Build a (body, stripe-signature header) pair for an event.

    Stripe checks the signature age against the wall clock, so the default
    timestamp is the real current time.
    """
    def _sign(event: Dict[str, Any], secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None):
        body = json.dumps(event)
        ts = int(time.time()) if timestamp is None else timestamp
        return body, f"t={ts},v1={stripe_signature(body, ts, secret)}"
    return _sign


def subscription_event(event_type: str, customer: Any, period_end: Optional[datetime], status: str = "active") -> Dict[str, Any]:
    obj = {"id": "sub_123", "object": "subscription", "customer": customer, "status": status}
    if period_end is not None:
        obj["current_period_end"] = int(period_end.timestamp())
    return {"id": "evt_123", "type": event_type, "data": {"object": obj}}


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


# ============================================================================
# FASTAPI TEST CLIENT FIXTURES
# ============================================================================

@pytest.fixture
def app(clock, backend, provider, push, email, test_settings):
    """FastAPI application wired to in-memory collaborators"""
    from api.main import app
    from api import dependencies as deps

    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_backend] = lambda: backend
    app.dependency_overrides[deps.get_provider] = lambda: provider
    app.dependency_overrides[deps.get_push] = lambda: push
    app.dependency_overrides[deps.get_email] = lambda: email
    app.dependency_overrides[deps.get_settings] = lambda: test_settings
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Create synchronous test client"""
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
def submit(client):
    """POST /api/apps with a valid payload, overridable per field"""
    def _submit(**overrides):
        payload = {
            "name": "Test App",
            "description": "A test app",
            "developerName": "Test Dev",
            "version": "1.0.0",
            "category": "utilities",
            "ipaPath": "1700000000000-test.ipa",
        }
        payload.update(overrides)
        payload = {k: v for k, v in payload.items() if v is not None}
        return client.post("/api/apps", json=payload)
    return _submit


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests that exercise several endpoints together"
    )
