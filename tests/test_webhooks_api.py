#!/usr/bin/env python3
"""
Stripe Webhook API Tests

Tests for POST /api/webhooks/stripe.
"""

import sys
import os
import time
from datetime import timedelta
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from store.models import SubscriptionRecord
from store.repository import StoreBackendError
from store.webhook_reconciler import SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED
from tests.conftest import subscription_event


@pytest.fixture
def subscribed(backend, clock):
    backend.upsert_subscription(SubscriptionRecord(
        device_id="device-1",
        current_period_end=clock() + timedelta(days=5),
        stripe_customer_id="cus_1",
    ))
    return backend


def post_webhook(client, body, header=None):
    headers = {"Content-Type": "application/json"}
    if header is not None:
        headers["stripe-signature"] = header
    return client.post("/api/webhooks/stripe", content=body, headers=headers)


class TestStripeWebhook:
    """POST /api/webhooks/stripe"""

    def test_subscription_renewed(self, client, subscribed, sign_webhook, clock):
        new_end = clock() + timedelta(days=35)
        body, header = sign_webhook(subscription_event(SUBSCRIPTION_UPDATED, "cus_1", new_end))

        response = post_webhook(client, body, header)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert subscribed.get_subscription("device-1").current_period_end == new_end

    def test_subscription_deleted(self, client, subscribed, sign_webhook, clock):
        final_end = clock() - timedelta(seconds=1)
        body, header = sign_webhook(subscription_event(SUBSCRIPTION_DELETED, "cus_1", final_end, status="canceled"))

        assert post_webhook(client, body, header).status_code == 200

        usage = client.get("/api/developer/usage", params={"deviceId": "device-1"}).json()["data"]
        assert usage["isSubscribed"] is False

    def test_unknown_customer_acknowledged(self, client, subscribed, sign_webhook, clock):
        body, header = sign_webhook(subscription_event(SUBSCRIPTION_DELETED, "cus_other", clock()))

        response = post_webhook(client, body, header)

        assert response.status_code == 200
        assert subscribed.get_subscription("device-1").current_period_end == clock() + timedelta(days=5)

    def test_unrelated_event_acknowledged(self, client, sign_webhook):
        body, header = sign_webhook({"id": "evt_1", "type": "invoice.paid", "data": {"object": {}}})
        assert post_webhook(client, body, header).json() == {"received": True}

    def test_missing_signature(self, client, subscribed, sign_webhook, clock):
        body, _ = sign_webhook(subscription_event(SUBSCRIPTION_UPDATED, "cus_1", clock() + timedelta(days=35)))

        response = post_webhook(client, body)

        assert response.status_code == 400
        assert subscribed.get_subscription("device-1").current_period_end == clock() + timedelta(days=5)

    def test_invalid_signature_does_not_mutate(self, client, subscribed, sign_webhook, clock):
        body, header = sign_webhook(
            subscription_event(SUBSCRIPTION_UPDATED, "cus_1", clock() + timedelta(days=35)),
            secret="whsec_wrong",
        )

        response = post_webhook(client, body, header)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook"}
        assert subscribed.get_subscription("device-1").current_period_end == clock() + timedelta(days=5)

    def test_replayed_old_event_rejected(self, client, subscribed, sign_webhook, clock):
        event = subscription_event(SUBSCRIPTION_UPDATED, "cus_1", clock() + timedelta(days=35))
        body, header = sign_webhook(event, timestamp=int(time.time()) - 600)

        assert post_webhook(client, body, header).status_code == 400

    def test_not_configured(self, client, test_settings, sign_webhook):
        test_settings.STRIPE_WEBHOOK_SECRET = None
        body, header = sign_webhook({"type": "ping"})

        response = post_webhook(client, body, header)

        assert response.status_code == 500
        assert response.json() == {"error": "Webhook not configured"}

    def test_store_failure_asks_for_retry(self, client, backend, subscribed, sign_webhook, clock):
        body, header = sign_webhook(subscription_event(SUBSCRIPTION_UPDATED, "cus_1", clock() + timedelta(days=35)))

        with patch.object(backend, "update_period_end_by_customer", side_effect=StoreBackendError("db down")):
            response = post_webhook(client, body, header)

        assert response.status_code == 500
