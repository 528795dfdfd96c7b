"""
Webhook Reconciliation - keeps subscription records in sync with Stripe

Stripe pushes subscription lifecycle events; we correlate them to records by
Stripe customer id (Stripe knows nothing about devices):

- customer.subscription.updated (status active, with a period end)
    -> overwrite current_period_end
- customer.subscription.deleted (with a period end)
    -> overwrite current_period_end with the final period end, which makes
       the subscribed check turn false once it passes

Every write is a pure overwrite, so redelivered or reordered events are safe
without a dedup store. Events are authenticated before anything else.

Configure in the Stripe dashboard: Developers -> Webhooks -> Add endpoint
    URL: https://<backend>/api/webhooks/stripe
    Events: customer.subscription.updated, customer.subscription.deleted
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Union

from store.models import Clock, utc_now
from store.payment_provider import period_end_from_subscription
from store.repository import StoreBackend
from utils.logger import logger

SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

DEFAULT_TOLERANCE_SECONDS = 300


class WebhookAuthenticationError(Exception):
    """Raised for a missing, malformed, stale or mismatched signature"""
    pass


class WebhookNotConfiguredError(Exception):
    """Raised when no webhook signing secret is configured"""
    pass


class ReconcileAction(str, Enum):
    PERIOD_UPDATED = "period_updated"
    IGNORED = "ignored"


@dataclass
class ReconcileOutcome:
    event_type: str
    action: ReconcileAction
    customer_id: Optional[str] = None
    period_end: Optional[datetime] = None
    records_updated: int = 0


class WebhookReconciler:
    """Authenticates Stripe events and applies them to subscription records"""

    def __init__(
        self,
        backend: StoreBackend,
        secret: Optional[str],
        clock: Clock = utc_now,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ):
        self.backend = backend
        self.secret = secret
        self.clock = clock
        self.tolerance_seconds = tolerance_seconds

    def authenticate(self, payload: Union[bytes, str], signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header and decode the event.

        The signature check is the one stripe.Webhook.construct_event runs;
        the body is decoded to a plain dict afterwards.

        Raises:
            WebhookNotConfiguredError: no signing secret
            WebhookAuthenticationError: anything wrong with the signature or body
        """
        if not self.secret:
            raise WebhookNotConfiguredError("STRIPE_WEBHOOK_SECRET not set")

        if not signature_header:
            raise WebhookAuthenticationError("Missing signature")

        import stripe

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(
                body,
                signature_header,
                self.secret,
                tolerance=self.tolerance_seconds or None,
            )
        except UnicodeDecodeError as e:
            raise WebhookAuthenticationError("Body is not UTF-8") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookAuthenticationError(str(e)) from e

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise WebhookAuthenticationError("Invalid JSON") from e

        if not isinstance(event, dict):
            raise WebhookAuthenticationError("Invalid event")
        return event

    def reconcile(self, event: Dict[str, Any]) -> ReconcileOutcome:
        """
        Apply an authenticated event.

        Raises:
            StoreBackendError: the update for an active subscription failed
        """
        event_type = str(event.get("type", ""))
        subscription = (event.get("data") or {}).get("object") or {}

        customer_id = subscription.get("customer")
        if isinstance(customer_id, dict):
            # expanded customer object
            customer_id = customer_id.get("id")

        if not customer_id:
            return ReconcileOutcome(event_type=event_type, action=ReconcileAction.IGNORED)

        customer_id = str(customer_id)
        period_end = period_end_from_subscription(subscription)

        ignored = ReconcileOutcome(
            event_type=event_type,
            action=ReconcileAction.IGNORED,
            customer_id=customer_id,
            period_end=period_end,
        )

        if event_type == SUBSCRIPTION_UPDATED:
            if subscription.get("status") != "active" or period_end is None:
                return ignored
        elif event_type == SUBSCRIPTION_DELETED:
            if period_end is None:
                return ignored
        else:
            return ignored

        updated = self.backend.update_period_end_by_customer(customer_id, period_end, self.clock())
        if updated == 0:
            logger.info(f"Webhook {event_type}: no device linked to customer {customer_id}")
        else:
            logger.info(f"Webhook {event_type}: {updated} record(s) for {customer_id} now end {period_end.isoformat()}")

        return ReconcileOutcome(
            event_type=event_type,
            action=ReconcileAction.PERIOD_UPDATED,
            customer_id=customer_id,
            period_end=period_end,
            records_updated=updated,
        )

