"""
Payment gateway adapters.

Services never talk to Stripe directly; they receive a PaymentGateway at
construction. The concrete class comes from the ``PAYMENT_GATEWAY``
setting so tests can swap in an in-process gateway.

All gateway intents are normalized into ``GatewayIntent`` with one of three
statuses: ``succeeded``, ``pending`` or ``canceled``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

import stripe
from django.conf import settings
from django.utils.module_loading import import_string

from .exceptions import GatewayUnavailable, IntentNotFound, InvalidSignature

logger = logging.getLogger(__name__)


class GatewayStatus:
    SUCCEEDED = 'succeeded'
    PENDING = 'pending'
    CANCELED = 'canceled'


@dataclass
class GatewayIntent:
    """Gateway-side view of a payment intent."""

    intent_id: str
    status: str
    raw_status: str
    amount: int
    currency: str
    amount_received: int = 0
    client_secret: str = ''
    metadata: dict = field(default_factory=dict)
    failure_message: str = ''


@dataclass
class GatewayEvent:
    """A verified webhook delivery."""

    event_id: str
    event_type: str
    intent: Optional[GatewayIntent] = None


def normalize_status(raw_status: str) -> str:
    """
    Map a Stripe PaymentIntent status onto GatewayStatus.

    Only ``succeeded`` and ``canceled`` are final at Stripe. A declined card
    leaves the intent in ``requires_payment_method`` and the customer can
    retry on the same intent, so a decline is still pending.
    """
    if raw_status == 'succeeded':
        return GatewayStatus.SUCCEEDED
    if raw_status == 'canceled':
        return GatewayStatus.CANCELED
    return GatewayStatus.PENDING


def intent_from_payload(obj) -> GatewayIntent:
    """Build a GatewayIntent from a Stripe PaymentIntent (object or plain dict)."""
    last_error = obj.get('last_payment_error') or {}
    raw_status = obj.get('status') or ''
    return GatewayIntent(
        intent_id=obj['id'],
        status=normalize_status(raw_status),
        raw_status=raw_status,
        amount=int(obj.get('amount') or 0),
        amount_received=int(obj.get('amount_received') or 0),
        currency=obj.get('currency') or '',
        client_secret=obj.get('client_secret') or '',
        metadata=dict(obj.get('metadata') or {}),
        failure_message=last_error.get('message') or '',
    )


class PaymentGateway:
    """
    Contract between the payments services and a payment provider.

    Implementations raise GatewayUnavailable for network errors, timeouts
    and provider-side failures, so callers can tell retryable errors apart.
    """

    def create_intent(self, *, amount: int, currency: str, metadata: dict) -> GatewayIntent:
        raise NotImplementedError

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        raise NotImplementedError

    def parse_event(self, payload: bytes, signature_header: Optional[str]) -> GatewayEvent:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    """
    PaymentGateway backed by the Stripe API.

    Uses a dedicated StripeClient with a request timeout and no automatic
    network retries; retrying is the caller's decision.
    """

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        timeout: int = 10,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE
    ):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def create_intent(self, *, amount, currency, metadata):
        try:
            intent = self.client.payment_intents.create(params={
                'amount': amount,
                'currency': currency,
                'metadata': metadata,
                'automatic_payment_methods': {'enabled': True},
            })
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating intent: {e}")
            raise GatewayUnavailable(f"Payment gateway error: {e.user_message or e}")

        result = intent_from_payload(intent)
        logger.info(f"Created Stripe payment intent {result.intent_id} for {amount} {currency}")
        return result

    def retrieve_intent(self, intent_id):
        try:
            intent = self.client.payment_intents.retrieve(intent_id)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise IntentNotFound(f"Payment intent {intent_id} not found")
            logger.error(f"Stripe rejected retrieve of {intent_id}: {e}")
            raise GatewayUnavailable(f"Payment gateway error: {e.user_message or e}")
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving {intent_id}: {e}")
            raise GatewayUnavailable(f"Payment gateway error: {e.user_message or e}")

        return intent_from_payload(intent)

    def parse_event(self, payload, signature_header):
        if not signature_header:
            raise InvalidSignature("Missing Stripe-Signature header")
        if not self.webhook_secret:
            raise InvalidSignature("Webhook secret is not configured")

        if isinstance(payload, bytes):
            try:
                payload = payload.decode('utf-8')
            except UnicodeDecodeError:
                raise InvalidSignature("Webhook payload is not valid UTF-8")

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature_header, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(f"Invalid signature: {e}")

        try:
            data = json.loads(payload)
            event_id = data['id']
            event_type = data['type']
            obj = data.get('data', {}).get('object') or {}
            intent = None
            if obj.get('object') == 'payment_intent' and obj.get('id'):
                intent = intent_from_payload(obj)
        except (ValueError, KeyError, TypeError, AttributeError):
            raise InvalidSignature("Webhook payload could not be parsed")

        return GatewayEvent(event_id=event_id, event_type=event_type, intent=intent)


def build_gateway() -> PaymentGateway:
    """Instantiate the gateway class named by ``settings.PAYMENT_GATEWAY``."""
    gateway_class = import_string(settings.PAYMENT_GATEWAY)
    return gateway_class(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
        tolerance=settings.WEBHOOK_TOLERANCE_SECONDS,
    )
