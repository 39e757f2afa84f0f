"""
Webhook ingestion service.

Verifies gateway deliveries and routes them onto the same finalization
path the client confirm uses. Deliveries are de-duplicated by event id.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from apps.payments.models import (
    PaymentIntentRecord,
    ProcessedWebhookEvent,
    IntentStatus,
    WebhookOutcome,
)
from apps.tiers.catalog import get_tier, UnknownTier

from .gateway import GatewayIntent, PaymentGateway, build_gateway
from .verification import PaymentVerifier

logger = logging.getLogger(__name__)


EVENT_SUCCEEDED = 'payment_intent.succeeded'
EVENT_FAILED = 'payment_intent.payment_failed'
EVENT_CANCELED = 'payment_intent.canceled'


@dataclass
class WebhookResult:
    accepted: bool
    event_type: str
    intent_id: Optional[str] = None
    duplicate: bool = False
    outcome: str = WebhookOutcome.IGNORED


class WebhookIngestor:
    """Handles signed gateway events."""

    def __init__(self, gateway: Optional[PaymentGateway] = None, verifier: Optional[PaymentVerifier] = None):
        self.gateway = gateway or build_gateway()
        self.verifier = verifier or PaymentVerifier(gateway=self.gateway)

    def handle_event(self, payload: bytes, signature_header: Optional[str]) -> WebhookResult:
        """
        Verify and apply one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature_header: Value of the Stripe-Signature header

        Returns:
            WebhookResult; unknown event types are accepted with no effect

        Raises:
            InvalidSignature: If the signature is missing or wrong, or the
                payload cannot be parsed. Nothing is changed.
        """
        event = self.gateway.parse_event(payload, signature_header)
        intent_id = event.intent.intent_id if event.intent else None

        logger.info(f"Received webhook {event.event_id} ({event.event_type})")

        if ProcessedWebhookEvent.objects.filter(event_id=event.event_id).exists():
            logger.info(f"Webhook {event.event_id} already processed")
            return WebhookResult(
                accepted=True,
                event_type=event.event_type,
                intent_id=intent_id,
                duplicate=True,
                outcome=WebhookOutcome.DUPLICATE,
            )

        if event.event_type == EVENT_SUCCEEDED and event.intent:
            outcome = self._handle_succeeded(event.intent)
        elif event.event_type == EVENT_FAILED and event.intent:
            outcome = self._handle_terminal(event.intent, IntentStatus.FAILED)
        elif event.event_type == EVENT_CANCELED and event.intent:
            outcome = self._handle_terminal(event.intent, IntentStatus.CANCELED)
        else:
            logger.debug(f"Ignoring webhook event type {event.event_type}")
            outcome = WebhookOutcome.IGNORED

        ProcessedWebhookEvent.objects.get_or_create(
            event_id=event.event_id,
            defaults={
                'event_type': event.event_type,
                'intent_id': intent_id or '',
                'outcome': outcome,
            }
        )

        return WebhookResult(
            accepted=True,
            event_type=event.event_type,
            intent_id=intent_id,
            duplicate=outcome == WebhookOutcome.DUPLICATE,
            outcome=outcome,
        )

    def _handle_succeeded(self, intent: GatewayIntent) -> str:
        record = PaymentIntentRecord.objects.filter(intent_id=intent.intent_id).first()
        if record is None:
            record = self._record_from_metadata(intent)
            if record is None:
                return WebhookOutcome.IGNORED

        if record.status == IntentStatus.SUCCEEDED and record.ledger_applied_at:
            logger.info(f"Intent {intent.intent_id} already finalized; webhook is a duplicate")
            return WebhookOutcome.DUPLICATE

        confirmation = self.verifier.apply_gateway_intent(record, intent)
        if confirmation.duplicate:
            return WebhookOutcome.DUPLICATE
        if confirmation.conflict:
            return WebhookOutcome.CONFLICT
        if confirmation.verified:
            return WebhookOutcome.APPLIED
        return WebhookOutcome.IGNORED

    def _handle_terminal(self, intent: GatewayIntent, status: str) -> str:
        if not PaymentIntentRecord.objects.filter(intent_id=intent.intent_id).exists():
            logger.warning(f"No local record for {status} intent {intent.intent_id}")
            return WebhookOutcome.IGNORED

        changed = self.verifier.mark_terminal(
            intent.intent_id,
            status=status,
            gateway_status=intent.raw_status,
            failure_message=intent.failure_message,
        )
        return WebhookOutcome.FAILED_RECORDED if changed else WebhookOutcome.DUPLICATE

    @staticmethod
    def _record_from_metadata(intent: GatewayIntent) -> Optional[PaymentIntentRecord]:
        """Create the local record for an intent we never saw created."""
        user_ref = intent.metadata.get('userId')
        tier_id = intent.metadata.get('tier')
        if not user_ref or not tier_id:
            logger.warning(f"Intent {intent.intent_id} has no userId/tier metadata; ignoring")
            return None

        try:
            tier = get_tier(tier_id)
        except UnknownTier:
            logger.warning(f"Intent {intent.intent_id} carries unknown tier {tier_id!r}; ignoring")
            return None

        record, created = PaymentIntentRecord.objects.get_or_create(
            intent_id=intent.intent_id,
            defaults={
                'user_ref': user_ref,
                'tier': tier.slug,
                'amount_minor': tier.price_minor_units,
                'currency': tier.currency,
                'email': intent.metadata.get('email', ''),
                'username': intent.metadata.get('username', ''),
                'last_gateway_status': intent.raw_status,
            }
        )
        if created:
            logger.info(f"Recorded intent {intent.intent_id} for {user_ref} from webhook metadata")
        return record
