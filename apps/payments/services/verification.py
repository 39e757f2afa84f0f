"""
Payment verification service.

Creates gateway intents for tier purchases and turns a verified gateway
success into exactly one ledger upgrade per intent, no matter how many
times (or from how many places) finalization is attempted.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.utils import timezone

from apps.ledger.services import TierLedger
from apps.payments.models import PaymentIntentRecord, IntentStatus
from apps.tiers.catalog import get_tier

from .exceptions import IntentNotFound, IntentOwnershipMismatch, LedgerConflict
from .gateway import GatewayIntent, GatewayStatus, PaymentGateway, build_gateway

logger = logging.getLogger(__name__)


@dataclass
class IntentCreated:
    intent_id: str
    client_secret: str
    amount_minor: int
    currency: str


@dataclass
class Confirmation:
    """Outcome of a finalization attempt."""

    verified: bool
    status: str
    user_ref: str = ''
    tier: Optional[str] = None
    amount_minor: Optional[int] = None
    duplicate: bool = False
    gateway_status: str = ''
    # Gateway success for an intent already failed or canceled locally
    conflict: bool = False


class PaymentVerifier:
    """
    Drives PaymentIntentRecord through its state machine.

    created -> succeeded | failed | canceled; terminal states never change.
    Gateway calls happen before any transaction is opened.
    """

    def __init__(self, gateway: Optional[PaymentGateway] = None, ledger: Optional[TierLedger] = None):
        self.gateway = gateway or build_gateway()
        self.ledger = ledger or TierLedger()

    def create_intent(
        self,
        *,
        tier_id: str,
        user_ref: str,
        email: str = '',
        username: str = ''
    ) -> IntentCreated:
        """
        Start a payment for a tier.

        Args:
            tier_id: Requested tier (any case)
            user_ref: External user identifier
            email: Optional contact email, stored as intent metadata
            username: Optional display name, stored as intent metadata

        Returns:
            IntentCreated with the client secret for the payment form

        Raises:
            UnknownTier: If tier_id is not in the catalog
            GatewayUnavailable: If the gateway call fails; nothing is stored
        """
        tier = get_tier(tier_id)

        metadata = {
            'tier': tier.slug,
            'userId': user_ref,
            'amount': str(tier.price_minor_units),
        }
        if email:
            metadata['email'] = email
        if username:
            metadata['username'] = username

        intent = self.gateway.create_intent(
            amount=tier.price_minor_units,
            currency=tier.currency,
            metadata=metadata,
        )

        # A webhook may already have stored this intent
        record, created = PaymentIntentRecord.objects.get_or_create(
            intent_id=intent.intent_id,
            defaults={
                'user_ref': user_ref,
                'tier': tier.slug,
                'amount_minor': tier.price_minor_units,
                'currency': tier.currency,
                'email': email,
                'username': username,
                'last_gateway_status': intent.raw_status,
            }
        )
        if not created:
            logger.info(f"Intent {intent.intent_id} was already recorded by a webhook")

        logger.info(
            f"Created intent {intent.intent_id} for {user_ref}: "
            f"{tier.slug} {tier.price_minor_units} {tier.currency}"
        )

        return IntentCreated(
            intent_id=intent.intent_id,
            client_secret=intent.client_secret,
            amount_minor=tier.price_minor_units,
            currency=tier.currency,
        )

    def confirm_intent(self, *, intent_id: str, user_ref: str) -> Confirmation:
        """
        Check an intent with the gateway and finalize it if it succeeded.

        Returns:
            Confirmation; ``verified`` is True only for a succeeded intent
            whose upgrade has been applied (now or by an earlier call).

        Raises:
            IntentNotFound: If the intent is unknown
            IntentOwnershipMismatch: If the intent belongs to another user
            GatewayUnavailable: If the gateway cannot be reached
        """
        record = self.get_record(intent_id)
        if record.user_ref != user_ref:
            logger.warning(f"User {user_ref} tried to verify intent {intent_id} owned by {record.user_ref}")
            raise IntentOwnershipMismatch("Payment intent does not belong to this user")

        if record.status == IntentStatus.SUCCEEDED and record.ledger_applied_at:
            logger.info(f"Intent {intent_id} already finalized; duplicate confirm")
            return self._confirmation_for(record, duplicate=True)

        if record.status in (IntentStatus.FAILED, IntentStatus.CANCELED):
            return self._confirmation_for(record)

        gateway_intent = self.gateway.retrieve_intent(intent_id)
        return self.apply_gateway_intent(record, gateway_intent)

    def apply_gateway_intent(self, record: PaymentIntentRecord, gateway_intent: GatewayIntent) -> Confirmation:
        """Apply a gateway-reported intent state to the local record."""
        status = gateway_intent.status

        if status == GatewayStatus.SUCCEEDED:
            if gateway_intent.amount_received < record.amount_minor:
                logger.warning(
                    f"Intent {record.intent_id} received {gateway_intent.amount_received}, "
                    f"expected {record.amount_minor}; not upgrading"
                )
                return self._confirmation_for(record, gateway_status=gateway_intent.raw_status)
            return self.finalize_success(record.intent_id, gateway_status=gateway_intent.raw_status)

        if status == GatewayStatus.CANCELED:
            self.mark_terminal(
                record.intent_id,
                status=IntentStatus.CANCELED,
                gateway_status=gateway_intent.raw_status,
                failure_message=gateway_intent.failure_message,
            )
            record.refresh_from_db()
            return self._confirmation_for(record, gateway_status=gateway_intent.raw_status)

        if gateway_intent.failure_message:
            logger.info(
                f"Intent {record.intent_id} declined ({gateway_intent.failure_message}); "
                f"customer may retry"
            )
        else:
            logger.info(f"Intent {record.intent_id} still pending at gateway ({gateway_intent.raw_status})")
        return self._confirmation_for(record, gateway_status=gateway_intent.raw_status)

    def finalize_success(self, intent_id: str, gateway_status: str = 'succeeded') -> Confirmation:
        """
        Transition the intent to SUCCEEDED and apply the upgrade exactly once.

        The conditional update is the claim: only the caller that moves the
        row out of CREATED applies the upgrade, in the same transaction.
        Everyone else gets the duplicate result, unless the record had
        already failed or been canceled locally: that is a conflict left for
        manual reconciliation, not a duplicate.
        """
        try:
            with transaction.atomic():
                now = timezone.now()
                claimed = PaymentIntentRecord.objects.filter(
                    intent_id=intent_id,
                    status=IntentStatus.CREATED
                ).update(
                    status=IntentStatus.SUCCEEDED,
                    last_gateway_status=gateway_status,
                    finalized_at=now,
                    updated_at=now,
                )
                record = PaymentIntentRecord.objects.select_for_update().get(intent_id=intent_id)

                if not claimed:
                    if not record.needs_ledger_repair:
                        raise LedgerConflict(f"Intent {intent_id} already {record.status}")
                    logger.warning(f"Intent {intent_id} succeeded without ledger upgrade; repairing")

                self.ledger.apply_upgrade(
                    user_ref=record.user_ref,
                    tier_id=record.tier,
                    amount_minor=record.amount_minor,
                    display_name=record.username,
                    email=record.email,
                    intent_id=record.intent_id,
                )
                record.ledger_applied_at = now
                record.save(update_fields=['ledger_applied_at', 'updated_at'])
        except LedgerConflict as e:
            record = PaymentIntentRecord.objects.get(intent_id=intent_id)
            if record.status == IntentStatus.SUCCEEDED:
                logger.info(f"{e}; returning duplicate result")
                return self._confirmation_for(record, duplicate=True, gateway_status=gateway_status)

            logger.error(
                f"Gateway reports success for intent {intent_id} but it is {record.status} "
                f"locally; needs manual reconciliation"
            )
            confirmation = self._confirmation_for(record, gateway_status=gateway_status)
            confirmation.conflict = True
            return confirmation

        logger.info(
            f"Finalized intent {intent_id}: {record.user_ref} paid {record.amount_minor} for {record.tier}"
        )
        return self._confirmation_for(record, gateway_status=gateway_status)

    def mark_terminal(
        self,
        intent_id: str,
        *,
        status: str,
        gateway_status: str = '',
        failure_message: str = ''
    ) -> bool:
        """
        Move a CREATED intent to FAILED or CANCELED.

        Returns:
            True if the record changed, False if it was already terminal
        """
        now = timezone.now()
        changed = PaymentIntentRecord.objects.filter(
            intent_id=intent_id,
            status=IntentStatus.CREATED
        ).update(
            status=status,
            last_gateway_status=gateway_status,
            failure_message=failure_message,
            finalized_at=now,
            updated_at=now,
        )
        if changed:
            logger.info(f"Intent {intent_id} marked {status}: {failure_message or gateway_status}")
        else:
            logger.info(f"Intent {intent_id} already terminal; ignoring {status}")
        return bool(changed)

    def get_record(self, intent_id: str) -> PaymentIntentRecord:
        try:
            return PaymentIntentRecord.objects.get(intent_id=intent_id)
        except PaymentIntentRecord.DoesNotExist:
            raise IntentNotFound(f"Payment intent {intent_id} not found")

    @staticmethod
    def _confirmation_for(record, duplicate=False, gateway_status=''):
        verified = record.status == IntentStatus.SUCCEEDED and record.ledger_applied_at is not None
        return Confirmation(
            verified=verified,
            status=record.status,
            user_ref=record.user_ref,
            tier=record.tier if verified else None,
            amount_minor=record.amount_minor if verified else None,
            duplicate=duplicate,
            gateway_status=gateway_status or record.last_gateway_status,
        )
