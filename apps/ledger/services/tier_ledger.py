"""
Tier ledger service.

Single writer of UserTierRecord. Applies tier upgrades after a verified
payment and keeps the leaderboard in step within the same transaction.
"""

import logging
import secrets
from typing import Optional

from django.db import transaction, IntegrityError
from django.utils import timezone

from apps.ledger.models import UserTierRecord
from apps.tiers.catalog import get_tier, higher_tier

from .exceptions import UserNotFoundError
from .leaderboard import LeaderboardIndex

logger = logging.getLogger(__name__)

SERIAL_PREFIX = 'NTH'


def generate_serial_number() -> str:
    """Generate an opaque membership serial, e.g. ``NTH-9F2C4A1B7E03``."""
    return f"{SERIAL_PREFIX}-{secrets.token_hex(6).upper()}"


class TierLedger:
    """
    Owns the mapping from user to tier and cumulative spend.

    Callers (PaymentVerifier, WebhookIngestor) invoke ``apply_upgrade`` at
    most once per intent reaching SUCCEEDED. The ledger additionally never
    lowers spend and never moves a user to a cheaper tier.
    """

    def __init__(self, leaderboard: Optional[LeaderboardIndex] = None, max_serial_retries: int = 5):
        self.leaderboard = leaderboard or LeaderboardIndex()
        self.max_serial_retries = max_serial_retries

    @transaction.atomic
    def apply_upgrade(
        self,
        *,
        user_ref: str,
        tier_id: str,
        amount_minor: int,
        display_name: str = '',
        email: str = '',
        intent_id: str = ''
    ) -> UserTierRecord:
        """
        Record a verified payment against a user.

        Args:
            user_ref: External user identifier
            tier_id: Tier that was paid for (any case)
            amount_minor: Amount actually paid, in minor units
            display_name: Optional username to show on the leaderboard
            email: Optional contact email
            intent_id: Gateway intent that triggered the upgrade

        Returns:
            The updated UserTierRecord (leaderboard already patched)

        Raises:
            UnknownTier: If tier_id is not in the catalog
            ValueError: If amount_minor is negative
        """
        paid_tier = get_tier(tier_id)
        if amount_minor < 0:
            raise ValueError("Payment amount must not be negative")

        record = self._locked_record(user_ref)
        now = timezone.now()

        if record is None:
            record, created = self._create_record(
                user_ref=user_ref,
                tier=paid_tier.slug,
                amount_minor=amount_minor,
                currency=paid_tier.currency,
                display_name=display_name,
                email=email,
                intent_id=intent_id,
                now=now,
            )
            if created:
                logger.info(
                    f"Created tier record for {user_ref}: {record.tier} "
                    f"(serial {record.serial_number})"
                )
                self.leaderboard.upsert(record)
                return record

        previous_tier = record.tier
        record.tier = higher_tier(record.tier, paid_tier.id).slug
        record.cumulative_spend_minor += amount_minor
        record.last_payment_intent_id = intent_id or record.last_payment_intent_id
        if display_name:
            record.display_name = display_name
        if email:
            record.email = email
        record.updated_at = now
        record.save(update_fields=[
            'tier',
            'cumulative_spend_minor',
            'last_payment_intent_id',
            'display_name',
            'email',
            'updated_at',
        ])

        if record.tier != paid_tier.slug:
            logger.info(
                f"Kept {user_ref} at {record.tier}; {paid_tier.slug} payment only adds spend"
            )
        else:
            logger.info(f"User {user_ref} tier {previous_tier} -> {record.tier}")

        self.leaderboard.upsert(record)
        return record

    def get_record(self, user_ref: str) -> UserTierRecord:
        """
        Return the tier record for ``user_ref``.

        Raises:
            UserNotFoundError: If the user has never paid
        """
        try:
            return UserTierRecord.objects.get(user_ref=user_ref)
        except UserTierRecord.DoesNotExist:
            raise UserNotFoundError(f"User {user_ref} not found")

    @staticmethod
    def _locked_record(user_ref: str) -> Optional[UserTierRecord]:
        return (
            UserTierRecord.objects
            .select_for_update()
            .filter(user_ref=user_ref)
            .first()
        )

    def _create_record(self, *, user_ref, tier, amount_minor, currency,
                       display_name, email, intent_id, now):
        """
        Create the first record for a user with a fresh serial number.

        Returns:
            Tuple of (UserTierRecord, created)

        A concurrent first payment for the same user wins the unique
        constraint; in that case the existing row is returned locked and
        the caller applies this payment on top of it.
        """
        for attempt in range(self.max_serial_retries):
            try:
                # Savepoint so a collision doesn't poison the outer transaction
                with transaction.atomic():
                    record = UserTierRecord.objects.create(
                        user_ref=user_ref,
                        tier=tier,
                        cumulative_spend_minor=amount_minor,
                        currency=currency,
                        serial_number=generate_serial_number(),
                        display_name=display_name,
                        email=email,
                        last_payment_intent_id=intent_id,
                        updated_at=now,
                    )
                    return record, True
            except IntegrityError:
                existing = self._locked_record(user_ref)
                if existing is not None:
                    logger.info(f"Tier record for {user_ref} created concurrently; merging payment")
                    return existing, False
                # Serial number collision (very rare)
                if attempt == self.max_serial_retries - 1:
                    raise RuntimeError(
                        f"Failed to generate unique serial number after {self.max_serial_retries} attempts"
                    )
