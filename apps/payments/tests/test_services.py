"""
Service layer unit tests for payments app.

Tests cover:
- Intent creation against the tier catalog
- Verification state machine (success, decline, pending, underpayment)
- Exactly-once ledger upgrades
- Rollback and repair after a failed finalization
- Concurrency between client confirm and webhook
"""

import threading
from unittest.mock import patch

import pytest
from django.db import connection
from django.test import TransactionTestCase

from apps.ledger.models import UserTierRecord
from apps.ledger.services import LeaderboardIndex, TierLedger
from apps.payments.models import PaymentIntentRecord, IntentStatus, WebhookOutcome
from apps.payments.services import (
    PaymentVerifier,
    WebhookIngestor,
    UnknownTier,
    IntentNotFound,
    IntentOwnershipMismatch,
    GatewayUnavailable,
)
from apps.payments.tests.fakes import (
    FakeGateway,
    event_payload,
    intent_object,
    sign_payload,
)
from apps.tiers.catalog import TIERS


# =============================================================================
# Intent Creation Tests
# =============================================================================

@pytest.mark.django_db
class TestCreateIntent:
    """Tests for PaymentVerifier.create_intent."""

    @pytest.mark.parametrize('tier', TIERS, ids=lambda t: t.slug)
    def test_create_intent_charges_tier_price(self, verifier, tier):
        """The gateway intent is for exactly the tier's price."""
        created = verifier.create_intent(tier_id=tier.slug, user_ref='U1')

        assert created.amount_minor == tier.price_minor_units
        assert created.currency == 'usd'
        assert created.client_secret.startswith(created.intent_id)

        gateway_intent = FakeGateway.intents[created.intent_id]
        assert gateway_intent.amount == tier.price_minor_units
        assert gateway_intent.metadata['tier'] == tier.slug
        assert gateway_intent.metadata['userId'] == 'U1'

        record = PaymentIntentRecord.objects.get(intent_id=created.intent_id)
        assert record.status == IntentStatus.CREATED
        assert record.amount_minor == tier.price_minor_units
        assert record.tier == tier.slug

    def test_create_intent_accepts_upper_case_tier(self, verifier):
        created = verifier.create_intent(tier_id='GOD', user_ref='U1')

        record = PaymentIntentRecord.objects.get(intent_id=created.intent_id)
        assert record.tier == 'god'

    def test_contact_metadata_stored(self, elite_intent):
        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.email == 'u1@example.com'
        assert record.username == 'Moneybags'
        assert FakeGateway.intents[elite_intent.intent_id].metadata['email'] == 'u1@example.com'

    def test_unknown_tier_rejected(self, verifier):
        """Unknown tiers never reach the gateway."""
        with pytest.raises(UnknownTier):
            verifier.create_intent(tier_id='platinum', user_ref='U1')

        assert FakeGateway.intents == {}
        assert PaymentIntentRecord.objects.count() == 0

    def test_gateway_unavailable_stores_nothing(self, verifier):
        FakeGateway.unavailable = True

        with pytest.raises(GatewayUnavailable):
            verifier.create_intent(tier_id='elite', user_ref='U1')

        assert PaymentIntentRecord.objects.count() == 0


# =============================================================================
# Confirmation Tests
# =============================================================================

@pytest.mark.django_db
class TestConfirmIntent:
    """Tests for PaymentVerifier.confirm_intent."""

    def test_confirm_succeeded_intent_upgrades_user(self, verifier, elite_intent):
        """ELITE intent for U1, gateway success, confirm -> verified at ELITE price."""
        FakeGateway.succeed(elite_intent.intent_id)

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is True
        assert confirmation.tier == 'elite'
        assert confirmation.amount_minor == 999900
        assert confirmation.duplicate is False

        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.SUCCEEDED
        assert record.finalized_at is not None
        assert record.ledger_applied_at is not None

        user = UserTierRecord.objects.get(user_ref='U1')
        assert user.tier == 'elite'
        assert user.cumulative_spend_minor == 999900
        assert user.display_name == 'Moneybags'
        assert user.last_payment_intent_id == elite_intent.intent_id
        assert LeaderboardIndex().rank_of('U1') == 1

    @pytest.mark.parametrize('tier', TIERS, ids=lambda t: t.slug)
    def test_spend_increases_by_exact_price(self, verifier, tier):
        created = verifier.create_intent(tier_id=tier.slug, user_ref='U1')
        FakeGateway.succeed(created.intent_id)

        verifier.confirm_intent(intent_id=created.intent_id, user_ref='U1')

        user = UserTierRecord.objects.get(user_ref='U1')
        assert user.tier == tier.slug
        assert user.cumulative_spend_minor == tier.price_minor_units

    def test_double_confirm_applies_once(self, verifier, elite_intent):
        """The second confirm is a duplicate and skips the gateway."""
        FakeGateway.succeed(elite_intent.intent_id)

        first = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')
        second = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert first.verified and second.verified
        assert second.duplicate is True
        assert FakeGateway.retrieve_calls == 1
        assert UserTierRecord.objects.get(user_ref='U1').cumulative_spend_minor == 999900

    def test_finalize_twice_applies_once(self, verifier, elite_intent):
        first = verifier.finalize_success(elite_intent.intent_id)
        second = verifier.finalize_success(elite_intent.intent_id)

        assert first.duplicate is False
        assert second.duplicate is True
        assert second.verified is True
        assert UserTierRecord.objects.get(user_ref='U1').cumulative_spend_minor == 999900

    def test_unknown_intent(self, verifier):
        with pytest.raises(IntentNotFound):
            verifier.confirm_intent(intent_id='pi_missing', user_ref='U1')

    def test_ownership_mismatch(self, verifier, elite_intent):
        """Another user cannot verify U1's payment."""
        FakeGateway.succeed(elite_intent.intent_id)

        with pytest.raises(IntentOwnershipMismatch):
            verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U2')

        assert FakeGateway.retrieve_calls == 0
        assert not UserTierRecord.objects.exists()

    def test_declined_payment_stays_retryable(self, verifier, elite_intent):
        """A decline is not final; the customer can retry on the same intent."""
        FakeGateway.decline(elite_intent.intent_id, message='Insufficient funds')

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is False
        assert confirmation.status == IntentStatus.CREATED
        assert confirmation.gateway_status == 'requires_payment_method'
        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.CREATED
        assert not UserTierRecord.objects.exists()

    def test_retry_after_decline_upgrades_once(self, verifier, elite_intent):
        FakeGateway.decline(elite_intent.intent_id)
        declined = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        FakeGateway.succeed(elite_intent.intent_id)
        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert declined.verified is False
        assert confirmation.verified is True
        assert confirmation.duplicate is False
        assert UserTierRecord.objects.count() == 1
        user = UserTierRecord.objects.get(user_ref='U1')
        assert user.tier == 'elite'
        assert user.cumulative_spend_minor == 999900

    def test_failed_intent_is_terminal(self, verifier, elite_intent):
        """Confirming a failed intent doesn't ask the gateway again."""
        verifier.mark_terminal(elite_intent.intent_id, status=IntentStatus.FAILED, failure_message='Card declined')

        FakeGateway.succeed(elite_intent.intent_id)
        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is False
        assert confirmation.status == IntentStatus.FAILED
        assert FakeGateway.retrieve_calls == 0
        assert not UserTierRecord.objects.exists()

    def test_success_after_failure_is_conflict(self, verifier, elite_intent):
        verifier.mark_terminal(elite_intent.intent_id, status=IntentStatus.FAILED)

        confirmation = verifier.finalize_success(elite_intent.intent_id)

        assert confirmation.verified is False
        assert confirmation.duplicate is False
        assert confirmation.conflict is True
        assert confirmation.status == IntentStatus.FAILED
        assert not UserTierRecord.objects.exists()

    def test_canceled_payment_marks_canceled(self, verifier, elite_intent):
        FakeGateway.cancel(elite_intent.intent_id)

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is False
        assert confirmation.status == IntentStatus.CANCELED

    def test_pending_payment_leaves_record_created(self, verifier, elite_intent):
        FakeGateway.processing(elite_intent.intent_id)

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is False
        assert confirmation.gateway_status == 'processing'
        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.CREATED

    def test_underpayment_not_upgraded(self, verifier, elite_intent):
        """A success for less than the tier price upgrades nobody."""
        FakeGateway.succeed(elite_intent.intent_id, amount_received=100)

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is False
        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.CREATED
        assert not UserTierRecord.objects.exists()

    def test_gateway_unavailable_commits_nothing(self, verifier, elite_intent):
        FakeGateway.succeed(elite_intent.intent_id)
        FakeGateway.unavailable = True

        with pytest.raises(GatewayUnavailable):
            verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.CREATED

    def test_ledger_failure_rolls_back_finalization(self, verifier, elite_intent):
        """If the upgrade fails the intent stays CREATED and a retry succeeds."""
        FakeGateway.succeed(elite_intent.intent_id)

        with patch.object(TierLedger, 'apply_upgrade', side_effect=RuntimeError('disk full')):
            with pytest.raises(RuntimeError):
                verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        record = PaymentIntentRecord.objects.get(intent_id=elite_intent.intent_id)
        assert record.status == IntentStatus.CREATED
        assert record.ledger_applied_at is None

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')
        assert confirmation.verified is True
        assert UserTierRecord.objects.get(user_ref='U1').cumulative_spend_minor == 999900

    def test_succeeded_without_upgrade_is_repaired(self, verifier, elite_intent):
        PaymentIntentRecord.objects.filter(intent_id=elite_intent.intent_id).update(
            status=IntentStatus.SUCCEEDED
        )
        FakeGateway.succeed(elite_intent.intent_id)

        confirmation = verifier.confirm_intent(intent_id=elite_intent.intent_id, user_ref='U1')

        assert confirmation.verified is True
        assert confirmation.duplicate is False
        assert UserTierRecord.objects.get(user_ref='U1').tier == 'elite'

    def test_cheaper_tier_never_downgrades(self, verifier):
        """A REGULAR payment on a GOD user adds spend but keeps GOD."""
        god = verifier.create_intent(tier_id='god', user_ref='U1')
        FakeGateway.succeed(god.intent_id)
        verifier.confirm_intent(intent_id=god.intent_id, user_ref='U1')

        regular = verifier.create_intent(tier_id='regular', user_ref='U1')
        FakeGateway.succeed(regular.intent_id)
        confirmation = verifier.confirm_intent(intent_id=regular.intent_id, user_ref='U1')

        assert confirmation.verified is True
        user = UserTierRecord.objects.get(user_ref='U1')
        assert user.tier == 'god'
        assert user.cumulative_spend_minor == 9999900 + 99900


# =============================================================================
# Concurrency Tests
# =============================================================================

class TestFinalizationConcurrency(TransactionTestCase):
    """
    Races between the client confirm and the webhook.

    TransactionTestCase so each thread commits on its own connection.
    """

    def setUp(self):
        FakeGateway.reset()
        self.gateway = FakeGateway()
        self.verifier = PaymentVerifier(gateway=self.gateway)
        self.created = self.verifier.create_intent(tier_id='elite', user_ref='U1')
        FakeGateway.succeed(self.created.intent_id)

    def tearDown(self):
        FakeGateway.reset()

    def _run_threads(self, targets):
        results = []
        errors = []

        def run(target):
            try:
                results.append(target())
            except Exception as e:
                errors.append(f"Unexpected error: {e!r}")
            finally:
                connection.close()

        threads = [threading.Thread(target=run, args=(target,)) for target in targets]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_concurrent_confirm_and_webhook_upgrade_once(self):
        """Both callers report success; the user is charged into the ledger once."""
        intent = FakeGateway.intents[self.created.intent_id]
        payload = event_payload('payment_intent.succeeded', intent_object(intent))
        signature = sign_payload(payload)

        def confirm():
            confirmation = PaymentVerifier(gateway=FakeGateway()).confirm_intent(
                intent_id=self.created.intent_id,
                user_ref='U1',
            )
            return 'confirm', confirmation.verified, confirmation.duplicate

        def webhook():
            result = WebhookIngestor(gateway=FakeGateway()).handle_event(
                payload.encode('utf-8'),
                signature,
            )
            settled = result.accepted and result.outcome in (WebhookOutcome.APPLIED, WebhookOutcome.DUPLICATE)
            return 'webhook', settled, result.duplicate

        results, errors = self._run_threads([confirm, webhook])

        assert errors == [], errors
        assert sorted(caller for caller, _, _ in results) == ['confirm', 'webhook']
        assert all(verified for _, verified, _ in results)
        assert sum(1 for _, _, duplicate in results if not duplicate) == 1

        record = PaymentIntentRecord.objects.get(intent_id=self.created.intent_id)
        assert record.status == IntentStatus.SUCCEEDED
        assert record.ledger_applied_at is not None

        user = UserTierRecord.objects.get(user_ref='U1')
        assert user.cumulative_spend_minor == 999900
        assert LeaderboardIndex().rank_of('U1') == 1

    def test_concurrent_confirms_upgrade_once(self):
        def confirm():
            return PaymentVerifier(gateway=FakeGateway()).confirm_intent(
                intent_id=self.created.intent_id,
                user_ref='U1',
            )

        results, errors = self._run_threads([confirm] * 4)

        assert errors == [], errors
        assert len(results) == 4
        assert all(c.verified for c in results)
        assert sum(1 for c in results if not c.duplicate) == 1
        assert UserTierRecord.objects.get(user_ref='U1').cumulative_spend_minor == 999900
