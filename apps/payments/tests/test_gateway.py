"""
Tests for the Stripe gateway adapter.

The Stripe client is replaced with a mock; no network calls are made.
"""

from unittest.mock import Mock

import pytest
import stripe
from django.test import override_settings

from apps.payments.services import (
    GatewayStatus,
    StripeGateway,
    GatewayUnavailable,
    IntentNotFound,
    InvalidSignature,
    build_gateway,
)
from apps.payments.services.gateway import normalize_status
from apps.payments.tests.fakes import FakeGateway, TEST_WEBHOOK_SECRET, event_payload, sign_payload


def stripe_intent(**overrides):
    intent = {
        'id': 'pi_123',
        'object': 'payment_intent',
        'amount': 999900,
        'amount_received': 0,
        'currency': 'usd',
        'status': 'requires_payment_method',
        'client_secret': 'pi_123_secret_abc',
        'metadata': {'tier': 'elite', 'userId': 'U1'},
        'last_payment_error': None,
    }
    intent.update(overrides)
    return intent


@pytest.fixture
def stripe_gateway():
    gateway = StripeGateway(api_key='sk_test_dummy', webhook_secret=TEST_WEBHOOK_SECRET, timeout=5)
    gateway.client = Mock()
    return gateway


class TestNormalizeStatus:

    @pytest.mark.parametrize('raw_status, expected', [
        ('succeeded', GatewayStatus.SUCCEEDED),
        ('canceled', GatewayStatus.CANCELED),
        ('requires_payment_method', GatewayStatus.PENDING),
        ('requires_confirmation', GatewayStatus.PENDING),
        ('requires_action', GatewayStatus.PENDING),
        ('processing', GatewayStatus.PENDING),
    ])
    def test_status_mapping(self, raw_status, expected):
        assert normalize_status(raw_status) == expected


class TestStripeGateway:

    def test_create_intent(self, stripe_gateway):
        stripe_gateway.client.payment_intents.create.return_value = stripe_intent()

        intent = stripe_gateway.create_intent(
            amount=999900,
            currency='usd',
            metadata={'tier': 'elite', 'userId': 'U1'},
        )

        assert intent.intent_id == 'pi_123'
        assert intent.client_secret == 'pi_123_secret_abc'
        assert intent.status == GatewayStatus.PENDING
        params = stripe_gateway.client.payment_intents.create.call_args.kwargs['params']
        assert params['amount'] == 999900
        assert params['currency'] == 'usd'
        assert params['metadata'] == {'tier': 'elite', 'userId': 'U1'}

    def test_create_intent_connection_error(self, stripe_gateway):
        stripe_gateway.client.payment_intents.create.side_effect = stripe.APIConnectionError('timed out')

        with pytest.raises(GatewayUnavailable):
            stripe_gateway.create_intent(amount=100, currency='usd', metadata={})

    def test_retrieve_succeeded_intent(self, stripe_gateway):
        stripe_gateway.client.payment_intents.retrieve.return_value = stripe_intent(
            status='succeeded',
            amount_received=999900,
        )

        intent = stripe_gateway.retrieve_intent('pi_123')

        assert intent.status == GatewayStatus.SUCCEEDED
        assert intent.amount_received == 999900
        stripe_gateway.client.payment_intents.retrieve.assert_called_once_with('pi_123')

    def test_retrieve_declined_intent_is_pending(self, stripe_gateway):
        """A decline can be retried on the same intent, so it is not final."""
        stripe_gateway.client.payment_intents.retrieve.return_value = stripe_intent(
            last_payment_error={'message': 'Your card was declined.'},
        )

        intent = stripe_gateway.retrieve_intent('pi_123')

        assert intent.status == GatewayStatus.PENDING
        assert intent.raw_status == 'requires_payment_method'
        assert intent.failure_message == 'Your card was declined.'

    def test_retrieve_missing_intent(self, stripe_gateway):
        stripe_gateway.client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError(
            'No such payment_intent', 'id', http_status=404
        )

        with pytest.raises(IntentNotFound):
            stripe_gateway.retrieve_intent('pi_missing')

    def test_retrieve_rate_limited(self, stripe_gateway):
        stripe_gateway.client.payment_intents.retrieve.side_effect = stripe.RateLimitError('slow down')

        with pytest.raises(GatewayUnavailable):
            stripe_gateway.retrieve_intent('pi_123')

    def test_parse_event(self, stripe_gateway):
        payload = event_payload(
            'payment_intent.succeeded',
            stripe_intent(status='succeeded', amount_received=999900),
            event_id='evt_1',
        )

        event = stripe_gateway.parse_event(payload.encode('utf-8'), sign_payload(payload))

        assert event.event_id == 'evt_1'
        assert event.event_type == 'payment_intent.succeeded'
        assert event.intent.intent_id == 'pi_123'
        assert event.intent.status == GatewayStatus.SUCCEEDED
        assert event.intent.metadata['userId'] == 'U1'

    def test_parse_event_without_secret(self):
        gateway = StripeGateway(api_key='sk_test_dummy', webhook_secret='')
        payload = event_payload('payment_intent.succeeded', stripe_intent())

        with pytest.raises(InvalidSignature):
            gateway.parse_event(payload.encode('utf-8'), sign_payload(payload))


class TestBuildGateway:

    def test_builds_configured_class(self):
        gateway = build_gateway()
        assert isinstance(gateway, FakeGateway)

    @override_settings(
        PAYMENT_GATEWAY='apps.payments.services.gateway.StripeGateway',
        STRIPE_WEBHOOK_SECRET='whsec_configured',
        WEBHOOK_TOLERANCE_SECONDS=60,
    )
    def test_reads_settings(self):
        gateway = build_gateway()
        assert isinstance(gateway, StripeGateway)
        assert gateway.webhook_secret == 'whsec_configured'
        assert gateway.tolerance == 60
