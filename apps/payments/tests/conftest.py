import pytest
from rest_framework.test import APIClient

from apps.ledger.services import TierLedger
from apps.payments.services import PaymentVerifier, WebhookIngestor
from apps.payments.tests.fakes import (
    FakeGateway,
    event_payload,
    intent_object,
    sign_payload,
)


@pytest.fixture(autouse=True)
def reset_fake_gateway():
    """Every test starts with an empty gateway."""
    FakeGateway.reset()
    yield
    FakeGateway.reset()


@pytest.fixture
def api_client():
    """Return an API client (endpoints are unauthenticated)."""
    return APIClient()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ledger():
    return TierLedger()


@pytest.fixture
def verifier(gateway, ledger):
    return PaymentVerifier(gateway=gateway, ledger=ledger)


@pytest.fixture
def ingestor(gateway, verifier):
    return WebhookIngestor(gateway=gateway, verifier=verifier)


@pytest.fixture
def elite_intent(db, verifier):
    """An ELITE intent created for user U1, not yet paid."""
    return verifier.create_intent(
        tier_id='elite',
        user_ref='U1',
        email='u1@example.com',
        username='Moneybags',
    )


@pytest.fixture
def signed_event():
    """Build a (payload, signature header) pair for an intent event."""
    def _build(event_type, intent, event_id=None):
        payload = event_payload(event_type, intent_object(intent), event_id=event_id)
        return payload.encode('utf-8'), sign_payload(payload)
    return _build


@pytest.fixture
def post_webhook(api_client):
    """POST a raw signed payload to the webhook endpoint."""
    def _post(payload, signature):
        headers = {}
        if signature is not None:
            headers['HTTP_STRIPE_SIGNATURE'] = signature
        return api_client.generic(
            'POST',
            '/payments/webhook',
            payload,
            content_type='application/json',
            **headers
        )
    return _post