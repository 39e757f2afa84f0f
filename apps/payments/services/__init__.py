"""
Payments app services layer.

PaymentVerifier and WebhookIngestor both finalize through
PaymentVerifier.finalize_success, so an intent upgrades its user once.
"""

from .exceptions import (
    PaymentsServiceError,
    UnknownTier,
    IntentNotFound,
    IntentOwnershipMismatch,
    GatewayUnavailable,
    InvalidSignature,
    LedgerConflict,
)

from .gateway import (
    GatewayEvent,
    GatewayIntent,
    GatewayStatus,
    PaymentGateway,
    StripeGateway,
    build_gateway,
)

from .verification import (
    Confirmation,
    IntentCreated,
    PaymentVerifier,
)

from .webhooks import (
    WebhookIngestor,
    WebhookResult,
)


__all__ = [
    # Exceptions
    'PaymentsServiceError',
    'UnknownTier',
    'IntentNotFound',
    'IntentOwnershipMismatch',
    'GatewayUnavailable',
    'InvalidSignature',
    'LedgerConflict',

    # Gateway
    'GatewayEvent',
    'GatewayIntent',
    'GatewayStatus',
    'PaymentGateway',
    'StripeGateway',
    'build_gateway',

    # Verification
    'Confirmation',
    'IntentCreated',
    'PaymentVerifier',

    # Webhooks
    'WebhookIngestor',
    'WebhookResult',
]
