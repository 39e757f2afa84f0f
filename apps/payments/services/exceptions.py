"""
Domain exceptions for payments app.

Views translate these into HTTP responses; ``LedgerConflict`` is internal
to the verifier and never leaves the services layer.
"""
from apps.tiers.catalog import UnknownTier


class PaymentsServiceError(Exception):
    """Base exception for payments service errors."""
    pass


class IntentNotFound(PaymentsServiceError):
    """Raised when an intent id has no local record or gateway intent."""
    pass


class IntentOwnershipMismatch(PaymentsServiceError):
    """Raised when a user tries to verify someone else's intent."""
    pass


class GatewayUnavailable(PaymentsServiceError):
    """Raised when the payment gateway errors out or times out. Retryable."""
    pass


class InvalidSignature(PaymentsServiceError):
    """Raised when a webhook payload fails signature verification."""
    pass


class LedgerConflict(PaymentsServiceError):
    """Raised when another caller already finalized the intent."""
    pass


__all__ = [
    'PaymentsServiceError',
    'UnknownTier',
    'IntentNotFound',
    'IntentOwnershipMismatch',
    'GatewayUnavailable',
    'InvalidSignature',
    'LedgerConflict',
]
