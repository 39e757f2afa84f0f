"""
Domain-specific exceptions for the ledger app.

These exceptions represent lookups and rule violations in the tier
ledger and leaderboard, and are converted to HTTP responses in views.
"""


class LedgerServiceError(Exception):
    """Base exception for all ledger service errors."""
    pass


class UserNotFoundError(LedgerServiceError):
    """Raised when a user has no tier record yet."""
    pass


class EntryNotFoundError(LedgerServiceError):
    """Raised when a user has no leaderboard entry."""
    pass
