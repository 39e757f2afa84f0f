"""
Ledger app services layer.

TierLedger is the only writer of user tier records; LeaderboardIndex is the
derived ranking it patches inside the same transaction.
"""

from .exceptions import (
    LedgerServiceError,
    UserNotFoundError,
    EntryNotFoundError,
)

from .leaderboard import LeaderboardIndex

from .tier_ledger import (
    TierLedger,
    generate_serial_number,
)


__all__ = [
    # Exceptions
    'LedgerServiceError',
    'UserNotFoundError',
    'EntryNotFoundError',

    # Leaderboard
    'LeaderboardIndex',

    # Ledger
    'TierLedger',
    'generate_serial_number',
]
