"""
Leaderboard index service.

Maintains the ranked projection of user tier records. Entries are
ordered by cumulative spend (descending), then by the earliest update,
then by user reference so that ranks are always deterministic.
"""

import logging
from typing import List

from django.db import transaction
from django.db.models import Q

from apps.ledger.models import LeaderboardEntry, UserTierRecord

from .exceptions import EntryNotFoundError

logger = logging.getLogger(__name__)


class LeaderboardIndex:
    """
    Ordered, read-optimized view over UserTierRecord.

    ``upsert`` is called by TierLedger inside its transaction, so readers
    never see a record update without the matching entry.
    """

    def upsert(self, record: UserTierRecord) -> LeaderboardEntry:
        """Insert or replace the entry for ``record.user_ref``."""
        entry, created = LeaderboardEntry.objects.update_or_create(
            user_ref=record.user_ref,
            defaults={
                'record': record,
                'display_name': record.get_display_name(),
                'tier': record.tier,
                'cumulative_spend_minor': record.cumulative_spend_minor,
                'updated_at': record.updated_at,
            }
        )
        logger.debug(
            f"{'Created' if created else 'Updated'} leaderboard entry for {record.user_ref}"
        )
        return entry

    def count(self) -> int:
        return LeaderboardEntry.objects.count()

    def page(self, offset: int = 0, limit: int = 20) -> List[dict]:
        """
        Return ``limit`` ranked entries starting at ``offset``.

        Args:
            offset: Number of entries to skip (0-based)
            limit: Maximum number of entries to return

        Returns:
            List of dicts with a 1-based ``rank`` plus the entry fields.

        Raises:
            ValueError: If offset is negative or limit is not positive
        """
        if offset < 0:
            raise ValueError("Offset must not be negative")
        if limit < 1:
            raise ValueError("Limit must be positive")

        entries = LeaderboardEntry.objects.order_by(
            '-cumulative_spend_minor', 'updated_at', 'user_ref'
        )[offset:offset + limit]

        return [
            self._as_row(entry, rank=offset + position + 1)
            for position, entry in enumerate(entries)
        ]

    def rank_of(self, user_ref: str) -> int:
        """
        Return the 1-based rank of ``user_ref``.

        Raises:
            EntryNotFoundError: If the user has no leaderboard entry
        """
        try:
            entry = LeaderboardEntry.objects.get(user_ref=user_ref)
        except LeaderboardEntry.DoesNotExist:
            raise EntryNotFoundError(f"No leaderboard entry for user {user_ref}")

        spend = entry.cumulative_spend_minor
        ahead = LeaderboardEntry.objects.filter(
            Q(cumulative_spend_minor__gt=spend) |
            Q(cumulative_spend_minor=spend, updated_at__lt=entry.updated_at) |
            Q(
                cumulative_spend_minor=spend,
                updated_at=entry.updated_at,
                user_ref__lt=entry.user_ref
            )
        ).count()
        return ahead + 1

    def entry_for(self, user_ref: str) -> dict:
        """
        Return the ranked row for a single user.

        Raises:
            EntryNotFoundError: If the user has no leaderboard entry
        """
        rank = self.rank_of(user_ref)
        entry = LeaderboardEntry.objects.get(user_ref=user_ref)
        return self._as_row(entry, rank=rank)

    @transaction.atomic
    def rebuild(self) -> int:
        """
        Recompute every entry from the tier records.

        Returns:
            Number of entries written
        """
        written = 0
        for record in UserTierRecord.objects.select_for_update().iterator():
            self.upsert(record)
            written += 1

        # Entries cascade with their record, but clear any stray rows
        stale = LeaderboardEntry.objects.exclude(
            user_ref__in=UserTierRecord.objects.values('user_ref')
        )
        deleted, _ = stale.delete()
        if deleted:
            logger.warning(f"Removed {deleted} stale leaderboard entries")

        logger.info(f"Leaderboard rebuilt with {written} entries")
        return written

    @staticmethod
    def _as_row(entry: LeaderboardEntry, rank: int) -> dict:
        return {
            'rank': rank,
            'user_ref': entry.user_ref,
            'display_name': entry.display_name,
            'tier': entry.tier,
            'cumulative_spend_minor': entry.cumulative_spend_minor,
            'updated_at': entry.updated_at,
        }
