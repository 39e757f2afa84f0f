"""
Management command to rebuild the leaderboard from tier records.

The leaderboard is normally patched by the tier ledger on every upgrade.
This command recomputes every entry, e.g. after restoring tier records
from a backup or editing them by hand.

Usage:
    python manage.py rebuild_leaderboard
    python manage.py rebuild_leaderboard --dry-run
"""

from django.core.management.base import BaseCommand
from django.db.models import F, Q
from apps.ledger.models import UserTierRecord, LeaderboardEntry
from apps.ledger.services import LeaderboardIndex


class Command(BaseCommand):
    help = 'Recompute all leaderboard entries from user tier records'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which entries are out of date without making changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        total = UserTierRecord.objects.count()
        missing = UserTierRecord.objects.filter(leaderboard_entry__isnull=True)
        stale = LeaderboardEntry.objects.exclude(
            Q(cumulative_spend_minor=F('record__cumulative_spend_minor')) &
            Q(tier=F('record__tier')) &
            Q(updated_at=F('record__updated_at'))
        )

        self.stdout.write(f'\nTier records: {total}')
        self.stdout.write(f'Missing entries: {missing.count()}')
        self.stdout.write(f'Out-of-date entries: {stale.count()}\n')

        for record in missing:
            self.stdout.write(f'  - missing: {record.user_ref} ({record.tier}, {record.cumulative_spend_minor})')
        for entry in stale.select_related('record'):
            self.stdout.write(
                f'  - stale: {entry.user_ref} {entry.cumulative_spend_minor} -> '
                f'{entry.record.cumulative_spend_minor}'
            )

        if dry_run:
            self.stdout.write(
                self.style.WARNING('\n--dry-run mode: No changes made.')
            )
            return

        written = LeaderboardIndex().rebuild()

        self.stdout.write(
            self.style.SUCCESS(f'\nRebuilt {written} leaderboard entries.')
        )
