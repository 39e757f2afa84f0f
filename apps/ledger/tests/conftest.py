from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.ledger.models import UserTierRecord
from apps.ledger.services import LeaderboardIndex, TierLedger, generate_serial_number


@pytest.fixture
def api_client():
    """Return an API client (endpoints are unauthenticated)."""
    return APIClient()


@pytest.fixture
def leaderboard():
    return LeaderboardIndex()


@pytest.fixture
def ledger(leaderboard):
    return TierLedger(leaderboard=leaderboard)


@pytest.fixture
def make_record(db, leaderboard):
    """
    Create a tier record (and its leaderboard entry) directly.

    ``minutes_ago`` controls updated_at so tie-break ordering is explicit.
    """
    base = timezone.now()

    def _make(user_ref, tier='regular', spend=99900, minutes_ago=0, display_name='', index=True):
        record = UserTierRecord.objects.create(
            user_ref=user_ref,
            tier=tier,
            cumulative_spend_minor=spend,
            serial_number=generate_serial_number(),
            display_name=display_name,
            updated_at=base - timedelta(minutes=minutes_ago),
        )
        if index:
            leaderboard.upsert(record)
        return record
    return _make
