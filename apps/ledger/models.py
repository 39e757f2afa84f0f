from django.db import models
from django.core.validators import MinValueValidator


class TierChoices(models.TextChoices):
    REGULAR = 'regular', 'Regular Tier'
    ELITE = 'elite', 'Elite Tier'
    GOD = 'god', 'God Mode'


class UserTierRecord(models.Model):
    """
    Authoritative tier and cumulative spend of one user.

    Written only by TierLedger.apply_upgrade.
    """

    user_ref = models.CharField(max_length=128, unique=True)
    tier = models.CharField(max_length=16, choices=TierChoices.choices)

    # Spend in minor units (cents), never decreases
    cumulative_spend_minor = models.BigIntegerField(
        default=0,
        validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, default='usd')

    # Assigned on first upgrade, immutable afterwards
    serial_number = models.CharField(max_length=32, unique=True, editable=False)

    # Contact details captured from the purchase metadata
    display_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(max_length=255, blank=True)

    last_payment_intent_id = models.CharField(max_length=255, blank=True)

    # Timestamps (updated_at is set explicitly by the ledger)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField()

    class Meta:
        db_table = 'user_tier_records'
        indexes = [
            models.Index(fields=['tier'], name='user_tier_tier_idx'),
            models.Index(fields=['-cumulative_spend_minor', 'updated_at'], name='user_tier_spend_idx'),
        ]
        ordering = ['-cumulative_spend_minor', 'updated_at']

    def __str__(self):
        return f"{self.get_display_name()} - {self.tier} ({self.cumulative_spend_minor})"

    def get_display_name(self):
        """Return display name, email prefix or the raw user reference."""
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split('@')[0]
        return self.user_ref


class LeaderboardEntry(models.Model):
    """Read-optimized ranking projection of a UserTierRecord."""

    record = models.OneToOneField(
        UserTierRecord,
        on_delete=models.CASCADE,
        related_name='leaderboard_entry'
    )
    user_ref = models.CharField(max_length=128, unique=True)
    display_name = models.CharField(max_length=150, blank=True)
    tier = models.CharField(max_length=16, choices=TierChoices.choices)
    cumulative_spend_minor = models.BigIntegerField(default=0)

    # Copied from the source record so ties rank by upgrade time
    updated_at = models.DateTimeField()

    class Meta:
        db_table = 'leaderboard_entries'
        indexes = [
            models.Index(fields=['-cumulative_spend_minor', 'updated_at', 'user_ref'], name='leaderboard_rank_idx'),
        ]
        ordering = ['-cumulative_spend_minor', 'updated_at', 'user_ref']
        verbose_name_plural = 'leaderboard entries'

    def __str__(self):
        return f"{self.display_name or self.user_ref}: {self.cumulative_spend_minor}"
