# ==========================================
# apps/ledger/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import UserTierRecord, LeaderboardEntry, TierChoices
from .services import LeaderboardIndex


TIER_COLORS = {
    TierChoices.REGULAR: ('#C0C0C0', '#1A1A1A'),
    TierChoices.ELITE: ('#D4AF37', '#1A1A1A'),
    TierChoices.GOD: ('#1A1A1A', '#E5E4E2'),
}


def tier_badge_html(tier, label):
    bg, fg = TIER_COLORS.get(tier, ('#ccc', '#666'))
    return format_html(
        '<span style="background: {}; color: {}; padding: 3px 8px; '
        'border-radius: 10px; font-size: 11px;">{}</span>',
        bg, fg, label
    )


def format_minor(amount_minor):
    """Format cents as dollars for display."""
    return f"${amount_minor / 100:,.2f}"


@admin.register(UserTierRecord)
class UserTierRecordAdmin(admin.ModelAdmin):
    """
    Admin interface for tier records.

    Records are written only by the tier ledger, so everything financial
    is read-only here.
    """

    list_display = [
        'user_ref',
        'display_name',
        'tier_badge',
        'get_spend_display',
        'serial_number',
        'updated_at',
    ]

    list_filter = ['tier', 'updated_at']
    search_fields = ['user_ref', 'display_name', 'email', 'serial_number']

    readonly_fields = [
        'user_ref',
        'tier',
        'cumulative_spend_minor',
        'currency',
        'serial_number',
        'last_payment_intent_id',
        'created_at',
        'updated_at',
    ]

    ordering = ['-cumulative_spend_minor', 'updated_at']

    def tier_badge(self, obj):
        """Display tier as colored badge."""
        return tier_badge_html(obj.tier, obj.get_tier_display())
    tier_badge.short_description = 'Tier'
    tier_badge.admin_order_field = 'tier'

    def get_spend_display(self, obj):
        return format_minor(obj.cumulative_spend_minor)
    get_spend_display.short_description = 'Spent'
    get_spend_display.admin_order_field = 'cumulative_spend_minor'

    def has_add_permission(self, request):
        """Records are created by the ledger after a verified payment."""
        return False


@admin.register(LeaderboardEntry)
class LeaderboardEntryAdmin(admin.ModelAdmin):
    """Read-only view of the leaderboard projection."""

    list_display = [
        'user_ref',
        'display_name',
        'tier',
        'get_spend_display',
        'updated_at',
    ]
    search_fields = ['user_ref', 'display_name']
    ordering = ['-cumulative_spend_minor', 'updated_at', 'user_ref']
    actions = ['rebuild_leaderboard']

    def get_spend_display(self, obj):
        return format_minor(obj.cumulative_spend_minor)
    get_spend_display.short_description = 'Spent'
    get_spend_display.admin_order_field = 'cumulative_spend_minor'

    @admin.action(description='Rebuild leaderboard from tier records')
    def rebuild_leaderboard(self, request, queryset):
        written = LeaderboardIndex().rebuild()
        self.message_user(request, f'Rebuilt {written} leaderboard entries.')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
