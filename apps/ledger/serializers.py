from rest_framework import serializers


# =============================================================================
# Input Serializers
# =============================================================================

class LeaderboardQuerySerializer(serializers.Serializer):
    """
    Validate query parameters for the leaderboard listing.

    Query Parameters:
        limit (int): Page size, 1..100 (default 20)
        page (int): 1-based page number (default 1)
    """

    limit = serializers.IntegerField(
        required=False,
        default=20,
        min_value=1,
        max_value=100
    )
    page = serializers.IntegerField(required=False, default=1, min_value=1)


# =============================================================================
# Output Serializers
# =============================================================================

class LeaderboardRowSerializer(serializers.Serializer):
    """One ranked row as produced by LeaderboardIndex."""

    rank = serializers.IntegerField()
    userId = serializers.CharField(source='user_ref')
    username = serializers.CharField(source='display_name')
    tier = serializers.CharField()
    amountSpent = serializers.IntegerField(source='cumulative_spend_minor')
    lastUpdated = serializers.DateTimeField(source='updated_at')


class PaginationSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    limit = serializers.IntegerField()
    pages = serializers.IntegerField()


class LeaderboardResponseSerializer(serializers.Serializer):
    leaderboard = LeaderboardRowSerializer(many=True)
    pagination = PaginationSerializer()


class TierUserSerializer(serializers.Serializer):
    """Public fields of a user tier record."""

    id = serializers.CharField(source='user_ref')
    username = serializers.CharField(source='get_display_name')
    tier = serializers.CharField()
    serialNumber = serializers.CharField(source='serial_number')


class UserProfileSerializer(TierUserSerializer):
    """Tier record as shown on a user's profile. Contact details stay private."""

    amountSpent = serializers.IntegerField(source='cumulative_spend_minor')
    currency = serializers.CharField()
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')


class UserProfileResponseSerializer(serializers.Serializer):
    user = UserProfileSerializer()


class UserLeaderboardResponseSerializer(serializers.Serializer):
    leaderboard = LeaderboardRowSerializer()
    user = TierUserSerializer()


class ErrorSerializer(serializers.Serializer):
    error = serializers.CharField()
