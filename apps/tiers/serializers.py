from rest_framework import serializers


class TierSerializer(serializers.Serializer):
    """Public view of a TierDefinition."""

    id = serializers.CharField(source='slug')
    name = serializers.CharField(source='display_name')
    price = serializers.IntegerField(source='price_minor_units')
    currency = serializers.CharField()
    description = serializers.CharField()
    features = serializers.ListField(child=serializers.CharField())


class TierListResponseSerializer(serializers.Serializer):
    tiers = TierSerializer(many=True)
