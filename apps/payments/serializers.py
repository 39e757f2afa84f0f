from rest_framework import serializers


# =============================================================================
# Input Serializers
# =============================================================================

class CreateIntentInputSerializer(serializers.Serializer):
    """
    Validate input for creating a payment intent.

    Fields:
        tier (str): Tier id, any case (regular, elite, god)
        userId (str): External user identifier
        email (str): Optional contact email
        username (str): Optional leaderboard name
    """

    tier = serializers.CharField(max_length=16)
    userId = serializers.CharField(max_length=128)
    email = serializers.EmailField(max_length=255, required=False, allow_blank=True)
    username = serializers.CharField(max_length=150, required=False, allow_blank=True)


class VerifyIntentInputSerializer(serializers.Serializer):
    """Validate input for verifying a payment intent."""

    userId = serializers.CharField(max_length=128)


# =============================================================================
# Output Serializers
# =============================================================================

class CreateIntentResponseSerializer(serializers.Serializer):
    clientSecret = serializers.CharField()
    paymentIntentId = serializers.CharField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()


class VerifyIntentResponseSerializer(serializers.Serializer):
    userId = serializers.CharField()
    tier = serializers.CharField()
    verified = serializers.BooleanField()
    amount = serializers.IntegerField()


class PaymentNotCompletedSerializer(serializers.Serializer):
    error = serializers.CharField()
    status = serializers.CharField()


class WebhookResponseSerializer(serializers.Serializer):
    received = serializers.BooleanField()
    event = serializers.CharField()
    duplicate = serializers.BooleanField(required=False)


class ErrorSerializer(serializers.Serializer):
    error = serializers.CharField()
