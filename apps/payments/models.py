from django.db import models
from django.core.validators import MinValueValidator


class IntentStatus(models.TextChoices):
    CREATED = 'created', 'Created'
    SUCCEEDED = 'succeeded', 'Succeeded'
    FAILED = 'failed', 'Failed'
    CANCELED = 'canceled', 'Canceled'


TERMINAL_STATUSES = (
    IntentStatus.SUCCEEDED,
    IntentStatus.FAILED,
    IntentStatus.CANCELED,
)


class PaymentIntentRecord(models.Model):
    """
    One attempt to pay for a tier.

    Status only moves CREATED -> SUCCEEDED | FAILED | CANCELED, driven by
    verified gateway responses (client confirm or webhook).
    """

    # Gateway-assigned identifier
    intent_id = models.CharField(max_length=255, unique=True)

    # Who is paying, for what
    user_ref = models.CharField(max_length=128, db_index=True)
    tier = models.CharField(max_length=16)
    amount_minor = models.BigIntegerField(validators=[MinValueValidator(0)])
    currency = models.CharField(max_length=3, default='usd')

    # Contact metadata from the client's session store
    email = models.EmailField(max_length=255, blank=True)
    username = models.CharField(max_length=150, blank=True)

    status = models.CharField(
        max_length=20,
        choices=IntentStatus.choices,
        default=IntentStatus.CREATED
    )
    last_gateway_status = models.CharField(max_length=50, blank=True)
    failure_message = models.TextField(blank=True)

    # Set in the same transaction as the ledger upgrade
    ledger_applied_at = models.DateTimeField(null=True, blank=True)
    finalized_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_intents'
        indexes = [
            models.Index(fields=['user_ref', 'status'], name='intent_user_status_idx'),
            models.Index(fields=['status', 'created_at'], name='intent_status_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.intent_id} - {self.tier} for {self.user_ref} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def needs_ledger_repair(self):
        """Succeeded at the gateway but the ledger upgrade never committed."""
        return self.status == IntentStatus.SUCCEEDED and self.ledger_applied_at is None


class WebhookOutcome(models.TextChoices):
    APPLIED = 'applied', 'Applied'
    DUPLICATE = 'duplicate', 'Duplicate'
    FAILED_RECORDED = 'failed_recorded', 'Failure recorded'
    IGNORED = 'ignored', 'Ignored'
    CONFLICT = 'conflict', 'Needs reconciliation'


class ProcessedWebhookEvent(models.Model):
    """Gateway event already handled; re-deliveries are acknowledged without effect."""

    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100)
    intent_id = models.CharField(max_length=255, blank=True, db_index=True)
    outcome = models.CharField(
        max_length=20,
        choices=WebhookOutcome.choices,
        default=WebhookOutcome.IGNORED
    )
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'processed_webhook_events'
        ordering = ['-received_at']

    def __str__(self):
        return f"{self.event_id} ({self.event_type}) - {self.outcome}"
