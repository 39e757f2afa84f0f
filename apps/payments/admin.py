# ==========================================
# apps/payments/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import PaymentIntentRecord, ProcessedWebhookEvent, IntentStatus


STATUS_COLORS = {
    IntentStatus.CREATED: ('#FFF3CD', '#856404'),
    IntentStatus.SUCCEEDED: ('#D4EDDA', '#155724'),
    IntentStatus.FAILED: ('#F8D7DA', '#721C24'),
    IntentStatus.CANCELED: ('#E2E3E5', '#383D41'),
}


@admin.register(PaymentIntentRecord)
class PaymentIntentRecordAdmin(admin.ModelAdmin):
    """
    Admin interface for payment intents.

    Intents are an audit trail; state only changes through the verifier.
    """

    list_display = [
        'intent_id',
        'user_ref',
        'tier',
        'get_amount_display',
        'status_badge',
        'ledger_applied_at',
        'created_at',
    ]

    list_filter = ['status', 'tier', 'created_at']
    search_fields = ['intent_id', 'user_ref', 'email', 'username']
    date_hierarchy = 'created_at'

    readonly_fields = [field.name for field in PaymentIntentRecord._meta.fields]

    fieldsets = (
        ('Intent', {
            'fields': ('intent_id', 'user_ref', 'tier', 'amount_minor', 'currency')
        }),
        ('Contact', {
            'fields': ('email', 'username')
        }),
        ('Status', {
            'fields': ('status', 'last_gateway_status', 'failure_message',
                       'finalized_at', 'ledger_applied_at')
        }),
        ('Timestamps', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        """Display status as colored badge."""
        bg, fg = STATUS_COLORS.get(obj.status, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def get_amount_display(self, obj):
        return f"{obj.amount_minor / 100:,.2f} {obj.currency.upper()}"
    get_amount_display.short_description = 'Amount'
    get_amount_display.admin_order_field = 'amount_minor'

    def has_add_permission(self, request):
        return False


@admin.register(ProcessedWebhookEvent)
class ProcessedWebhookEventAdmin(admin.ModelAdmin):
    list_display = ['event_id', 'event_type', 'intent_id', 'outcome', 'received_at']
    list_filter = ['event_type', 'outcome']
    search_fields = ['event_id', 'intent_id']
    readonly_fields = ['event_id', 'event_type', 'intent_id', 'outcome', 'received_at']

    def has_add_permission(self, request):
        return False
