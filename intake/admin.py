from django.contrib import admin

from .models import (
    AutomationLog,
    PollerLease,
    ProcessingLogEntry,
    ReviewQueueEntry,
    SecurityAuditEntry,
)


@admin.register(ProcessingLogEntry)
class ProcessingLogEntryAdmin(admin.ModelAdmin):
    list_display = ['email_from', 'campaign_id', 'source', 'status',
                    'confidence_score', 'received_at', 'processing_duration_ms']
    list_filter = ['status', 'source']
    search_fields = ['email_from', 'campaign_id', 'dedup_key', 'email_subject']
    readonly_fields = [f.name for f in ProcessingLogEntry._meta.fields]
    date_hierarchy = 'received_at'

    def has_delete_permission(self, request, obj=None):
        # Audit trail: entries are never deleted
        return False


@admin.register(SecurityAuditEntry)
class SecurityAuditEntryAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'ip_address', 'allowed', 'secret_valid',
                    'signature_valid', 'timestamp_valid', 'ip_allowed', 'rejection_reason']
    list_filter = ['allowed', 'rejection_reason']
    search_fields = ['ip_address', 'webhook_id']
    readonly_fields = [f.name for f in SecurityAuditEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ReviewQueueEntry)
class ReviewQueueEntryAdmin(admin.ModelAdmin):
    list_display = ['log_entry', 'reason', 'priority', 'status', 'auto_approve_at', 'created_at']
    list_filter = ['status', 'reason']
    search_fields = ['log_entry__email_from']
    raw_id_fields = ['log_entry']
    actions = ['mark_rejected']

    def mark_rejected(self, request, queryset):
        updated = queryset.update(status=ReviewQueueEntry.Status.REJECTED)
        self.message_user(request, f'Rejected {updated} review items.')
    mark_rejected.short_description = 'Reject selected review items'


@admin.register(AutomationLog)
class AutomationLogAdmin(admin.ModelAdmin):
    list_display = ['publisher', 'action', 'confidence', 'created_at']
    list_filter = ['action']
    search_fields = ['publisher__email']
    raw_id_fields = ['publisher', 'log_entry']


@admin.register(PollerLease)
class PollerLeaseAdmin(admin.ModelAdmin):
    list_display = ['name', 'holder', 'acquired_at', 'expires_at']
