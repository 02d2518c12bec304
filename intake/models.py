import uuid

from django.db import models
from django.db.models import Q


class ProcessingLogEntry(models.Model):
    """One row per inbound email considered for extraction.

    Append-only audit trail; only the confidence gate mutates it after
    creation. The conditional unique constraint on ``dedup_key`` is the
    storage-level deduplication guarantee shared by webhook and poller.
    """

    class Status(models.TextChoices):
        PROCESSING = 'processing', 'Processing'
        PARSED = 'parsed', 'Parsed'
        NEEDS_REVIEW = 'needs_review', 'Needs Review'
        FAILED = 'failed', 'Failed'

    class Source(models.TextChoices):
        WEBHOOK = 'webhook', 'Webhook'
        POLLER = 'poller', 'Poller'
        IMPORT = 'import', 'Import'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dedup_key = models.CharField(max_length=512)
    campaign_id = models.CharField(max_length=100, blank=True, default='', db_index=True)
    email_from = models.EmailField(max_length=320, db_index=True)
    email_to = models.CharField(max_length=320, blank=True, default='')
    email_subject = models.CharField(max_length=500, blank=True, default='')
    message_id = models.CharField(max_length=255, blank=True, default='')
    thread_id = models.CharField(max_length=255, blank=True, default='')
    webhook_id = models.CharField(max_length=255, blank=True, default='')
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.WEBHOOK)
    raw_content = models.TextField(blank=True, default='')
    html_content = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    parsed_data = models.JSONField(null=True, blank=True)
    confidence_score = models.FloatField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PROCESSING,
        db_index=True,
    )
    error_message = models.TextField(blank=True, default='')
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processing_duration_ms = models.IntegerField(null=True, blank=True)
    shadow_publisher = models.ForeignKey(
        'publishers.Publisher',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processing_logs',
    )

    class Meta:
        db_table = 'intake_processing_logs'
        ordering = ['-received_at']
        constraints = [
            models.UniqueConstraint(
                fields=['dedup_key'],
                condition=~Q(status='failed'),
                name='uniq_active_dedup_key',
            ),
        ]

    def __str__(self):
        return f"{self.email_from} [{self.status}]"


class SecurityAuditEntry(models.Model):
    """One row per inbound webhook call, allowed or not. Write-once."""

    ip_address = models.CharField(max_length=64, blank=True, default='')
    user_agent = models.TextField(blank=True, default='')
    provider = models.CharField(max_length=50, default='manyreach')
    webhook_id = models.CharField(max_length=255, blank=True, default='')
    secret_valid = models.BooleanField(default=False)
    signature_valid = models.BooleanField(default=False)
    timestamp_valid = models.BooleanField(default=False)
    ip_allowed = models.BooleanField(default=False)
    allowed = models.BooleanField(default=False)
    rejection_reason = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'intake_security_audit'
        ordering = ['-created_at']
        verbose_name_plural = 'Security audit entries'

    def __str__(self):
        verdict = 'allowed' if self.allowed else f"denied: {self.rejection_reason}"
        return f"{self.ip_address} {verdict}"


class ReviewQueueEntry(models.Model):
    """Human-review item for extractions below the auto-approve threshold."""

    class Reason(models.TextChoices):
        MEDIUM_CONFIDENCE = 'medium_confidence', 'Medium confidence'
        LOW_CONFIDENCE = 'low_confidence', 'Low confidence'
        VERY_LOW_CONFIDENCE = 'very_low_confidence', 'Very low confidence'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        IN_REVIEW = 'in_review', 'In Review'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    log_entry = models.OneToOneField(
        ProcessingLogEntry,
        on_delete=models.CASCADE,
        related_name='review_item',
    )
    priority = models.IntegerField(default=50)
    reason = models.CharField(max_length=30, choices=Reason.choices)
    suggested_actions = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    auto_approve_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'intake_review_queue'
        ordering = ['-priority', 'created_at']

    def __str__(self):
        return f"review {self.log_entry_id} ({self.reason}, p{self.priority})"


class AutomationLog(models.Model):
    """Append-only record of automated changes made to a publisher."""

    class Action(models.TextChoices):
        SHADOW_PUBLISHER_CREATED = 'shadow_publisher_created', 'Shadow publisher created'
        PUBLISHER_UPDATED = 'publisher_updated', 'Publisher updated'
        WEBSITE_LINKED = 'website_linked', 'Website linked'
        OFFERING_EXTRACTED = 'offering_extracted', 'Offering extracted'
        MIGRATION_COMPLETED = 'migration_completed', 'Migration completed'
        MIGRATION_RETRIED = 'migration_retried', 'Migration retried'

    publisher = models.ForeignKey(
        'publishers.Publisher',
        on_delete=models.CASCADE,
        related_name='automation_logs',
    )
    action = models.CharField(max_length=40, choices=Action.choices)
    log_entry = models.ForeignKey(
        ProcessingLogEntry,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='automation_logs',
    )
    previous_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    confidence = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'intake_automation_logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} publisher={self.publisher_id}"


class PollerLease(models.Model):
    """Single-flight lock row for scheduled poller runs."""

    name = models.CharField(max_length=100, unique=True)
    holder = models.CharField(max_length=100, blank=True, default='')
    acquired_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'intake_poller_leases'

    def __str__(self):
        return f"{self.name} held by {self.holder or '-'}"
