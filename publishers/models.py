import secrets
from datetime import timedelta

from django.db import models
from django.db.models import Count, Q
from django.utils import timezone


def normalize_domain(value: str) -> str:
    """Lower-case a domain and strip scheme, ``www.``, path and port."""
    domain = (value or '').strip().lower()
    for prefix in ('https://', 'http://'):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    domain = domain.split('/', 1)[0].split('?', 1)[0].split(':', 1)[0]
    if domain.startswith('www.'):
        domain = domain[4:]
    return domain.rstrip('.')


class Publisher(models.Model):
    """A publisher identity. Starts as a shadow until a real person claims it."""

    class AccountStatus(models.TextChoices):
        SHADOW = 'shadow', 'Shadow'
        UNCLAIMED = 'unclaimed', 'Unclaimed'
        ACTIVE = 'active', 'Active'

    class Source(models.TextChoices):
        MANYREACH = 'manyreach', 'ManyReach'
        MANUAL = 'manual', 'Manual'

    email = models.EmailField(unique=True)
    contact_name = models.CharField(max_length=255, blank=True, default='')
    company_name = models.CharField(max_length=255, blank=True, default='')
    phone = models.CharField(max_length=50, blank=True, default='')
    account_status = models.CharField(
        max_length=20,
        choices=AccountStatus.choices,
        default=AccountStatus.SHADOW,
    )
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.MANYREACH)
    source_metadata = models.JSONField(default=dict, blank=True)
    confidence_score = models.FloatField(null=True, blank=True)
    invitation_token = models.CharField(max_length=64, blank=True, default='', db_index=True)
    invitation_expires_at = models.DateTimeField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    shadow_data_migrated = models.BooleanField(default=False)
    shadow_migration_completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'publishers'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email} ({self.account_status})"

    def issue_invitation(self, days=30):
        """Generate a fresh claim token valid for ``days`` days."""
        self.invitation_token = secrets.token_urlsafe(32)
        self.invitation_expires_at = timezone.now() + timedelta(days=days)

    def mark_claimed(self):
        self.account_status = self.AccountStatus.ACTIVE
        self.claimed_at = timezone.now()
        self.invitation_token = ''
        self.save(update_fields=['account_status', 'claimed_at', 'invitation_token', 'updated_at'])


class Website(models.Model):
    domain = models.CharField(max_length=255, unique=True)
    domain_rating = models.IntegerField(null=True, blank=True)
    total_traffic = models.IntegerField(null=True, blank=True)
    niches = models.JSONField(default=list, blank=True)
    source = models.CharField(max_length=50, default='manyreach')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'websites'
        ordering = ['domain']

    def __str__(self):
        return self.domain

    def save(self, *args, **kwargs):
        self.domain = normalize_domain(self.domain)
        super().save(*args, **kwargs)


class Offering(models.Model):
    """A sellable placement on a website. Prices are integer minor units."""

    class OfferingType(models.TextChoices):
        GUEST_POST = 'guest_post', 'Guest Post'
        LINK_INSERTION = 'link_insertion', 'Link Insertion'
        LISTICLE_PLACEMENT = 'listicle_placement', 'Listicle Placement'
        SPONSORED_REVIEW = 'sponsored_review', 'Sponsored Review'
        PRESS_RELEASE = 'press_release', 'Press Release'
        PACKAGE_DEAL = 'package_deal', 'Package Deal'

    publisher = models.ForeignKey(Publisher, on_delete=models.CASCADE, related_name='offerings')
    website = models.ForeignKey(
        Website, on_delete=models.CASCADE, related_name='offerings', null=True, blank=True,
    )
    offering_type = models.CharField(
        max_length=30, choices=OfferingType.choices, default=OfferingType.GUEST_POST,
    )
    base_price = models.IntegerField(help_text='Price in minor currency units (cents)')
    currency = models.CharField(max_length=3, default='USD')
    turnaround_days = models.IntegerField(default=7)
    is_active = models.BooleanField(default=False)
    attributes = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'publisher_offerings'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.offering_type} @ {self.website} ({self.base_price} {self.currency})"


class OfferingRelationship(models.Model):
    """Canonical publisher <-> website link. At most one active per pair."""

    class VerificationStatus(models.TextChoices):
        CLAIMED = 'claimed', 'Claimed'
        VERIFIED = 'verified', 'Verified'

    publisher = models.ForeignKey(
        Publisher, on_delete=models.CASCADE, related_name='offering_relationships',
    )
    website = models.ForeignKey(
        Website, on_delete=models.CASCADE, related_name='offering_relationships',
    )
    relationship_type = models.CharField(max_length=30, default='contact')
    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.CLAIMED,
    )
    is_active = models.BooleanField(default=True)
    source_metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'publisher_offering_relationships'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['publisher', 'website'],
                condition=Q(is_active=True),
                name='uniq_active_offering_relationship',
            ),
        ]

    def __str__(self):
        return f"{self.publisher_id} -> {self.website_id} ({self.verification_status})"


class MigrationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    MIGRATING = 'migrating', 'Migrating'
    MIGRATED = 'migrated', 'Migrated'
    SKIPPED = 'skipped', 'Skipped'
    FAILED = 'failed', 'Failed'


class ShadowRelationshipQuerySet(models.QuerySet):
    """Typed repository for shadow relationships."""

    def for_publisher(self, publisher_id):
        return self.filter(publisher_id=publisher_id)

    def migratable(self):
        """Rows the migration engine may pick up: pending or never set."""
        return self.filter(
            Q(migration_status=MigrationStatus.PENDING) | Q(migration_status__isnull=True)
        )

    def failed(self):
        return self.filter(migration_status=MigrationStatus.FAILED)

    def migrated_before(self, cutoff):
        return self.filter(migration_status=MigrationStatus.MIGRATED, migrated_at__lt=cutoff)

    def status_counts(self) -> dict:
        """Return ``{status: count}`` for every status, plus ``total``."""
        counts = {choice: 0 for choice in MigrationStatus.values}
        total = 0
        for row in self.values('migration_status').annotate(n=Count('id')):
            key = row['migration_status'] or MigrationStatus.PENDING
            counts[key] = counts.get(key, 0) + row['n']
            total += row['n']
        counts['total'] = total
        return counts


class ShadowRelationship(models.Model):
    """Tentative publisher <-> website link produced from an extracted email.

    Owned by the intake pipeline until claim time; afterwards only the
    migration engine writes to it.
    """

    publisher = models.ForeignKey(
        Publisher, on_delete=models.CASCADE, related_name='shadow_relationships',
    )
    website = models.ForeignKey(
        Website, on_delete=models.CASCADE, related_name='shadow_relationships',
    )
    confidence = models.FloatField(default=0.0)
    source = models.CharField(max_length=50, default='email_extraction')
    extraction_method = models.CharField(max_length=50, default='llm')
    verified = models.BooleanField(default=False)
    guest_post_cost = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        help_text='Extracted price in major units (dollars)',
    )
    typical_turnaround_days = models.IntegerField(null=True, blank=True)
    log_entry = models.ForeignKey(
        'intake.ProcessingLogEntry',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shadow_relationships',
    )
    migration_status = models.CharField(
        max_length=20,
        choices=MigrationStatus.choices,
        default=MigrationStatus.PENDING,
        null=True,
        blank=True,
    )
    migrated_at = models.DateTimeField(null=True, blank=True)
    migration_notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ShadowRelationshipQuerySet.as_manager()

    class Meta:
        db_table = 'publishers_shadow_relationships'
        ordering = ['created_at']
        unique_together = [('publisher', 'website')]
        indexes = [
            models.Index(fields=['migration_status', 'migrated_at'], name='shadow_rel_status_idx'),
        ]

    def __str__(self):
        return f"shadow {self.publisher_id} -> {self.website_id} [{self.migration_status}]"


class ShadowRelationshipArchive(models.Model):
    """Migrated shadow rows moved out of the active table after retention."""

    original_id = models.BigIntegerField(db_index=True)
    publisher_id = models.BigIntegerField(db_index=True)
    website_id = models.BigIntegerField()
    confidence = models.FloatField(default=0.0)
    source = models.CharField(max_length=50, blank=True, default='')
    extraction_method = models.CharField(max_length=50, blank=True, default='')
    verified = models.BooleanField(default=False)
    guest_post_cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    typical_turnaround_days = models.IntegerField(null=True, blank=True)
    migration_status = models.CharField(max_length=20, blank=True, default='')
    migrated_at = models.DateTimeField(null=True, blank=True)
    migration_notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField()
    archived_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'publishers_shadow_relationships_archive'
        ordering = ['-archived_at']

    def __str__(self):
        return f"archived shadow {self.original_id}"
