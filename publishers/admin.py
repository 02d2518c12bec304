from django.contrib import admin

from .migration import MigrationEngine
from .models import (
    Offering,
    OfferingRelationship,
    Publisher,
    ShadowRelationship,
    ShadowRelationshipArchive,
    Website,
)


class ShadowRelationshipInline(admin.TabularInline):
    model = ShadowRelationship
    extra = 0
    fields = ['website', 'confidence', 'verified', 'guest_post_cost',
              'migration_status', 'migrated_at']
    readonly_fields = ['migration_status', 'migrated_at']
    raw_id_fields = ['website']


@admin.register(Publisher)
class PublisherAdmin(admin.ModelAdmin):
    list_display = ['email', 'company_name', 'account_status', 'confidence_score',
                    'shadow_data_migrated', 'created_at']
    list_filter = ['account_status', 'shadow_data_migrated', 'source']
    search_fields = ['email', 'company_name', 'contact_name']
    readonly_fields = ['invitation_token', 'claimed_at', 'shadow_migration_completed_at',
                       'created_at', 'updated_at']
    inlines = [ShadowRelationshipInline]
    actions = ['retry_failed_migrations']

    def retry_failed_migrations(self, request, queryset):
        engine = MigrationEngine()
        for publisher in queryset:
            result = engine.retry_failed(publisher.pk)
            self.message_user(request, f'{publisher.email}: {result.summary()}')
    retry_failed_migrations.short_description = 'Retry failed shadow migrations'


@admin.register(Website)
class WebsiteAdmin(admin.ModelAdmin):
    list_display = ['domain', 'domain_rating', 'total_traffic', 'source', 'created_at']
    search_fields = ['domain']


@admin.register(Offering)
class OfferingAdmin(admin.ModelAdmin):
    list_display = ['publisher', 'website', 'offering_type', 'base_price',
                    'currency', 'turnaround_days', 'is_active']
    list_filter = ['offering_type', 'is_active', 'currency']
    raw_id_fields = ['publisher', 'website']


@admin.register(OfferingRelationship)
class OfferingRelationshipAdmin(admin.ModelAdmin):
    list_display = ['publisher', 'website', 'verification_status', 'is_active', 'created_at']
    list_filter = ['verification_status', 'is_active']
    raw_id_fields = ['publisher', 'website']


@admin.register(ShadowRelationship)
class ShadowRelationshipAdmin(admin.ModelAdmin):
    list_display = ['publisher', 'website', 'confidence', 'verified',
                    'migration_status', 'migrated_at']
    list_filter = ['migration_status', 'verified']
    search_fields = ['publisher__email', 'website__domain']
    raw_id_fields = ['publisher', 'website', 'log_entry']


@admin.register(ShadowRelationshipArchive)
class ShadowRelationshipArchiveAdmin(admin.ModelAdmin):
    list_display = ['original_id', 'publisher_id', 'website_id', 'migrated_at', 'archived_at']
    readonly_fields = [f.name for f in ShadowRelationshipArchive._meta.fields]
