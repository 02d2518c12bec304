"""
Materializes shadow publisher records from an accepted extraction.

Runs inside one transaction: find-or-create the publisher by sender email,
get-or-create each website, then get-or-create a pending ShadowRelationship
per website carrying the extracted guest-post price. Every change is written
to the automation log. Websites learned for a publisher whose shadow data
was already migrated are migrated straight away.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction

from core.exceptions import MigrationFatalError
from intake.extraction.schemas import ExtractionResultV1
from intake.models import AutomationLog, ProcessingLogEntry
from publishers.migration import MigrationEngine
from publishers.models import (
    MigrationStatus,
    Publisher,
    ShadowRelationship,
    Website,
    normalize_domain,
)

logger = logging.getLogger(__name__)


class ShadowCreator:

    def __init__(self, invitation_days: int | None = None):
        self.invitation_days = (
            invitation_days
            if invitation_days is not None
            else settings.SHADOW_PUBLISHER_CONFIG.get('invitation_days', 30)
        )

    @transaction.atomic
    def create(self, log_entry: ProcessingLogEntry, result: ExtractionResultV1) -> Publisher:
        publisher = self._find_or_create_publisher(log_entry, result)

        domains = [w.domain for w in result.websites]
        hint = normalize_domain(log_entry.metadata.get('website_hint', ''))
        if not domains and hint and '.' in hint:
            domains = [hint]
        first_domain = domains[0] if domains else ''

        hints_by_domain = {w.domain: w for w in result.websites}
        linked = 0
        for domain in dict.fromkeys(domains):
            website = self._get_or_create_website(domain, hints_by_domain.get(domain))
            _, created = self._link(publisher, website, log_entry, result, first_domain)
            linked += created

        log_entry.shadow_publisher = publisher
        log_entry.save(update_fields=['shadow_publisher'])

        if linked and publisher.shadow_data_migrated:
            self._migrate_new_links(publisher)
        return publisher

    # ------------------------------------------------------------------

    def _find_or_create_publisher(self, log_entry, result) -> Publisher:
        email = (result.publisher.email or log_entry.email_from).strip().lower()
        contact_name = result.publisher.contact_name or log_entry.metadata.get('prospect_name', '')
        company_name = result.publisher.company_name or log_entry.metadata.get('company', '')

        publisher = Publisher.objects.select_for_update().filter(email=email).first()
        if publisher is None:
            publisher = Publisher(
                email=email,
                contact_name=contact_name[:255],
                company_name=company_name[:255],
                phone=result.publisher.phone[:50],
                account_status=Publisher.AccountStatus.SHADOW,
                source=Publisher.Source.MANYREACH,
                confidence_score=result.overall_confidence,
                source_metadata={
                    'log_entry_id': str(log_entry.pk),
                    'campaign_id': log_entry.campaign_id,
                },
            )
            publisher.issue_invitation(days=self.invitation_days)
            publisher.save()
            AutomationLog.objects.create(
                publisher=publisher,
                action=AutomationLog.Action.SHADOW_PUBLISHER_CREATED,
                log_entry=log_entry,
                new_data={'email': email, 'company_name': publisher.company_name},
                confidence=result.overall_confidence,
            )
            logger.info(f"Created shadow publisher {publisher.pk} for {email}")
            return publisher

        # Existing publisher: only fill blanks, never overwrite
        previous = {'contact_name': publisher.contact_name, 'company_name': publisher.company_name}
        changed = []
        if not publisher.contact_name and contact_name:
            publisher.contact_name = contact_name[:255]
            changed.append('contact_name')
        if not publisher.company_name and company_name:
            publisher.company_name = company_name[:255]
            changed.append('company_name')
        if changed:
            publisher.save(update_fields=changed + ['updated_at'])
            AutomationLog.objects.create(
                publisher=publisher,
                action=AutomationLog.Action.PUBLISHER_UPDATED,
                log_entry=log_entry,
                previous_data=previous,
                new_data={f: getattr(publisher, f) for f in changed},
                confidence=result.overall_confidence,
            )
        return publisher

    def _get_or_create_website(self, domain: str, hint) -> Website:
        website, created = Website.objects.get_or_create(
            domain=domain,
            defaults={
                'domain_rating': hint.domain_rating if hint else None,
                'total_traffic': hint.total_traffic if hint else None,
                'niches': hint.niches if hint else [],
            },
        )
        if not created and hint and hint.niches and not website.niches:
            website.niches = hint.niches
            website.save(update_fields=['niches', 'updated_at'])
        return website

    def _link(self, publisher, website, log_entry, result, first_domain):
        offering = result.price_for(website.domain, first_domain)
        shadow, created = ShadowRelationship.objects.get_or_create(
            publisher=publisher,
            website=website,
            defaults={
                'confidence': result.overall_confidence,
                'source': 'email_extraction',
                'extraction_method': 'llm',
                'verified': False,
                'guest_post_cost': offering.base_price if offering else None,
                'typical_turnaround_days': offering.turnaround_days if offering else None,
                'log_entry': log_entry,
                'migration_status': MigrationStatus.PENDING,
            },
        )
        if created:
            AutomationLog.objects.create(
                publisher=publisher,
                action=AutomationLog.Action.WEBSITE_LINKED,
                log_entry=log_entry,
                new_data={'website': website.domain, 'shadow_id': shadow.pk},
                confidence=result.overall_confidence,
            )
            if offering:
                AutomationLog.objects.create(
                    publisher=publisher,
                    action=AutomationLog.Action.OFFERING_EXTRACTED,
                    log_entry=log_entry,
                    new_data={
                        'website': website.domain,
                        'offering_type': offering.offering_type.value,
                        'base_price': str(offering.base_price),
                        'currency': offering.currency,
                        'turnaround_days': offering.turnaround_days,
                    },
                    confidence=result.overall_confidence,
                )
        elif shadow.guest_post_cost is None and offering:
            shadow.guest_post_cost = offering.base_price
            shadow.typical_turnaround_days = offering.turnaround_days
            shadow.save(update_fields=['guest_post_cost', 'typical_turnaround_days', 'updated_at'])
        return shadow, created

    def _migrate_new_links(self, publisher) -> None:
        """Canonicalize websites learned after the publisher already migrated.

        The marker is cleared first so the rows stay migratable if the
        migration itself fails.
        """
        Publisher.objects.filter(pk=publisher.pk).update(shadow_data_migrated=False)
        publisher.shadow_data_migrated = False
        try:
            result = MigrationEngine().migrate(publisher.pk)
        except MigrationFatalError as exc:
            logger.warning(f"Follow-up migration for publisher {publisher.pk} failed: {exc}")
            return
        publisher.refresh_from_db(fields=['shadow_data_migrated', 'shadow_migration_completed_at'])
        logger.info(f"Follow-up migration for publisher {publisher.pk}: {result.summary()}")
