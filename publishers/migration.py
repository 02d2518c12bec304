"""
Shadow -> canonical migration engine.

Invoked when a real person claims a shadow publisher. Converts every
pending ShadowRelationship into a canonical OfferingRelationship (plus an
active Offering) inside one transaction per publisher.

Flow per publisher:
  1. Lock the publisher row (select_for_update); fail fast if missing.
  2. Short-circuit if shadow_data_migrated is already set.
  3. For each migratable shadow row:
       mark migrating -> skip duplicates -> create relationship ->
       activate/create offerings -> mark migrated
     Each row runs in its own savepoint; a failing row is marked failed
     and collected, the loop continues.
  4. Set the publisher's migration-complete marker.

Usage:
    from publishers.migration import MigrationEngine
    result = MigrationEngine().migrate(publisher_id)
    result.summary()  # "2 of 3 website relationships were restored"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.exceptions import MigrationFatalError, MigrationItemError
from publishers.models import (
    MigrationStatus,
    Offering,
    OfferingRelationship,
    Publisher,
    ShadowRelationship,
    ShadowRelationshipArchive,
)

logger = logging.getLogger(__name__)


def _migration_config() -> dict:
    return settings.SHADOW_PUBLISHER_CONFIG.get('migration', {})


def to_minor_units(amount) -> int:
    """Convert a major-unit price (e.g. Decimal('350')) to integer cents."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid price: {amount!r}") from exc
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class MigrationResult:
    """Aggregate outcome of one migrate() call."""

    publisher_id: int
    websites_migrated: int = 0
    offerings_activated: int = 0
    relationships_created: int = 0
    skipped: int = 0
    errors: list[MigrationItemError] = field(default_factory=list)
    already_migrated: bool = False

    @property
    def attempted(self) -> int:
        return self.websites_migrated + self.skipped + len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        if self.already_migrated:
            return "Account data was already migrated; nothing to do."
        text = (
            f"{self.websites_migrated} of {self.attempted} website relationships "
            f"were restored"
        )
        if self.skipped:
            text += f", {self.skipped} already existed"
        if self.errors:
            text += f", {len(self.errors)} failed (see details)"
        return text + "."

    def as_dict(self) -> dict:
        return {
            'publisher_id': self.publisher_id,
            'websites_migrated': self.websites_migrated,
            'offerings_activated': self.offerings_activated,
            'relationships_created': self.relationships_created,
            'skipped': self.skipped,
            'errors': [e.as_dict() for e in self.errors],
            'already_migrated': self.already_migrated,
            'summary': self.summary(),
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MigrationEngine:
    """Idempotent, per-item-recoverable shadow data migration."""

    def __init__(self, default_turnaround_days: int | None = None):
        self.default_turnaround_days = (
            default_turnaround_days
            if default_turnaround_days is not None
            else _migration_config().get('default_turnaround_days', 7)
        )

    def migrate(self, publisher_id) -> MigrationResult:
        """Migrate all pending shadow rows for ``publisher_id``.

        Raises MigrationFatalError if the publisher does not exist or the
        transaction itself fails; per-row errors are returned in the result.
        """
        try:
            with transaction.atomic():
                return self._migrate_locked(publisher_id)
        except MigrationFatalError:
            raise
        except DatabaseError as exc:
            logger.exception(f"Migration transaction failed for publisher {publisher_id}")
            raise MigrationFatalError(
                f"Migration for publisher {publisher_id} rolled back: {exc}"
            ) from exc

    def _migrate_locked(self, publisher_id) -> MigrationResult:
        publisher = (
            Publisher.objects.select_for_update().filter(pk=publisher_id).first()
        )
        if publisher is None:
            raise MigrationFatalError(f"Publisher {publisher_id} not found")

        result = MigrationResult(publisher_id=publisher.pk)

        if publisher.shadow_data_migrated:
            logger.info(f"Publisher {publisher.pk} already migrated, skipping")
            result.already_migrated = True
            return result

        rows = list(
            ShadowRelationship.objects.for_publisher(publisher.pk)
            .migratable()
            .select_related('website')
        )
        logger.info(f"Migrating {len(rows)} shadow relationships for publisher {publisher.pk}")

        for shadow in rows:
            self._migrate_one(publisher, shadow, result)

        publisher.shadow_data_migrated = True
        publisher.shadow_migration_completed_at = timezone.now()
        publisher.save(update_fields=[
            'shadow_data_migrated', 'shadow_migration_completed_at', 'updated_at',
        ])

        from intake.models import AutomationLog
        AutomationLog.objects.create(
            publisher=publisher,
            action=AutomationLog.Action.MIGRATION_COMPLETED,
            new_data={
                'websites_migrated': result.websites_migrated,
                'skipped': result.skipped,
                'errors': len(result.errors),
            },
        )

        logger.info(f"Publisher {publisher.pk}: {result.summary()}")
        return result

    def _migrate_one(self, publisher, shadow, result: MigrationResult) -> None:
        # Visible before the savepoint so a failure leaves a diagnosable row
        shadow.migration_status = MigrationStatus.MIGRATING
        shadow.save(update_fields=['migration_status', 'updated_at'])

        try:
            with transaction.atomic():
                outcome = self._apply(publisher, shadow)
        except Exception as exc:
            logger.warning(
                f"Shadow row {shadow.pk} ({shadow.website.domain}) failed to migrate: {exc}"
            )
            shadow.migration_status = MigrationStatus.FAILED
            shadow.migration_notes = _append_note(shadow.migration_notes, f"Failed: {exc}")
            shadow.save(update_fields=['migration_status', 'migration_notes', 'updated_at'])
            result.errors.append(MigrationItemError(
                shadow_id=shadow.pk,
                website_id=shadow.website_id,
                domain=shadow.website.domain,
                message=str(exc),
            ))
            return

        if outcome == 'skipped':
            result.skipped += 1
        else:
            result.websites_migrated += 1
            result.relationships_created += 1
            result.offerings_activated += outcome

    def _apply(self, publisher, shadow):
        """Steps b-e for one row. Returns 'skipped' or the offerings activated."""
        exists = OfferingRelationship.objects.filter(
            publisher=publisher, website_id=shadow.website_id, is_active=True,
        ).exists()
        if exists:
            shadow.migration_status = MigrationStatus.SKIPPED
            shadow.migrated_at = timezone.now()
            shadow.migration_notes = _append_note(
                shadow.migration_notes, 'Relationship already exists',
            )
            shadow.save(update_fields=[
                'migration_status', 'migrated_at', 'migration_notes', 'updated_at',
            ])
            return 'skipped'

        OfferingRelationship.objects.create(
            publisher=publisher,
            website_id=shadow.website_id,
            verification_status=(
                OfferingRelationship.VerificationStatus.VERIFIED
                if shadow.verified
                else OfferingRelationship.VerificationStatus.CLAIMED
            ),
            source_metadata={
                'migrated_from_shadow': shadow.pk,
                'confidence': shadow.confidence,
                'source': shadow.source,
            },
        )

        activated = self._activate_offerings(publisher, shadow)

        shadow.migration_status = MigrationStatus.MIGRATED
        shadow.migrated_at = timezone.now()
        shadow.migration_notes = _append_note(
            shadow.migration_notes, f"Migrated ({activated} offering(s) activated)",
        )
        shadow.save(update_fields=[
            'migration_status', 'migrated_at', 'migration_notes', 'updated_at',
        ])
        return activated

    def _activate_offerings(self, publisher, shadow) -> int:
        existing = Offering.objects.filter(publisher=publisher, website_id=shadow.website_id)
        if existing.exists():
            return existing.update(is_active=True, updated_at=timezone.now())

        if shadow.guest_post_cost is None:
            return 0

        Offering.objects.create(
            publisher=publisher,
            website_id=shadow.website_id,
            offering_type=Offering.OfferingType.GUEST_POST,
            base_price=to_minor_units(shadow.guest_post_cost),
            turnaround_days=shadow.typical_turnaround_days or self.default_turnaround_days,
            is_active=True,
            attributes={
                'migrated_from_shadow': True,
                'extracted_price': str(shadow.guest_post_cost),
                'extracted_turnaround': shadow.typical_turnaround_days,
            },
        )
        return 1

    # ------------------------------------------------------------------
    # Companion operations
    # ------------------------------------------------------------------

    def retry_failed(self, publisher_id) -> MigrationResult:
        """Reset failed rows to pending and run migrate() again."""
        stamp = timezone.now().isoformat()
        with transaction.atomic():
            failed = list(
                ShadowRelationship.objects.select_for_update()
                .for_publisher(publisher_id).failed()
            )
            for shadow in failed:
                shadow.migration_status = MigrationStatus.PENDING
                shadow.migration_notes = _append_note(shadow.migration_notes, f"[retry {stamp}]")
                shadow.save(update_fields=['migration_status', 'migration_notes', 'updated_at'])
            if failed:
                Publisher.objects.filter(pk=publisher_id).update(shadow_data_migrated=False)
                from intake.models import AutomationLog
                publisher = Publisher.objects.filter(pk=publisher_id).first()
                if publisher is not None:
                    AutomationLog.objects.create(
                        publisher=publisher,
                        action=AutomationLog.Action.MIGRATION_RETRIED,
                        new_data={'reset_rows': len(failed)},
                    )
        logger.info(f"Reset {len(failed)} failed shadow rows for publisher {publisher_id}")
        return self.migrate(publisher_id)

    @staticmethod
    def get_migration_status(publisher_id) -> dict:
        counts = ShadowRelationship.objects.for_publisher(publisher_id).status_counts()
        publisher = Publisher.objects.filter(pk=publisher_id).first()
        counts['publisher_migrated'] = bool(publisher and publisher.shadow_data_migrated)
        return counts

    @staticmethod
    def archive_migrated(days_old: int | None = None, dry_run: bool = False) -> int:
        """Move rows migrated more than ``days_old`` days ago into the archive."""
        if days_old is None:
            days_old = _migration_config().get('archive_after_days', 90)
        cutoff = timezone.now() - timedelta(days=days_old)

        with transaction.atomic():
            rows = list(ShadowRelationship.objects.select_for_update().migrated_before(cutoff))
            if dry_run or not rows:
                return len(rows)
            ShadowRelationshipArchive.objects.bulk_create([
                ShadowRelationshipArchive(
                    original_id=row.pk,
                    publisher_id=row.publisher_id,
                    website_id=row.website_id,
                    confidence=row.confidence,
                    source=row.source,
                    extraction_method=row.extraction_method,
                    verified=row.verified,
                    guest_post_cost=row.guest_post_cost,
                    typical_turnaround_days=row.typical_turnaround_days,
                    migration_status=row.migration_status or '',
                    migrated_at=row.migrated_at,
                    migration_notes=row.migration_notes,
                    created_at=row.created_at,
                )
                for row in rows
            ])
            ShadowRelationship.objects.filter(pk__in=[row.pk for row in rows]).delete()

        logger.info(f"Archived {len(rows)} shadow relationships migrated before {cutoff:%Y-%m-%d}")
        return len(rows)


def _append_note(existing: str, note: str) -> str:
    return f"{existing}\n{note}".strip() if existing else note


def migrate(publisher_id) -> MigrationResult:
    """Module-level convenience wrapper used by the claim flow."""
    return MigrationEngine().migrate(publisher_id)
