"""
Migrate a claimed publisher's shadow relationships into canonical records.

Operator-facing entry point for the claim flow. Safe to run repeatedly:
already-migrated publishers short-circuit.

Usage:
    python manage.py migrate_shadow_publisher 42
    python manage.py migrate_shadow_publisher 42 --claim
    python manage.py migrate_shadow_publisher 42 --retry
    python manage.py migrate_shadow_publisher 42 --status
"""

import json
import logging

from django.core.management.base import BaseCommand, CommandError

from config.alerting import alert_migration_failed, alert_migration_partial
from core.exceptions import MigrationFatalError
from publishers.migration import MigrationEngine
from publishers.models import Publisher

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Migrate a publisher's shadow relationships into canonical offering records"

    def add_arguments(self, parser):
        parser.add_argument('publisher_id', type=int)
        parser.add_argument(
            '--retry', action='store_true',
            help='Reset failed shadow rows to pending before migrating',
        )
        parser.add_argument(
            '--status', action='store_true',
            help='Only print migration status counts',
        )
        parser.add_argument(
            '--claim', action='store_true',
            help='Mark the publisher as claimed before migrating',
        )

    def handle(self, *args, **options):
        publisher_id = options['publisher_id']
        engine = MigrationEngine()

        if options['status']:
            status = engine.get_migration_status(publisher_id)
            self.stdout.write(json.dumps(status, indent=2))
            return

        if options['claim']:
            publisher = Publisher.objects.filter(pk=publisher_id).first()
            if publisher is None:
                raise CommandError(f'Publisher {publisher_id} not found')
            publisher.mark_claimed()
            self.stdout.write(f'Publisher {publisher.email} marked as claimed')

        try:
            if options['retry']:
                result = engine.retry_failed(publisher_id)
            else:
                result = engine.migrate(publisher_id)
        except MigrationFatalError as exc:
            alert_migration_failed(publisher_id, exc)
            raise CommandError(str(exc)) from exc

        self.stdout.write(f'\n{"=" * 60}')
        self.stdout.write('SHADOW MIGRATION SUMMARY')
        self.stdout.write(f'{"=" * 60}')
        self.stdout.write(f'  Websites migrated:      {result.websites_migrated}')
        self.stdout.write(f'  Relationships created:  {result.relationships_created}')
        self.stdout.write(f'  Offerings activated:    {result.offerings_activated}')
        self.stdout.write(f'  Skipped (existing):     {result.skipped}')
        self.stdout.write(f'  Errors:                 {len(result.errors)}')

        for error in result.errors:
            self.stderr.write(self.style.ERROR(f'  - {error.domain}: {error.message}'))

        if alert_migration_partial(result):
            self.stdout.write(self.style.WARNING(result.summary()))
        else:
            self.stdout.write(self.style.SUCCESS(result.summary()))
