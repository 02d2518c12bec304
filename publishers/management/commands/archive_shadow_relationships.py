"""
Archive shadow relationships migrated longer ago than the retention window.

Usage:
    python manage.py archive_shadow_relationships
    python manage.py archive_shadow_relationships --days 30 --dry-run
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from publishers.migration import MigrationEngine


class Command(BaseCommand):
    help = 'Move migrated shadow relationships past retention into the archive table'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days', type=int,
            default=settings.SHADOW_PUBLISHER_CONFIG['migration'].get('archive_after_days', 90),
            help='Retention window in days (default: 90)',
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='Count eligible rows without moving them',
        )

    def handle(self, *args, **options):
        days = options['days']
        dry_run = options['dry_run']

        count = MigrationEngine.archive_migrated(days_old=days, dry_run=dry_run)

        if dry_run:
            self.stdout.write(self.style.WARNING(
                f'DRY RUN: {count} shadow relationships older than {days} days would be archived'
            ))
        else:
            self.stdout.write(self.style.SUCCESS(f'Archived {count} shadow relationships'))
