"""
Poll ManyReach campaigns for replies (cron-friendly, no Prefect needed).

Usage:
    python manage.py poll_campaign_replies
    python manage.py poll_campaign_replies --campaign 12345 --campaign 67890
    python manage.py poll_campaign_replies --all-campaigns
    python manage.py poll_campaign_replies --campaign 12345 --retry-failed
"""

import time

from django.core.management.base import BaseCommand, CommandError

from config.alerting import alert_poll_run
from core.exceptions import ManyReachAPIError, PollerBusyError
from intake.manyreach_client import ManyReachClient
from intake.poller import CampaignPoller


class Command(BaseCommand):
    help = 'Poll ManyReach campaigns for new replies and run them through the intake pipeline'

    def add_arguments(self, parser):
        parser.add_argument(
            '--campaign', action='append', default=None,
            help='Campaign id to poll (repeatable; default: MANYREACH_CAMPAIGN_IDS)',
        )
        parser.add_argument(
            '--all-campaigns', action='store_true',
            help='Poll every campaign returned by the ManyReach API',
        )
        parser.add_argument(
            '--retry-failed', action='store_true',
            help='Re-run extraction for replies whose earlier extraction failed',
        )

    def handle(self, *args, **options):
        start_time = time.time()
        client = ManyReachClient()

        campaign_ids = options['campaign']
        if options['all_campaigns']:
            try:
                campaigns = client.list_campaigns()
            except ManyReachAPIError as exc:
                raise CommandError(f'Could not list campaigns: {exc}') from exc
            campaign_ids = [
                str(c.get('campaignId') or c.get('id'))
                for c in campaigns if c.get('campaignId') or c.get('id')
            ]

        poller = CampaignPoller(client=client, retry_failed=options['retry_failed'])
        try:
            run = poller.poll_all(campaign_ids)
        except PollerBusyError as exc:
            raise CommandError(str(exc)) from exc

        for campaign in run.campaigns:
            if campaign.error:
                self.stderr.write(self.style.ERROR(f'  {campaign.campaign_id}: {campaign.error}'))
                continue
            self.stdout.write(
                f'  {campaign.campaign_id}: {campaign.replied} replied, '
                f'{campaign.succeeded} processed, {campaign.skipped} skipped, '
                f'{campaign.errored} errors'
            )

        totals = run.totals()
        elapsed = time.time() - start_time
        self.stdout.write(f'\n{"=" * 60}')
        self.stdout.write('POLL SUMMARY')
        self.stdout.write(f'{"=" * 60}')
        self.stdout.write(f'  Campaigns:          {totals["campaigns"]}')
        self.stdout.write(f'  Replied prospects:  {totals["replied"]}')
        self.stdout.write(f'  Processed:          {totals["success"]}')
        self.stdout.write(f'  Skipped:            {totals["skipped"]}')
        self.stdout.write(f'  Errors:             {totals["error"]}')
        self.stdout.write(f'  Shadow publishers:  {totals["shadow_publishers"]}')
        self.stdout.write(f'  Elapsed:            {elapsed:.1f}s')

        if not alert_poll_run(run):
            self.stdout.write(self.style.SUCCESS('\nDone.'))
