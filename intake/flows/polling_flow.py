"""
ManyReach reply polling -- Prefect @flow.

Scheduled counterpart of the webhook: polls every configured campaign for
new replies and feeds them through the shared confidence gate. The flow
holds the poller lease for its whole run, so overlapping schedules cannot
double-process a campaign.

Usage (CLI):
    python -m intake.flows.polling_flow --campaign 12345 --campaign 67890
    python -m intake.flows.polling_flow --all-campaigns

Usage (Prefect):
    from intake.flows.polling_flow import manyreach_polling_flow
    result = manyreach_polling_flow()
"""

from __future__ import annotations

import os
from typing import Optional

from django.utils import timezone
from prefect import flow, task, get_run_logger

from config.alerting import alert_poll_run
from config.logging_filters import new_correlation_id
from core.exceptions import PollerBusyError
from intake.poller import CampaignPoller, CampaignPollResult, PollRunResult


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@task(name="resolve-campaign-ids", retries=1, retry_delay_seconds=10)
def resolve_campaign_ids(
    campaign_ids: Optional[list[str]] = None,
    all_campaigns: bool = False,
) -> list[str]:
    """Explicit ids win; else every campaign from the API; else settings."""
    from django.conf import settings
    from intake.manyreach_client import ManyReachClient

    if campaign_ids:
        return [str(c) for c in campaign_ids]
    if all_campaigns:
        campaigns = ManyReachClient().list_campaigns()
        return [str(c.get("campaignId") or c.get("id")) for c in campaigns if c.get("campaignId") or c.get("id")]
    return list(settings.MANYREACH_CAMPAIGN_IDS)


@task(name="poll-manyreach-campaign")
def poll_campaign_task(campaign_id: str) -> CampaignPollResult:
    """Poll one campaign. Never raises; failures are recorded on the result."""
    logger = get_run_logger()
    result = CampaignPoller().poll_campaign(campaign_id)
    logger.info(
        f"Campaign {campaign_id}: replied={result.replied} success={result.succeeded} "
        f"skipped={result.skipped} errors={result.errored}"
    )
    return result


# ---------------------------------------------------------------------------
# Main flow
# ---------------------------------------------------------------------------

@flow(
    name="manyreach-reply-polling",
    description="Poll ManyReach campaigns for replies and create shadow publishers",
    retries=0,
    timeout_seconds=1800,
)
def manyreach_polling_flow(
    campaign_ids: Optional[list[str]] = None,
    all_campaigns: bool = False,
) -> Optional[PollRunResult]:
    """Poll campaigns sequentially under the single-flight lease.

    Returns None when another run already holds the lease.
    """
    logger = get_run_logger()
    ids = resolve_campaign_ids(campaign_ids, all_campaigns)
    if not ids:
        logger.warning("No campaign ids configured; nothing to poll")
        return PollRunResult(run_id="", started_at=timezone.now(), finished_at=timezone.now())

    lease_holder = CampaignPoller()
    try:
        lease_holder.acquire_lease()
    except PollerBusyError as exc:
        logger.warning(f"Skipping run: {exc}")
        return None

    run = PollRunResult(run_id=new_correlation_id("poll-"), started_at=timezone.now())
    try:
        for campaign_id in ids:
            run.campaigns.append(poll_campaign_task(campaign_id))
    finally:
        lease_holder.release_lease()
        run.finished_at = timezone.now()

    totals = run.totals()
    logger.info(f"Poll run {run.run_id} complete: {totals}")

    alert_poll_run(run)
    return run


if __name__ == "__main__":
    import argparse

    import django

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
    django.setup()

    parser = argparse.ArgumentParser(description="Poll ManyReach campaigns for replies")
    parser.add_argument("--campaign", action="append", default=None, help="Campaign id (repeatable)")
    parser.add_argument("--all-campaigns", action="store_true", help="Poll every campaign in the account")
    args = parser.parse_args()

    result = manyreach_polling_flow(campaign_ids=args.campaign, all_campaigns=args.all_campaigns)
    print(result.totals() if result else "Poller busy; run skipped")
