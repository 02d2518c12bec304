"""
Campaign reply poller: the pull-side ingestion path.

For each configured campaign:
  1. Fetch all prospects, keep those flagged replied.
  2. Skip any prospect whose (campaign, email) dedup key is already logged,
     failed entries included (no extraction call). retry_failed=True lets
     an operator re-run extraction for failed entries.
  3. Fetch the thread, take the latest REPLY, clean it, ingest it, and
     run it through the shared confidence gate.

Prospects within a campaign are processed sequentially so the dedup check
sees entries written earlier in the same run. One prospect's failure never
aborts the rest; outcomes are collected into the result.

Runs are single-flight: a PollerLease row is held for the duration of
poll_all(). A second concurrent run raises PollerBusyError.
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from config.logging_filters import new_correlation_id
from core.exceptions import PollerBusyError
from intake.confidence_gate import ConfidenceGate
from intake.extraction.schemas import ExtractionMetadata
from intake.ingestion import (
    InboundEmail,
    clean_message_text,
    compute_dedup_key,
    find_existing,
    ingest,
)
from intake.manyreach_client import ManyReachClient, Prospect, latest_reply
from intake.models import PollerLease, ProcessingLogEntry

logger = logging.getLogger(__name__)

LEASE_NAME = "manyreach-poller"


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ProspectOutcome:
    email: str
    status: str  # success | error | skipped
    reason: str = ""
    log_id: Optional[str] = None
    log_status: str = ""
    publisher_id: Optional[int] = None
    error: str = ""


@dataclass
class CampaignPollResult:
    campaign_id: str
    prospects_total: int = 0
    replied: int = 0
    outcomes: List[ProspectOutcome] = field(default_factory=list)
    error: str = ""

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count("success")

    @property
    def errored(self) -> int:
        return self._count("error")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def shadow_publishers_created(self) -> int:
        return sum(1 for o in self.outcomes if o.publisher_id)


@dataclass
class PollRunResult:
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    campaigns: List[CampaignPollResult] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        messages = [f"{c.campaign_id}: {c.error}" for c in self.campaigns if c.error]
        for campaign in self.campaigns:
            messages.extend(
                f"{campaign.campaign_id}/{o.email}: {o.error}"
                for o in campaign.outcomes if o.status == "error"
            )
        return messages

    def totals(self) -> dict:
        return {
            "campaigns": len(self.campaigns),
            "replied": sum(c.replied for c in self.campaigns),
            "success": sum(c.succeeded for c in self.campaigns),
            "error": sum(c.errored for c in self.campaigns),
            "skipped": sum(c.skipped for c in self.campaigns),
            "shadow_publishers": sum(c.shadow_publishers_created for c in self.campaigns),
        }


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------

class CampaignPoller:

    def __init__(
        self,
        client: Optional[ManyReachClient] = None,
        gate: Optional[ConfidenceGate] = None,
        lease_seconds: Optional[int] = None,
        retry_failed: bool = False,
    ):
        self.client = client or ManyReachClient()
        self._gate = gate
        self.retry_failed = retry_failed
        self.lease_seconds = lease_seconds or settings.SHADOW_PUBLISHER_CONFIG.get(
            "poller", {},
        ).get("lease_seconds", 1800)
        self.holder = f"{socket.gethostname()}:{os.getpid()}:{id(self)}"[:100]

    @property
    def gate(self) -> ConfidenceGate:
        if self._gate is None:
            from intake.extraction.gateway import LLMExtractionGateway
            self._gate = ConfidenceGate(LLMExtractionGateway())
        return self._gate

    # -- single-flight lease ------------------------------------------------

    def acquire_lease(self) -> None:
        now = timezone.now()
        with transaction.atomic():
            PollerLease.objects.get_or_create(name=LEASE_NAME)
            lease = PollerLease.objects.select_for_update().get(name=LEASE_NAME)
            if lease.holder and lease.holder != self.holder and lease.expires_at and lease.expires_at > now:
                raise PollerBusyError(
                    f"Poller already running ({lease.holder}, since {lease.acquired_at:%H:%M:%S})"
                )
            lease.holder = self.holder
            lease.acquired_at = now
            lease.expires_at = now + timedelta(seconds=self.lease_seconds)
            lease.save()

    def release_lease(self) -> None:
        PollerLease.objects.filter(name=LEASE_NAME, holder=self.holder).update(
            holder="", expires_at=None,
        )

    # -- runs -------------------------------------------------------------

    def poll_all(self, campaign_ids: Optional[Iterable[str]] = None) -> PollRunResult:
        ids = list(campaign_ids) if campaign_ids is not None else list(settings.MANYREACH_CAMPAIGN_IDS)
        run = PollRunResult(run_id=new_correlation_id("poll-"), started_at=timezone.now())

        self.acquire_lease()
        try:
            logger.info(f"Poll run {run.run_id}: {len(ids)} campaign(s)")
            for campaign_id in ids:
                run.campaigns.append(self.poll_campaign(campaign_id))
        finally:
            self.release_lease()
            run.finished_at = timezone.now()

        logger.info(f"Poll run {run.run_id} finished: {run.totals()}")
        return run

    def poll_campaign(self, campaign_id: str) -> CampaignPollResult:
        campaign_id = str(campaign_id)
        result = CampaignPollResult(campaign_id=campaign_id)

        try:
            prospects = self.client.list_prospects(campaign_id)
        except Exception as exc:
            logger.error(f"Campaign {campaign_id}: prospect fetch failed: {exc}")
            result.error = str(exc)
            return result

        result.prospects_total = len(prospects)
        replied = [p for p in prospects if p.replied]
        result.replied = len(replied)
        logger.info(f"Campaign {campaign_id}: {len(replied)}/{len(prospects)} prospects replied")

        # Sequential: later dedup checks must see entries written above
        for prospect in replied:
            result.outcomes.append(self._process_prospect(campaign_id, prospect))

        logger.info(
            f"Campaign {campaign_id}: {result.succeeded} processed, "
            f"{result.skipped} skipped, {result.errored} errors"
        )
        return result

    def _process_prospect(self, campaign_id: str, prospect: Prospect) -> ProspectOutcome:
        key = compute_dedup_key(prospect.email, campaign_id)
        try:
            existing = find_existing(key, include_failed=not self.retry_failed)
            if existing is not None:
                return ProspectOutcome(
                    prospect.email, "skipped", reason="already_processed",
                    log_id=str(existing.pk), log_status=existing.status,
                )

            messages = self.client.list_messages(prospect.email)
            reply = latest_reply(messages)
            if reply is None:
                return ProspectOutcome(prospect.email, "skipped", reason="no_reply_message")

            email = InboundEmail(
                sender=prospect.email,
                body=clean_message_text(reply.body),
                html_body=reply.body if "<" in reply.body else "",
                subject=reply.subject,
                campaign_id=campaign_id,
                message_id=reply.message_id,
                prospect_name=prospect.full_name,
                company=prospect.company,
                website_hint=prospect.website,
            )
            ingested = ingest(
                email, source=ProcessingLogEntry.Source.POLLER, retry_failed=self.retry_failed,
            )
            if ingested.duplicate:
                return ProspectOutcome(
                    prospect.email, "skipped", reason="already_processed",
                    log_id=str(ingested.log_entry.pk), log_status=ingested.log_entry.status,
                )

            outcome = self.gate.evaluate(
                ingested.log_entry,
                ExtractionMetadata(
                    prospect_name=prospect.full_name,
                    company=prospect.company,
                    website_hint=prospect.website,
                ),
            )
            return ProspectOutcome(
                prospect.email,
                "success",
                log_id=str(outcome.log_entry.pk),
                log_status=outcome.status,
                publisher_id=outcome.shadow_publisher_id,
                error=outcome.log_entry.error_message,
            )
        except Exception as exc:
            logger.warning(f"Campaign {campaign_id}: prospect {prospect.email} failed: {exc}")
            return ProspectOutcome(prospect.email, "error", error=str(exc))
