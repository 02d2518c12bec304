"""
Confidence gate: extraction -> parsed | needs_review | failed.

Shared by the webhook and the poller so both paths apply the same
centrally configured threshold (SHADOW_PUBLISHER_CONFIG["confidence"]).

Outcomes:
  - extraction raises           -> failed, no shadow records
  - confidence >= auto_approve  -> parsed, shadow records created
      (creation raises          -> failed, parsed result kept)
  - confidence <  auto_approve  -> needs_review + review queue item
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from core.exceptions import ExtractionError
from intake.extraction.gateway import ExtractionGateway
from intake.extraction.schemas import ExtractionMetadata, ExtractionResultV1
from intake.models import ProcessingLogEntry, ReviewQueueEntry
from intake.shadow_creator import ShadowCreator

logger = logging.getLogger(__name__)


class ReviewTier(str, enum.Enum):
    AUTO_APPROVE = "auto_approve"
    MEDIUM = "medium_confidence"
    LOW = "low_confidence"
    VERY_LOW = "very_low_confidence"


_TIER_PRIORITY = {
    ReviewTier.MEDIUM: 50,
    ReviewTier.LOW: 75,
    ReviewTier.VERY_LOW: 90,
}


@dataclass(frozen=True)
class ConfidencePolicy:
    """Confidence tiers. ``auto_approve`` is inclusive on the pass side."""

    auto_approve: float = 0.7
    medium_review: float = 0.5
    low_review: float = 0.3
    medium_auto_approve_hours: int = 24

    @classmethod
    def from_settings(cls) -> "ConfidencePolicy":
        config = settings.SHADOW_PUBLISHER_CONFIG
        tiers = config.get("confidence", {})
        return cls(
            auto_approve=tiers.get("auto_approve", cls.auto_approve),
            medium_review=tiers.get("medium_review", cls.medium_review),
            low_review=tiers.get("low_review", cls.low_review),
            medium_auto_approve_hours=config.get(
                "medium_review_auto_approve_hours", cls.medium_auto_approve_hours,
            ),
        )

    def passes(self, confidence: float) -> bool:
        return confidence >= self.auto_approve

    def tier(self, confidence: float) -> ReviewTier:
        if confidence >= self.auto_approve:
            return ReviewTier.AUTO_APPROVE
        if confidence >= self.medium_review:
            return ReviewTier.MEDIUM
        if confidence >= self.low_review:
            return ReviewTier.LOW
        return ReviewTier.VERY_LOW


@dataclass
class GateOutcome:
    log_entry: ProcessingLogEntry
    shadow_publisher_id: Optional[int] = None
    result: Optional[ExtractionResultV1] = None

    @property
    def status(self) -> str:
        return self.log_entry.status


class ConfidenceGate:

    def __init__(
        self,
        gateway: ExtractionGateway,
        policy: Optional[ConfidencePolicy] = None,
        creator: Optional[ShadowCreator] = None,
    ):
        self.gateway = gateway
        self.policy = policy or ConfidencePolicy.from_settings()
        self.creator = creator or ShadowCreator()

    def evaluate(
        self,
        log_entry: ProcessingLogEntry,
        metadata: Optional[ExtractionMetadata] = None,
    ) -> GateOutcome:
        started = time.monotonic()
        if metadata is None:
            metadata = ExtractionMetadata.model_validate(log_entry.metadata or {})

        # 1. Extraction
        try:
            result = self.gateway.parse(
                log_entry.raw_content,
                log_entry.email_from,
                log_entry.email_subject,
                metadata,
            )
        except ExtractionError as exc:
            logger.warning(f"Extraction failed for log {log_entry.pk}: {exc}")
            self._finish(log_entry, started, ProcessingLogEntry.Status.FAILED, error=str(exc))
            return GateOutcome(log_entry)
        except Exception as exc:
            logger.exception(f"Extraction gateway crashed for log {log_entry.pk}")
            self._finish(
                log_entry, started, ProcessingLogEntry.Status.FAILED,
                error=f"Extraction error: {exc}",
            )
            return GateOutcome(log_entry)

        log_entry.parsed_data = result.to_log_data()
        log_entry.confidence_score = result.overall_confidence

        # 2. Below threshold -> human review
        if not self.policy.passes(result.overall_confidence):
            self._finish(log_entry, started, ProcessingLogEntry.Status.NEEDS_REVIEW)
            self._enqueue_review(log_entry, result)
            logger.info(
                f"Log {log_entry.pk} needs review "
                f"(confidence {result.overall_confidence:.2f} < {self.policy.auto_approve})"
            )
            return GateOutcome(log_entry, result=result)

        # 3. At/above threshold -> shadow records
        try:
            publisher = self.creator.create(log_entry, result)
        except Exception as exc:
            logger.exception(f"Shadow creation failed for log {log_entry.pk}")
            log_entry.shadow_publisher = None
            self._finish(
                log_entry, started, ProcessingLogEntry.Status.FAILED,
                error=f"Shadow creation failed: {exc}",
            )
            return GateOutcome(log_entry, result=result)

        log_entry.shadow_publisher = publisher
        self._finish(log_entry, started, ProcessingLogEntry.Status.PARSED)
        return GateOutcome(log_entry, shadow_publisher_id=publisher.pk, result=result)

    # ------------------------------------------------------------------

    @staticmethod
    def _finish(log_entry, started, status, error=''):
        log_entry.status = status
        log_entry.error_message = error
        log_entry.processed_at = timezone.now()
        log_entry.processing_duration_ms = int((time.monotonic() - started) * 1000)
        log_entry.save(update_fields=[
            'status', 'error_message', 'parsed_data', 'confidence_score',
            'processed_at', 'processing_duration_ms', 'shadow_publisher',
        ])

    def _enqueue_review(self, log_entry, result: ExtractionResultV1) -> ReviewQueueEntry:
        tier = self.policy.tier(result.overall_confidence)
        auto_approve_at = None
        if tier == ReviewTier.MEDIUM:
            auto_approve_at = timezone.now() + timedelta(hours=self.policy.medium_auto_approve_hours)
        entry, _ = ReviewQueueEntry.objects.get_or_create(
            log_entry=log_entry,
            defaults={
                'priority': _TIER_PRIORITY[tier],
                'reason': tier.value,
                'auto_approve_at': auto_approve_at,
                'suggested_actions': {
                    'websites': [w.domain for w in result.websites],
                    'has_offer': result.has_offer,
                    'errors': result.errors,
                },
            },
        )
        return entry
