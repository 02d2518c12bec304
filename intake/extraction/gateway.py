"""
Extraction gateway: email text -> ExtractionResultV1.

``ExtractionGateway`` is the contract the confidence gate depends on.
``LLMExtractionGateway`` is the production adapter; tests substitute a
fake implementing the same ``parse`` signature.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol

from django.conf import settings

from core.exceptions import ExtractionError
from intake.extraction.cache import PromptDataCache
from intake.extraction.llm_client import LLMClient
from intake.extraction.schemas import ExtractionMetadata, ExtractionResultV1

logger = logging.getLogger(__name__)

MAX_EMAIL_CHARS = 12000
KNOWN_NICHES_KEY = "known_niches"


class ExtractionGateway(Protocol):
    def parse(
        self,
        text: str,
        sender: str,
        subject: str = "",
        metadata: Optional[ExtractionMetadata] = None,
    ) -> ExtractionResultV1:
        ...


_PROMPT = """You extract structured publisher data from a reply to a guest-post outreach email.

Return ONLY a JSON object with this shape:
{{
  "hasOffer": bool,
  "publisher": {{"email": str, "contactName": str, "companyName": str, "phone": str}},
  "websites": [{{"domain": str, "domainRating": int|null, "totalTraffic": int|null, "niches": [str]}}],
  "offerings": [{{"offeringType": "guest_post"|"link_insertion"|"listicle_placement"|"sponsored_review"|"press_release"|"package_deal",
                  "basePrice": number|null, "currency": str, "turnaroundDays": int|null, "websiteDomain": str}}],
  "overallConfidence": number between 0 and 1,
  "errors": [str]
}}

Rules:
- basePrice is in major currency units as written in the email (e.g. $350 -> 350).
- Only include websites and prices that are explicitly stated. Do not guess.
- overallConfidence reflects how clearly the email states a concrete offer.
- Prefer these niche labels when they fit: {niches}

Sender: {sender}
Subject: {subject}
Known context: {context}

Email:
\"\"\"
{text}
\"\"\"
"""


def load_known_niches() -> List[str]:
    """Distinct niche labels already attached to websites."""
    from publishers.models import Website

    niches = set()
    for values in Website.objects.values_list('niches', flat=True)[:500]:
        niches.update(n for n in (values or []) if isinstance(n, str))
    return sorted(niches)[:50]


class LLMExtractionGateway:
    """Production gateway backed by LLMClient."""

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        cache: Optional[PromptDataCache] = None,
    ):
        self.client = client or LLMClient()
        self.cache = cache or PromptDataCache(
            ttl_seconds=settings.SHADOW_PUBLISHER_CONFIG.get('prompt_cache_seconds', 300),
        )

    def build_prompt(
        self,
        text: str,
        sender: str,
        subject: str = "",
        metadata: Optional[ExtractionMetadata] = None,
    ) -> str:
        niches = self.cache.get(KNOWN_NICHES_KEY, load_known_niches)
        context = metadata.model_dump(exclude_defaults=True) if metadata else {}
        return _PROMPT.format(
            niches=", ".join(niches) or "(none yet)",
            sender=sender,
            subject=subject or "(no subject)",
            context=json.dumps(context),
            text=text[:MAX_EMAIL_CHARS],
        )

    def parse(
        self,
        text: str,
        sender: str,
        subject: str = "",
        metadata: Optional[ExtractionMetadata] = None,
    ) -> ExtractionResultV1:
        if not text or not text.strip():
            raise ExtractionError("Empty email body")
        if not self.client.is_available():
            raise ExtractionError("Extraction unavailable: no AI API key configured")

        response = self.client.call(self.build_prompt(text, sender, subject, metadata))
        data = LLMClient.parse_json(response)
        if data is None:
            raise ExtractionError("Extraction returned no parseable JSON")

        result = ExtractionResultV1.from_raw(data)
        if not result.publisher.email:
            result.publisher.email = sender.strip().lower()
        logger.info(
            f"Extracted {len(result.websites)} website(s), {len(result.offerings)} offering(s) "
            f"from {sender} (confidence {result.overall_confidence:.2f})"
        )
        return result
