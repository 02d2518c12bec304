"""
Ingestion and deduplication for inbound replies.

Both ingestion paths (webhook push, campaign poller pull) normalize their
input into an ``InboundEmail`` and call ``ingest()``. The processing log's
conditional unique constraint on ``dedup_key`` is the real dedup guarantee;
a duplicate-key insert is reported as "already processed", never raised.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from django.db import IntegrityError, transaction

from core.exceptions import ValidationError
from intake.models import ProcessingLogEntry

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'<[^>]+>')
_BLOCK_TAG_RE = re.compile(r'<\s*(br|/p|/div|/li|/tr|/h[1-6])\b[^>]*>', re.IGNORECASE)
_STYLE_SCRIPT_RE = re.compile(r'<(style|script)\b[^>]*>.*?</\1>', re.IGNORECASE | re.DOTALL)
_WS_RE = re.compile(r'\s+')

# Campaign for webhook replies without one; eventId names the event type
UNKNOWN_CAMPAIGN = 'unknown'


def clean_message_text(value: str) -> str:
    """Strip HTML tags and entities, collapse whitespace."""
    if not value:
        return ''
    text = _STYLE_SCRIPT_RE.sub(' ', value)
    text = _BLOCK_TAG_RE.sub(' ', text)
    text = _TAG_RE.sub('', text)
    text = text.replace('&nbsp;', ' ')
    text = html.unescape(text).replace('\xa0', ' ')
    return _WS_RE.sub(' ', text).strip()


def compute_dedup_key(
    sender: str,
    campaign_id: Optional[str] = None,
    message_id: Optional[str] = None,
) -> str:
    """(campaign, sender) when a campaign is known, else (message id, sender)."""
    sender = (sender or '').strip().lower()
    if campaign_id:
        return f"{campaign_id}:{sender}"
    if message_id:
        return f"msg:{message_id}:{sender}"
    return f"sender:{sender}"


@dataclass
class InboundEmail:
    """Normalized inbound reply, independent of the channel it arrived on."""

    sender: str
    body: str
    subject: str = ''
    html_body: str = ''
    campaign_id: str = ''
    message_id: str = ''
    thread_id: str = ''
    recipient: str = ''
    webhook_id: str = ''
    prospect_name: str = ''
    company: str = ''
    website_hint: str = ''
    extra: dict = field(default_factory=dict)

    def __post_init__(self):
        self.sender = (self.sender or '').strip().lower()
        self.campaign_id = str(self.campaign_id or '')

    @property
    def dedup_key(self) -> str:
        return compute_dedup_key(self.sender, self.campaign_id, self.message_id)

    def metadata(self) -> dict:
        data = {
            'prospect_name': self.prospect_name,
            'company': self.company,
            'website_hint': self.website_hint,
        }
        data.update(self.extra)
        return {k: v for k, v in data.items() if v}


@dataclass
class IngestResult:
    log_entry: ProcessingLogEntry
    created: bool

    @property
    def duplicate(self) -> bool:
        return not self.created


# ---------------------------------------------------------------------------
# Payload parsing (webhook)
# ---------------------------------------------------------------------------

def parse_webhook_payload(payload: dict, webhook_id: str = '') -> InboundEmail:
    """Validate a ManyReach webhook payload and normalize it.

    Raises ValidationError when the sender address or message body is
    missing; nothing is written in that case.
    """
    if not isinstance(payload, dict):
        raise ValidationError('Payload must be a JSON object')

    prospect = payload.get('prospect') or {}
    if not isinstance(prospect, dict):
        prospect = {}

    sender = prospect.get('email') or payload.get('sender_email') or payload.get('from') or ''
    message = payload.get('message') or payload.get('body') or ''
    if isinstance(message, dict):
        message = message.get('html') or message.get('text') or ''

    if not str(sender).strip():
        raise ValidationError('Missing sender email address')
    if not str(message).strip():
        raise ValidationError('Missing message body')

    raw = str(message)
    name = ' '.join(
        part for part in (prospect.get('firstname'), prospect.get('lastname')) if part
    )
    return InboundEmail(
        sender=str(sender),
        body=clean_message_text(raw),
        html_body=raw if '<' in raw else '',
        subject=str(payload.get('subject') or ''),
        campaign_id=str(payload.get('campaignid') or payload.get('campaign_id') or UNKNOWN_CAMPAIGN),
        message_id=str(payload.get('eventId') or payload.get('message_id') or ''),
        thread_id=str(payload.get('thread_id') or ''),
        recipient=str(payload.get('sender_email') or ''),
        webhook_id=webhook_id,
        prospect_name=name,
        company=str(prospect.get('company') or ''),
        website_hint=str(prospect.get('www') or prospect.get('domain') or ''),
    )


# ---------------------------------------------------------------------------
# Processing log store
# ---------------------------------------------------------------------------

def find_existing(dedup_key: str, include_failed: bool = True) -> Optional[ProcessingLogEntry]:
    """Return the log entry already recorded for ``dedup_key``, if any.

    A failed entry counts as processed: a failed extraction is terminal
    for that message. Operators reprocess it with ``include_failed=False``.
    """
    entries = ProcessingLogEntry.objects.filter(dedup_key=dedup_key)
    if not include_failed:
        entries = entries.exclude(status=ProcessingLogEntry.Status.FAILED)
    return entries.order_by('-received_at').first()


def ingest(
    email: InboundEmail,
    source: str = ProcessingLogEntry.Source.WEBHOOK,
    retry_failed: bool = False,
) -> IngestResult:
    """Record ``email`` in the processing log unless its dedup key is taken.

    Any existing entry for the key, failed included, makes this a duplicate.
    ``retry_failed`` lets an operator log a fresh attempt over a failed one.
    """
    key = email.dedup_key
    existing = find_existing(key, include_failed=not retry_failed)
    if existing is not None:
        logger.info(f"Duplicate inbound email for {key}, existing log {existing.pk}")
        return IngestResult(existing, created=False)

    try:
        with transaction.atomic():
            entry = ProcessingLogEntry.objects.create(
                dedup_key=key,
                campaign_id=email.campaign_id,
                email_from=email.sender,
                email_to=email.recipient,
                email_subject=email.subject[:500],
                message_id=email.message_id,
                thread_id=email.thread_id,
                webhook_id=email.webhook_id,
                source=source,
                raw_content=email.body,
                html_content=email.html_body,
                metadata=email.metadata(),
            )
    except IntegrityError:
        # Lost a race with a concurrent writer for the same key
        winner = find_existing(key, include_failed=False)
        if winner is None:
            raise
        logger.info(f"Concurrent ingest for {key} resolved to log {winner.pk}")
        return IngestResult(winner, created=False)

    logger.info(f"Logged inbound email {entry.pk} from {email.sender} via {source}")
    return IngestResult(entry, created=True)
