"""
Tests for intake/ingestion.py -- payload parsing and processing-log dedup.

Covers:
 1. clean_message_text(): tags, entities, block breaks, style/script
 2. compute_dedup_key(): campaign key, message-id key, sender fallback
 3. parse_webhook_payload(): happy path, missing sender/body, bad shapes
 4. ingest(): creates, dedups, failed entries are terminal unless retried, IntegrityError race
"""

from unittest.mock import patch

import pytest
from django.db import IntegrityError, transaction
from django.test import TestCase

from core.exceptions import ValidationError
from intake.ingestion import (
    InboundEmail,
    clean_message_text,
    compute_dedup_key,
    find_existing,
    ingest,
    parse_webhook_payload,
)
from intake.models import ProcessingLogEntry


# =============================================================================
# 1. Text cleaning
# =============================================================================

class TestCleanMessageText:

    def test_strips_tags_and_entities(self):
        html = '<p>Price is&nbsp;<b>$350</b> &amp; up</p>'
        assert clean_message_text(html) == 'Price is $350 & up'

    def test_block_tags_become_spaces(self):
        assert clean_message_text('line one<br>line two</p><p>three') == 'line one line two three'

    def test_drops_style_and_script(self):
        html = '<style>p {color: red}</style>Hello<script>alert(1)</script> there'
        assert clean_message_text(html) == 'Hello there'

    def test_empty(self):
        assert clean_message_text('') == ''
        assert clean_message_text(None) == ''


# =============================================================================
# 2. Dedup key
# =============================================================================

class TestComputeDedupKey:

    def test_campaign_and_sender(self):
        assert compute_dedup_key('John@TechBlog.com ', 'camp-1') == 'camp-1:john@techblog.com'

    def test_message_id_without_campaign(self):
        assert compute_dedup_key('john@techblog.com', message_id='abc') == 'msg:abc:john@techblog.com'

    def test_sender_only(self):
        assert compute_dedup_key('john@techblog.com') == 'sender:john@techblog.com'

    def test_inbound_email_property(self):
        email = InboundEmail(sender='A@B.com', body='x', campaign_id=42)
        assert email.dedup_key == '42:a@b.com'


# =============================================================================
# 3. Webhook payload parsing
# =============================================================================

class TestParseWebhookPayload:

    def test_happy_path(self, sample_webhook_payload):
        email = parse_webhook_payload(sample_webhook_payload, webhook_id='wh-1')
        assert email.sender == 'john@techblog.com'
        assert email.campaign_id == 'camp-42'
        assert email.message_id == 'evt_001'
        assert email.subject == 'Re: Guest post on TechBlog'
        assert '$350' in email.body
        assert '<p>' not in email.body
        assert email.html_body.startswith('<p>')
        assert email.prospect_name == 'John Doe'
        assert email.website_hint == 'https://www.techblog.com'
        assert email.webhook_id == 'wh-1'
        assert email.metadata() == {
            'prospect_name': 'John Doe',
            'company': 'TechBlog Media',
            'website_hint': 'https://www.techblog.com',
        }

    def test_missing_sender(self, sample_webhook_payload):
        sample_webhook_payload['prospect'] = {}
        sample_webhook_payload.pop('sender_email')
        with pytest.raises(ValidationError, match='sender'):
            parse_webhook_payload(sample_webhook_payload)

    def test_missing_body(self, sample_webhook_payload):
        sample_webhook_payload['message'] = '   '
        with pytest.raises(ValidationError, match='body'):
            parse_webhook_payload(sample_webhook_payload)

    def test_not_a_dict(self):
        with pytest.raises(ValidationError):
            parse_webhook_payload(['not', 'an', 'object'])

    def test_message_object_form(self):
        email = parse_webhook_payload({
            'from': 'jane@site.io',
            'message': {'text': 'We charge 200 USD'},
        })
        assert email.sender == 'jane@site.io'
        assert email.body == 'We charge 200 USD'
        assert email.html_body == ''
        assert email.campaign_id == 'unknown'
        assert email.dedup_key == 'unknown:jane@site.io'


# =============================================================================
# 4. Processing log store
# =============================================================================

class TestIngest(TestCase):

    def _email(self, **overrides):
        fields = dict(sender='john@techblog.com', body='Price is $350', campaign_id='camp-1')
        fields.update(overrides)
        return InboundEmail(**fields)

    def test_creates_processing_entry(self):
        result = ingest(self._email(subject='Hi'), source=ProcessingLogEntry.Source.POLLER)
        assert result.created and not result.duplicate
        entry = result.log_entry
        assert entry.dedup_key == 'camp-1:john@techblog.com'
        assert entry.status == ProcessingLogEntry.Status.PROCESSING
        assert entry.source == 'poller'
        assert entry.email_subject == 'Hi'

    def test_second_ingest_is_duplicate(self):
        first = ingest(self._email())
        second = ingest(self._email(body='different text'))
        assert second.duplicate
        assert second.log_entry.pk == first.log_entry.pk
        assert ProcessingLogEntry.objects.count() == 1

    def test_failed_entry_blocks_reprocessing(self):
        first = ingest(self._email())
        ProcessingLogEntry.objects.filter(pk=first.log_entry.pk).update(status='failed')
        second = ingest(self._email())
        assert second.duplicate
        assert second.log_entry.pk == first.log_entry.pk
        assert ProcessingLogEntry.objects.count() == 1

    def test_retry_failed_logs_fresh_attempt(self):
        first = ingest(self._email())
        ProcessingLogEntry.objects.filter(pk=first.log_entry.pk).update(status='failed')
        retry = ingest(self._email(), retry_failed=True)
        assert retry.created
        assert ProcessingLogEntry.objects.filter(dedup_key='camp-1:john@techblog.com').count() == 2
        assert ingest(self._email(), retry_failed=True).duplicate

    def test_find_existing_counts_failed(self):
        entry = ingest(self._email()).log_entry
        ProcessingLogEntry.objects.filter(pk=entry.pk).update(status='failed')
        assert find_existing(entry.dedup_key).pk == entry.pk
        assert find_existing(entry.dedup_key, include_failed=False) is None

    def test_storage_constraint_rejects_active_duplicate(self):
        ingest(self._email())
        with pytest.raises(IntegrityError), transaction.atomic():
            ProcessingLogEntry.objects.create(
                dedup_key='camp-1:john@techblog.com', email_from='john@techblog.com',
            )

    def test_concurrent_insert_resolves_to_winner(self):
        winner = ProcessingLogEntry.objects.create(
            dedup_key='camp-1:john@techblog.com', email_from='john@techblog.com',
        )
        # Pre-check misses the winner, as it would under a race
        with patch('intake.ingestion.find_existing', side_effect=[None, winner]):
            result = ingest(self._email())
        assert result.duplicate
        assert result.log_entry.pk == winner.pk
        assert ProcessingLogEntry.objects.count() == 1
