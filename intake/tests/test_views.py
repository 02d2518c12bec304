"""
Tests for intake/views.py -- ManyReach webhook endpoint.

Covers:
 1. POST bad secret           -> 401, audit entry, no log entry
 2. POST bad signature / IP   -> 403
 3. POST invalid JSON         -> 400
 4. POST {} test payload      -> 200 "Webhook test received"
 5. POST missing sender       -> 400, nothing logged
 6. POST happy path           -> 200 with logId + publisherId
 7. POST duplicate            -> 200 duplicate, no second extraction
 8. POST low confidence       -> 200 needs_review, no publisherId
 9. POST extraction failure   -> 200 with warning; redelivery is a duplicate
 9b. POST without campaign id -> keyed per sender
10. GET liveness check        -> 200 / 401
"""

import hashlib
import hmac
import json
from unittest.mock import patch

from django.test import Client, TestCase, override_settings
from django.urls import reverse

from core.exceptions import ExtractionError
from intake.confidence_gate import ConfidenceGate, ConfidencePolicy
from intake.models import ProcessingLogEntry, SecurityAuditEntry
from intake.tests.fakes import FakeExtractionGateway, make_result
from publishers.models import Publisher

SECRET = 'test-webhook-secret'


class TestManyReachWebhookView(TestCase):

    def setUp(self):
        self.client = Client()
        self.url = reverse('intake:manyreach-webhook', args=[SECRET])
        self.gateway = FakeExtractionGateway(make_result(confidence=0.92))
        patcher = patch(
            'intake.views.get_confidence_gate',
            side_effect=lambda: ConfidenceGate(self.gateway, ConfidencePolicy()),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _post(self, payload, url=None, **headers):
        body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
        return self.client.post(url or self.url, data=body, content_type='application/json', **headers)

    # -- 1-2. security --------------------------------------------------------

    def test_bad_secret_401(self):
        url = reverse('intake:manyreach-webhook', args=['wrong'])
        response = self._post({'prospect': {'email': 'a@b.com'}, 'message': 'hi'}, url=url)
        assert response.status_code == 401
        assert response.json()['success'] is False
        assert SecurityAuditEntry.objects.get().rejection_reason == 'invalid_secret'
        assert not ProcessingLogEntry.objects.exists()

    def test_bad_signature_403(self):
        response = self._post({'message': 'hi'}, HTTP_X_MANYREACH_SIGNATURE='sha256=deadbeef')
        assert response.status_code == 403
        assert 'invalid_signature' in response.json()['error']

    def test_valid_signature_accepted(self):
        body = json.dumps({})
        signature = hmac.new(b'test-signature-secret', body.encode(), hashlib.sha256).hexdigest()
        response = self._post(body, HTTP_X_MANYREACH_SIGNATURE=signature)
        assert response.status_code == 200

    @override_settings(IS_PRODUCTION=True, MANYREACH_BYPASS_IP_CHECK=False)
    def test_ip_outside_allow_list_403_in_production(self):
        response = self._post({}, REMOTE_ADDR='10.1.1.1')
        assert response.status_code == 403
        assert SecurityAuditEntry.objects.get().rejection_reason == 'ip_not_allowed'

    @override_settings(IS_PRODUCTION=True, MANYREACH_BYPASS_IP_CHECK=False)
    def test_ip_inside_allow_list_in_production(self):
        response = self._post({}, HTTP_X_FORWARDED_FOR='54.86.100.1')
        assert response.status_code == 200

    # -- 3-5. payload validation ------------------------------------------

    def test_invalid_json_400(self):
        response = self._post(b'{not json')
        assert response.status_code == 400
        assert response.json()['error'] == 'Invalid JSON'

    def test_empty_object_is_test_ping(self):
        response = self._post({})
        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': 'Webhook test received'}
        assert not ProcessingLogEntry.objects.exists()

    def test_missing_sender_400(self):
        response = self._post({'message': 'We charge $100'})
        assert response.status_code == 400
        assert 'sender' in response.json()['error']
        assert not ProcessingLogEntry.objects.exists()

    # -- 6-9. processing ----------------------------------------------------

    def test_happy_path(self):
        payload = {
            'eventId': 'evt_001',
            'campaignid': 'camp-42',
            'subject': 'Re: Guest post',
            'message': '<p>Price is $350 on techblog.com</p>',
            'prospect': {'email': 'John@TechBlog.com', 'company': 'TechBlog Media'},
        }
        response = self._post(payload, HTTP_X_MANYREACH_WEBHOOK_ID='wh-1')
        body = response.json()

        assert response.status_code == 200
        assert body['success'] is True
        assert body['status'] == 'parsed'
        entry = ProcessingLogEntry.objects.get(pk=body['logId'])
        assert entry.source == 'webhook'
        assert entry.webhook_id == 'wh-1'
        assert entry.dedup_key == 'camp-42:john@techblog.com'
        publisher = Publisher.objects.get(email='john@techblog.com')
        assert body['publisherId'] == publisher.pk
        assert publisher.account_status == 'shadow'

    def test_duplicate_delivery(self):
        payload = {'campaignid': 'c1', 'message': 'hello', 'prospect': {'email': 'a@b.com'}}
        first = self._post(payload).json()
        second = self._post(payload).json()

        assert second['duplicate'] is True
        assert second['logId'] == first['logId']
        assert second['publisherId'] == first['publisherId']
        assert len(self.gateway.calls) == 1
        assert ProcessingLogEntry.objects.count() == 1

    def test_low_confidence(self):
        self.gateway.result = make_result(confidence=0.4)
        response = self._post({'message': 'maybe?', 'prospect': {'email': 'a@b.com'}})
        body = response.json()
        assert body['status'] == 'needs_review'
        assert 'publisherId' not in body
        assert not Publisher.objects.exists()

    def test_extraction_failure_returns_warning(self):
        self.gateway.error = ExtractionError('AI API call failed: timeout')
        response = self._post({'message': 'hi', 'prospect': {'email': 'a@b.com'}})
        body = response.json()
        assert response.status_code == 200
        assert body['status'] == 'failed'
        assert 'timeout' in body['warning']

    def test_replies_without_campaign_keyed_per_sender(self):
        for sender in ('alice@one.com', 'bob@two.com'):
            payload = {
                'eventId': 'prospect_replied',
                'message': 'We charge $200',
                'prospect': {'email': sender},
            }
            assert 'duplicate' not in self._post(payload).json()

        keys = set(ProcessingLogEntry.objects.values_list('dedup_key', flat=True))
        assert keys == {'unknown:alice@one.com', 'unknown:bob@two.com'}
        assert len(self.gateway.calls) == 2

    def test_redelivery_after_failed_extraction_is_duplicate(self):
        self.gateway.error = ExtractionError('AI API call failed: timeout')
        payload = {'campaignid': 'c1', 'message': 'hello', 'prospect': {'email': 'a@b.com'}}
        first = self._post(payload).json()
        second = self._post(payload).json()

        assert first['status'] == 'failed'
        assert second['duplicate'] is True
        assert second['logId'] == first['logId']
        assert len(self.gateway.calls) == 1

    # -- 10. GET ----------------------------------------------------------

    def test_get_liveness_check(self):
        response = self.client.get(self.url)
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_get_liveness_check_bad_secret(self):
        response = self.client.get(reverse('intake:manyreach-webhook', args=['nope']))
        assert response.status_code == 401
