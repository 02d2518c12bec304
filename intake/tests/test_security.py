"""
Tests for intake/security.py -- webhook security gate.

Covers:
 1. Path secret: match, mismatch, unset secret
 2. HMAC signature: absent, valid (with/without sha256= prefix), tampered,
    present with no signing secret configured
 3. Timestamp: absent, seconds, milliseconds, ISO, stale, garbage
 4. IP allow-list: enforced vs not enforced, invalid address
 5. check(): audit entry per call, reason precedence, status codes
 6. client_ip() header precedence
"""

import hashlib
import hmac
from unittest.mock import MagicMock

import pytest
from django.test import RequestFactory, TestCase, override_settings

from core.exceptions import AuthenticationError, SecurityPolicyError
from intake.models import SecurityAuditEntry
from intake.security import (
    SecurityDecision,
    SecurityGate,
    _parse_timestamp,
    client_ip,
)

NOW = 1_700_000_000.0
SECRET = 'path-secret'
SIGNING = 'signing-secret'


def _gate(**overrides):
    kwargs = dict(
        webhook_secret=SECRET,
        signature_secret=SIGNING,
        allowed_ranges=['54.86.0.0/16'],
        enforce_ip=True,
        clock=lambda: NOW,
    )
    kwargs.update(overrides)
    return SecurityGate(**kwargs)


def _sign(body: bytes, key: str = SIGNING) -> str:
    return hmac.new(key.encode(), body, hashlib.sha256).hexdigest()


# =============================================================================
# 1. Individual checks
# =============================================================================

class TestVerifySecret:

    def test_matching_secret(self):
        assert _gate().verify_secret(SECRET) is True

    def test_wrong_secret(self):
        assert _gate().verify_secret('nope') is False

    def test_unset_secret_denies_everything(self):
        assert _gate(webhook_secret='').verify_secret('') is False
        assert _gate(webhook_secret='').verify_secret('anything') is False


class TestVerifySignature:

    def test_absent_signature_passes(self):
        assert _gate().verify_signature(b'{}', None) is True

    def test_valid_signature(self):
        body = b'{"a": 1}'
        assert _gate().verify_signature(body, _sign(body)) is True

    def test_prefixed_signature(self):
        body = b'{"a": 1}'
        assert _gate().verify_signature(body, f'sha256={_sign(body)}') is True

    def test_tampered_body(self):
        assert _gate().verify_signature(b'{"a": 2}', _sign(b'{"a": 1}')) is False

    def test_signature_without_signing_secret_is_invalid(self):
        body = b'{}'
        assert _gate(signature_secret='').verify_signature(body, _sign(body)) is False


class TestVerifyTimestamp:

    def test_absent_passes(self):
        assert _gate().verify_timestamp(None) is True

    def test_seconds_within_window(self):
        assert _gate().verify_timestamp(str(int(NOW - 120))) is True

    def test_milliseconds_within_window(self):
        assert _gate().verify_timestamp(str(int((NOW + 60) * 1000))) is True

    def test_boundary_is_inclusive(self):
        assert _gate().verify_timestamp(str(int(NOW - 300))) is True

    def test_stale_timestamp(self):
        assert _gate().verify_timestamp(str(int(NOW - 301))) is False

    def test_iso_timestamp(self):
        assert _parse_timestamp('2023-11-14T22:13:20Z') == pytest.approx(NOW)
        assert _gate().verify_timestamp('2023-11-14T22:13:20Z') is True

    def test_garbage_timestamp(self):
        assert _gate().verify_timestamp('yesterday') is False


class TestVerifyIp:

    def test_inside_range(self):
        assert _gate().verify_ip('54.86.12.34') is True

    def test_outside_range(self):
        assert _gate().verify_ip('10.0.0.1') is False

    def test_invalid_address(self):
        assert _gate().verify_ip('not-an-ip') is False

    def test_not_enforced_allows_any(self):
        assert _gate(enforce_ip=False).verify_ip('10.0.0.1') is True

    def test_bad_cidr_is_ignored(self):
        gate = _gate(allowed_ranges=['garbage', '54.86.0.0/16'])
        assert len(gate.networks) == 1


# =============================================================================
# 2. Combined check + audit trail
# =============================================================================

class TestCheck(TestCase):

    def test_allowed_call_writes_audit(self):
        body = b'{"x": 1}'
        decision = _gate().check(
            path_secret=SECRET, body=body, signature=_sign(body),
            timestamp=str(int(NOW)), ip='54.86.1.1', webhook_id='wh-1',
        )
        assert decision.allowed
        assert decision.status_code == 200
        entry = SecurityAuditEntry.objects.get(pk=decision.audit_id)
        assert entry.allowed is True
        assert entry.webhook_id == 'wh-1'
        assert entry.rejection_reason is None

    def test_bad_secret_short_circuits(self):
        decision = _gate().check(path_secret='wrong', body=b'{}', ip='54.86.1.1')
        assert decision.reason == 'invalid_secret'
        assert decision.status_code == 401
        assert decision.signature_valid is False
        entry = SecurityAuditEntry.objects.get()
        assert entry.secret_valid is False
        assert entry.rejection_reason == 'invalid_secret'

    def test_signature_reason_wins_over_ip(self):
        decision = _gate().check(
            path_secret=SECRET, body=b'{}', signature='deadbeef', ip='10.0.0.1',
        )
        assert decision.reason == 'invalid_signature'
        assert decision.status_code == 403

    def test_timestamp_rejection(self):
        decision = _gate().check(
            path_secret=SECRET, body=b'{}', timestamp=str(int(NOW - 3600)), ip='54.86.1.1',
        )
        assert decision.reason == 'timestamp_out_of_window'
        assert decision.status_code == 403

    def test_ip_rejection(self):
        decision = _gate().check(path_secret=SECRET, body=b'{}', ip='8.8.8.8')
        assert decision.reason == 'ip_not_allowed'
        assert SecurityAuditEntry.objects.filter(allowed=False).count() == 1

    def test_every_call_audited(self):
        gate = _gate(enforce_ip=False)
        gate.check(path_secret=SECRET, body=b'{}')
        gate.check(path_secret='bad', body=b'{}')
        assert SecurityAuditEntry.objects.count() == 2

    @override_settings(IS_PRODUCTION=True, MANYREACH_BYPASS_IP_CHECK=False)
    def test_from_settings_enforces_ip_in_production(self):
        assert SecurityGate.from_settings().enforce_ip is True

    @override_settings(IS_PRODUCTION=True, MANYREACH_BYPASS_IP_CHECK=True)
    def test_from_settings_bypass_flag(self):
        assert SecurityGate.from_settings().enforce_ip is False

    def test_from_settings_not_enforced_outside_production(self):
        assert SecurityGate.from_settings().enforce_ip is False

    def test_check_request_reads_headers(self):
        body = b'{"x": 1}'
        request = RequestFactory().post(
            '/webhooks/manyreach/x/', data=body, content_type='application/json',
            HTTP_X_MANYREACH_SIGNATURE=f'sha256={_sign(body)}',
            HTTP_X_FORWARDED_FOR='54.86.9.9, 10.0.0.1',
            HTTP_X_MANYREACH_WEBHOOK_ID='wh-77',
        )
        decision = _gate().check_request(request, SECRET)
        assert decision.allowed
        entry = SecurityAuditEntry.objects.get()
        assert entry.ip_address == '54.86.9.9'
        assert entry.webhook_id == 'wh-77'


# =============================================================================
# 3. Decision + helpers
# =============================================================================

class TestSecurityDecision:

    def test_raise_if_denied_secret(self):
        with pytest.raises(AuthenticationError):
            SecurityDecision(secret_valid=False).raise_if_denied()

    def test_raise_if_denied_policy(self):
        decision = SecurityDecision(
            secret_valid=True, signature_valid=True, timestamp_valid=True,
            ip_allowed=False, reason='ip_not_allowed',
        )
        with pytest.raises(SecurityPolicyError, match='ip_not_allowed'):
            decision.raise_if_denied()

    def test_allowed_does_not_raise(self):
        SecurityDecision(True, True, True, True).raise_if_denied()


class TestClientIp:

    def _request(self, headers, remote='127.0.0.1'):
        request = MagicMock()
        request.headers = headers
        request.META = {'REMOTE_ADDR': remote}
        return request

    def test_forwarded_for_first_hop(self):
        assert client_ip(self._request({'X-Forwarded-For': '1.2.3.4, 5.6.7.8'})) == '1.2.3.4'

    def test_real_ip(self):
        assert client_ip(self._request({'X-Real-IP': '9.9.9.9'})) == '9.9.9.9'

    def test_remote_addr_fallback(self):
        assert client_ip(self._request({}, remote='4.4.4.4')) == '4.4.4.4'
