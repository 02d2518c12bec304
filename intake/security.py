"""
Webhook security gate.

Every inbound webhook call is evaluated here before its body is parsed.
Checks run in order:

  1. Path secret      constant-time compare; unset secret denies (401)
  2. HMAC signature   optional; if present must match sha256 of raw body
  3. Timestamp        optional; if present must be within +/- 5 minutes
  4. Source IP        IPv4 allow-list, enforced in production only

A secret failure short-circuits the rest (they are recorded as failed).
A SecurityAuditEntry is written for every call, allowed or not.

Usage:
    gate = SecurityGate.from_settings()
    decision = gate.check_request(request, path_secret)
    decision.raise_if_denied()
"""

from __future__ import annotations

import hashlib
import hmac
import ipaddress
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from django.conf import settings

from core.exceptions import AuthenticationError, SecurityPolicyError
from intake.models import SecurityAuditEntry

logger = logging.getLogger(__name__)

TIMESTAMP_TOLERANCE_SECONDS = 300

SIGNATURE_HEADER = 'X-ManyReach-Signature'
TIMESTAMP_HEADER = 'X-ManyReach-Timestamp'
WEBHOOK_ID_HEADER = 'X-ManyReach-Webhook-Id'


# ---------------------------------------------------------------------------
# Decision dataclass
# ---------------------------------------------------------------------------

@dataclass
class SecurityDecision:
    """Outcome of one security gate evaluation."""

    secret_valid: bool = False
    signature_valid: bool = False
    timestamp_valid: bool = False
    ip_allowed: bool = False
    reason: Optional[str] = None
    audit_id: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return (
            self.secret_valid
            and self.signature_valid
            and self.timestamp_valid
            and self.ip_allowed
        )

    @property
    def status_code(self) -> int:
        if not self.secret_valid:
            return 401
        return 200 if self.allowed else 403

    def raise_if_denied(self) -> None:
        if not self.secret_valid:
            raise AuthenticationError('Unauthorized')
        if not self.allowed:
            raise SecurityPolicyError(f"Forbidden: {self.reason}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def client_ip(request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then REMOTE_ADDR."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = request.headers.get('X-Real-IP', '')
    if real_ip:
        return real_ip.strip()
    return request.META.get('REMOTE_ADDR', '') or ''


def _parse_timestamp(value: str) -> Optional[float]:
    """Epoch seconds, epoch milliseconds, or ISO-8601 -> epoch seconds."""
    value = value.strip()
    try:
        number = float(value)
    except ValueError:
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).timestamp()
        except ValueError:
            return None
    # Anything past year ~33658 in seconds is a millisecond stamp
    return number / 1000.0 if number > 1e12 else number


def _parse_networks(ranges: Iterable[str]) -> list[ipaddress.IPv4Network]:
    networks = []
    for cidr in ranges:
        try:
            networks.append(ipaddress.IPv4Network(cidr, strict=False))
        except ValueError:
            logger.error(f"Ignoring invalid IP range in allow-list: {cidr!r}")
    return networks


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

class SecurityGate:
    """Stateless validator; safe to share across concurrent requests."""

    def __init__(
        self,
        webhook_secret: str = '',
        signature_secret: str = '',
        allowed_ranges: Iterable[str] = (),
        enforce_ip: bool = True,
        provider: str = 'manyreach',
        clock: Callable[[], float] = time.time,
    ):
        self.webhook_secret = webhook_secret or ''
        self.signature_secret = signature_secret or ''
        self.networks = _parse_networks(allowed_ranges)
        self.enforce_ip = enforce_ip
        self.provider = provider
        self.clock = clock

    @classmethod
    def from_settings(cls) -> 'SecurityGate':
        return cls(
            webhook_secret=settings.MANYREACH_WEBHOOK_SECRET,
            signature_secret=settings.MANYREACH_SIGNATURE_SECRET,
            allowed_ranges=settings.MANYREACH_ALLOWED_IP_RANGES,
            enforce_ip=settings.IS_PRODUCTION and not settings.MANYREACH_BYPASS_IP_CHECK,
        )

    # -- individual checks ---------------------------------------------------

    def verify_secret(self, path_secret: str) -> bool:
        if not self.webhook_secret or not path_secret:
            return False
        return hmac.compare_digest(
            path_secret.encode('utf-8'), self.webhook_secret.encode('utf-8'),
        )

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        if not signature:
            return True
        if not self.signature_secret:
            return False
        provided = signature.strip()
        if provided.startswith('sha256='):
            provided = provided[len('sha256='):]
        expected = hmac.new(
            self.signature_secret.encode('utf-8'), body, hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(provided.lower().encode('utf-8'), expected.encode('utf-8'))

    def verify_timestamp(self, timestamp: Optional[str]) -> bool:
        if not timestamp:
            return True
        parsed = _parse_timestamp(timestamp)
        if parsed is None:
            return False
        return abs(self.clock() - parsed) <= TIMESTAMP_TOLERANCE_SECONDS

    def verify_ip(self, ip: str) -> bool:
        if not self.enforce_ip:
            return True
        try:
            address = ipaddress.IPv4Address(ip)
        except ValueError:
            return False
        return any(address in network for network in self.networks)

    # -- combined ----------------------------------------------------------

    def check(
        self,
        *,
        path_secret: str,
        body: bytes,
        signature: Optional[str] = None,
        timestamp: Optional[str] = None,
        ip: str = '',
        user_agent: str = '',
        webhook_id: str = '',
    ) -> SecurityDecision:
        decision = SecurityDecision()
        decision.secret_valid = self.verify_secret(path_secret)

        if not decision.secret_valid:
            decision.reason = 'invalid_secret'
        else:
            decision.signature_valid = self.verify_signature(body, signature)
            decision.timestamp_valid = self.verify_timestamp(timestamp)
            decision.ip_allowed = self.verify_ip(ip)
            if not decision.signature_valid:
                decision.reason = 'invalid_signature'
            elif not decision.timestamp_valid:
                decision.reason = 'timestamp_out_of_window'
            elif not decision.ip_allowed:
                decision.reason = 'ip_not_allowed'

        entry = SecurityAuditEntry.objects.create(
            ip_address=ip[:64],
            user_agent=user_agent,
            provider=self.provider,
            webhook_id=webhook_id[:255],
            secret_valid=decision.secret_valid,
            signature_valid=decision.signature_valid,
            timestamp_valid=decision.timestamp_valid,
            ip_allowed=decision.ip_allowed,
            allowed=decision.allowed,
            rejection_reason=decision.reason,
        )
        decision.audit_id = entry.pk

        if not decision.allowed:
            logger.warning(f"Webhook rejected from {ip or 'unknown'}: {decision.reason}")
        return decision

    def check_request(self, request, path_secret: str) -> SecurityDecision:
        return self.check(
            path_secret=path_secret,
            body=request.body,
            signature=request.headers.get(SIGNATURE_HEADER),
            timestamp=request.headers.get(TIMESTAMP_HEADER),
            ip=client_ip(request),
            user_agent=request.headers.get('User-Agent', ''),
            webhook_id=request.headers.get(WEBHOOK_ID_HEADER, ''),
        )
