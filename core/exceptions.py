"""
Error taxonomy for the intake and migration pipeline.

Request-boundary errors carry the HTTP status they map to; per-item and
fatal migration errors never reach HTTP directly.
"""

from __future__ import annotations

from dataclasses import dataclass


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    http_status: int = 500


class AuthenticationError(PipelineError):
    """Bad or missing path secret."""

    http_status = 401


class ValidationError(PipelineError):
    """Malformed payload or missing required fields. No log entry is written."""

    http_status = 400


class SecurityPolicyError(PipelineError):
    """Signature, timestamp or source IP rejected."""

    http_status = 403


class ExtractionError(PipelineError):
    """The extraction gateway failed or returned unusable output."""


class ManyReachAPIError(PipelineError):
    """Outreach provider API call failed (network, timeout, non-2xx)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PollerBusyError(PipelineError):
    """Another poller run currently holds the lease."""


class MigrationFatalError(PipelineError):
    """Whole-call migration failure (publisher missing, transaction error)."""


@dataclass
class MigrationItemError:
    """One shadow row that failed to migrate. Collected, never raised."""

    shadow_id: int
    website_id: int | None
    domain: str
    message: str

    def as_dict(self) -> dict:
        return {
            "shadow_id": self.shadow_id,
            "website_id": self.website_id,
            "domain": self.domain,
            "message": self.message,
        }
