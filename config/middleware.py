"""
Django middleware for request-level correlation ID tracking.

Webhook deliveries carry ``X-ManyReach-Webhook-Id``; when present it is
reused as the correlation ID so provider-side retries line up in the logs.
"""
from config.logging_filters import new_correlation_id, set_correlation_id


class CorrelationIdMiddleware:
    """Generate or propagate a correlation ID for every request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        cid = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-ManyReach-Webhook-Id")
        )
        if cid:
            set_correlation_id(cid)
        else:
            cid = new_correlation_id()
        response = self.get_response(request)
        response["X-Correlation-ID"] = cid
        return response
