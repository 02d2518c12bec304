"""
Inbound ManyReach webhook.

POST /webhooks/manyreach/<secret>/
  1. Security gate (401 bad secret, 403 signature/timestamp/IP); the body
     is not parsed on a rejected call.
  2. JSON decode (400) and structural validation (400, nothing logged).
  3. Ingest into the processing log (dedup), then confidence gate.
  4. 200 {success, logId, publisherId?}

GET /webhooks/manyreach/<secret>/
  Liveness probe; only the path secret is checked.
"""

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from core.exceptions import PipelineError, ValidationError
from intake.confidence_gate import ConfidenceGate
from intake.ingestion import ingest, parse_webhook_payload
from intake.models import ProcessingLogEntry
from intake.security import WEBHOOK_ID_HEADER, SecurityGate

logger = logging.getLogger(__name__)


def _error_response(exc: PipelineError) -> JsonResponse:
    return JsonResponse({'success': False, 'error': str(exc)}, status=exc.http_status)


def get_confidence_gate() -> ConfidenceGate:
    """Build the production confidence gate (patched in tests)."""
    from intake.extraction.gateway import LLMExtractionGateway
    return ConfidenceGate(LLMExtractionGateway())


@method_decorator(csrf_exempt, name='dispatch')
class ManyReachWebhookView(View):

    def get(self, request, secret):
        if not SecurityGate.from_settings().verify_secret(secret):
            return JsonResponse({'error': 'Unauthorized'}, status=401)
        return JsonResponse({'status': 'ok', 'provider': 'manyreach'})

    def post(self, request, secret):
        decision = SecurityGate.from_settings().check_request(request, secret)
        try:
            decision.raise_if_denied()
        except PipelineError as exc:
            return _error_response(exc)

        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

        # Provider "test webhook" button sends an empty object
        if payload == {}:
            return JsonResponse({'success': True, 'message': 'Webhook test received'})

        try:
            email = parse_webhook_payload(
                payload, webhook_id=request.headers.get(WEBHOOK_ID_HEADER, ''),
            )
        except ValidationError as exc:
            logger.info(f"Rejected webhook payload: {exc}")
            return _error_response(exc)

        ingested = ingest(email, source=ProcessingLogEntry.Source.WEBHOOK)
        entry = ingested.log_entry
        if ingested.duplicate:
            body = {'success': True, 'logId': str(entry.pk), 'duplicate': True}
            if entry.shadow_publisher_id:
                body['publisherId'] = entry.shadow_publisher_id
            return JsonResponse(body)

        outcome = get_confidence_gate().evaluate(entry)

        body = {
            'success': True,
            'logId': str(entry.pk),
            'status': outcome.status,
        }
        if outcome.shadow_publisher_id:
            body['publisherId'] = outcome.shadow_publisher_id
        if outcome.status == ProcessingLogEntry.Status.FAILED:
            body['warning'] = entry.error_message
        return JsonResponse(body)
