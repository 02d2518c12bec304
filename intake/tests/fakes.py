"""
In-memory stand-ins shared by the intake tests.
"""

from typing import Optional

from intake.extraction.schemas import ExtractionMetadata, ExtractionResultV1
from intake.manyreach_client import Prospect, ThreadMessage


def make_result(confidence: float = 0.92, domain: str = 'techblog.com',
                price='350', email: str = '', **overrides) -> ExtractionResultV1:
    """Build an extraction result with one website and one guest-post price."""
    data = {
        'hasOffer': True,
        'publisher': {'email': email, 'contactName': 'John Doe', 'companyName': 'TechBlog Media'},
        'websites': [{'domain': domain, 'niches': ['technology']}] if domain else [],
        'offerings': (
            [{'offeringType': 'guest_post', 'basePrice': price, 'turnaroundDays': 5,
              'websiteDomain': domain}]
            if price is not None else []
        ),
        'overallConfidence': confidence,
    }
    data.update(overrides)
    return ExtractionResultV1.from_raw(data)


class FakeExtractionGateway:
    """Returns a fixed result (or raises) and records every call."""

    def __init__(self, result: Optional[ExtractionResultV1] = None, error: Exception = None):
        self.result = result if result is not None else make_result()
        self.error = error
        self.calls = []

    def parse(self, text, sender, subject='', metadata: Optional[ExtractionMetadata] = None):
        self.calls.append({'text': text, 'sender': sender, 'subject': subject, 'metadata': metadata})
        if self.error is not None:
            raise self.error
        result = self.result.model_copy(deep=True)
        if not result.publisher.email:
            result.publisher.email = sender
        return result


class FakeManyReachClient:
    """Serves canned prospects and threads keyed by campaign and email."""

    def __init__(self, prospects=None, threads=None, prospect_error: Exception = None):
        self.prospects = prospects or {}
        self.threads = threads or {}
        self.prospect_error = prospect_error
        self.message_calls = []

    def list_campaigns(self):
        return [{'campaignId': cid} for cid in self.prospects]

    def list_prospects(self, campaign_id):
        if self.prospect_error is not None:
            raise self.prospect_error
        return [Prospect.from_api(p) for p in self.prospects.get(str(campaign_id), [])]

    def list_messages(self, email):
        self.message_calls.append(email)
        return [ThreadMessage.from_api(m) for m in self.threads.get(email, [])]
