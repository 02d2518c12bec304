"""
Root conftest for the Shadow Publisher Intake test suite.

Handles:
- Django settings configuration (in-memory SQLite via config.test_settings)
- Shared fixtures for webhook payloads, extraction results and canonical rows
"""

import os
from decimal import Decimal

import pytest

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_webhook_payload():
    """ManyReach reply webhook body for john@techblog.com."""
    return {
        'eventId': 'evt_001',
        'campaignid': 'camp-42',
        'subject': 'Re: Guest post on TechBlog',
        'message': (
            '<p>Hi there,</p><p>Yes, we accept guest posts on '
            '<b>techblog.com</b>.&nbsp;Price is $350, turnaround 5 days.</p>'
        ),
        'prospect': {
            'email': 'John@TechBlog.com',
            'firstname': 'John',
            'lastname': 'Doe',
            'company': 'TechBlog Media',
            'www': 'https://www.techblog.com',
        },
        'sender_email': 'outreach@agency.com',
    }


@pytest.fixture
def sample_extraction_data():
    """Raw (camelCase) extraction output as the LLM returns it."""
    return {
        'hasOffer': True,
        'publisher': {
            'email': 'john@techblog.com',
            'contactName': 'John Doe',
            'companyName': 'TechBlog Media',
        },
        'websites': [
            {'domain': 'techblog.com', 'domainRating': 55, 'niches': ['Technology']},
        ],
        'offerings': [
            {
                'offeringType': 'guest_post',
                'basePrice': 350,
                'currency': 'usd',
                'turnaroundDays': 5,
                'websiteDomain': 'techblog.com',
            },
        ],
        'overallConfidence': 0.92,
        'errors': [],
    }


@pytest.fixture
def extraction_result(sample_extraction_data):
    from intake.extraction.schemas import ExtractionResultV1
    return ExtractionResultV1.from_raw(sample_extraction_data)


@pytest.fixture
def shadow_publisher(db):
    """Shadow publisher with one pending shadow relationship priced at $350."""
    from publishers.models import Publisher, ShadowRelationship, Website

    publisher = Publisher.objects.create(email='john@techblog.com', company_name='TechBlog Media')
    website = Website.objects.create(domain='techblog.com')
    ShadowRelationship.objects.create(
        publisher=publisher,
        website=website,
        confidence=0.92,
        guest_post_cost=Decimal('350'),
    )
    return publisher
