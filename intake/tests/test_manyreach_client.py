"""
Tests for intake/manyreach_client.py (requests session mocked).

Covers:
 1. Prospect / ThreadMessage parsing, latest_reply()
 2. _get(): api key param, timeout, HTTP errors, network errors, bad JSON
 3. list_prospects(): paging stops on empty / repeated pages, page cap
 4. list_messages(): 404 -> empty thread
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import ManyReachAPIError
from intake.manyreach_client import (
    ManyReachClient,
    Prospect,
    ThreadMessage,
    latest_reply,
)


def _response(status=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    if json_error:
        response.json.side_effect = ValueError('not json')
    else:
        response.json.return_value = payload
    return response


def _client(*responses, max_pages=5):
    session = MagicMock()
    session.get.side_effect = list(responses)
    client = ManyReachClient(
        api_key='key-123', base_url='https://api.example.test/v1/',
        timeout=7, max_pages=max_pages, session=session,
    )
    return client, session


# =============================================================================
# 1. Parsing
# =============================================================================

class TestParsing:

    def test_prospect_from_api(self):
        prospect = Prospect.from_api({
            'email': ' Jane@Site.IO ', 'replied': True, 'replies': '2',
            'firstName': 'Jane', 'lastName': 'Roe', 'company': 'Site', 'www': 'site.io',
        })
        assert prospect.email == 'jane@site.io'
        assert prospect.replied is True
        assert prospect.reply_count == 2
        assert prospect.full_name == 'Jane Roe'
        assert prospect.website == 'site.io'

    def test_thread_message_from_api(self):
        message = ThreadMessage.from_api({
            'type': 'reply', 'subject': 'Re: hi', 'body': '<p>ok</p>',
            'messageTime': '2024-03-01T10:00:00Z', 'messageId': 99,
        })
        assert message.is_reply
        assert message.message_id == '99'
        assert message.sent_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_latest_reply_by_time(self):
        messages = [
            ThreadMessage.from_api({'type': 'SENT', 'body': 'pitch', 'messageTime': '2024-03-05T00:00:00'}),
            ThreadMessage.from_api({'type': 'REPLY', 'body': 'first', 'messageTime': '2024-03-01T00:00:00'}),
            ThreadMessage.from_api({'type': 'REPLY', 'body': 'second', 'messageTime': '2024-03-03T00:00:00'}),
            ThreadMessage.from_api({'type': 'REPLY', 'body': 'undated'}),
        ]
        assert latest_reply(messages).body == 'second'

    def test_latest_reply_none(self):
        assert latest_reply([ThreadMessage.from_api({'type': 'SENT'})]) is None


# =============================================================================
# 2. Transport
# =============================================================================

class TestTransport:

    def test_get_passes_key_and_timeout(self):
        client, session = _client(_response(payload={'data': [{'campaignId': 1}]}))
        assert client.list_campaigns() == [{'campaignId': 1}]
        args, kwargs = session.get.call_args
        assert args[0] == 'https://api.example.test/v1/campaigns'
        assert kwargs['params'] == {'apikey': 'key-123'}
        assert kwargs['timeout'] == 7

    def test_http_error(self):
        client, _ = _client(_response(status=500))
        with pytest.raises(ManyReachAPIError) as exc_info:
            client.list_campaigns()
        assert exc_info.value.status_code == 500

    def test_network_error(self):
        client, _ = _client(requests.ConnectionError('refused'))
        with pytest.raises(ManyReachAPIError, match='refused'):
            client.list_campaigns()

    def test_invalid_json(self):
        client, _ = _client(_response(json_error=True))
        with pytest.raises(ManyReachAPIError, match='invalid JSON'):
            client.list_campaigns()

    def test_missing_api_key(self):
        client = ManyReachClient(api_key='', session=MagicMock())
        with pytest.raises(ManyReachAPIError, match='not configured'):
            client.list_campaigns()


# =============================================================================
# 3-4. Prospects and messages
# =============================================================================

class TestProspectsAndMessages:

    def test_paging_until_empty(self):
        client, session = _client(
            _response(payload={'data': [{'email': 'a@x.com'}, {'email': 'b@x.com'}]}),
            _response(payload={'data': [{'email': 'c@x.com'}]}),
            _response(payload={'data': []}),
        )
        prospects = client.list_prospects('camp 1')
        assert [p.email for p in prospects] == ['a@x.com', 'b@x.com', 'c@x.com']
        assert session.get.call_count == 3
        assert session.get.call_args_list[0].args[0].endswith('/campaigns/camp%201/prospects')
        assert session.get.call_args_list[1].kwargs['params']['page'] == 2

    def test_paging_stops_when_api_repeats_page(self):
        page = _response(payload=[{'email': 'a@x.com'}])
        client, session = _client(page, page, page)
        assert len(client.list_prospects('c')) == 1
        assert session.get.call_count == 2

    def test_page_cap(self):
        client, session = _client(
            _response(payload=[{'email': 'a@x.com'}]),
            _response(payload=[{'email': 'b@x.com'}]),
            max_pages=2,
        )
        assert len(client.list_prospects('c')) == 2
        assert session.get.call_count == 2

    def test_messages_404_is_empty(self):
        client, _ = _client(_response(status=404))
        assert client.list_messages('a@x.com') == []

    def test_messages_parsed(self):
        client, session = _client(_response(payload=[{'type': 'REPLY', 'body': 'hi'}]))
        messages = client.list_messages('a+b@x.com')
        assert messages[0].is_reply
        assert session.get.call_args.args[0].endswith('/prospects/messages/a%2Bb%40x.com')
