"""
ManyReach outreach API client.

Endpoints used (API key passed as the ``apikey`` query parameter):
  GET /campaigns                         campaign listing
  GET /campaigns/{id}/prospects?page=N   prospects with replied flag
  GET /prospects/messages/{email}        message thread (SENT / REPLY)

Every request is bounded by a timeout; failures raise ManyReachAPIError
and are never retried in-line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import List, Optional
from urllib.parse import quote

import requests
from django.conf import settings

from core.exceptions import ManyReachAPIError

logger = logging.getLogger(__name__)


@dataclass
class Prospect:
    email: str
    replied: bool = False
    reply_count: int = 0
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    website: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Prospect":
        return cls(
            email=(data.get("email") or "").strip().lower(),
            replied=bool(data.get("replied")),
            reply_count=int(data.get("replies") or data.get("replyCount") or 0),
            first_name=data.get("firstName") or data.get("firstname") or "",
            last_name=data.get("lastName") or data.get("lastname") or "",
            company=data.get("company") or "",
            website=data.get("website") or data.get("www") or data.get("domain") or "",
        )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


@dataclass
class ThreadMessage:
    message_type: str
    subject: str
    body: str
    sent_at: Optional[datetime]
    message_id: str = ""
    from_email: str = ""

    @property
    def is_reply(self) -> bool:
        return self.message_type.upper() == "REPLY"

    @classmethod
    def from_api(cls, data: dict) -> "ThreadMessage":
        return cls(
            message_type=str(data.get("type") or ""),
            subject=data.get("subject") or "",
            body=data.get("body") or data.get("html") or data.get("text") or "",
            sent_at=_parse_time(data.get("messageTime") or data.get("date")),
            message_id=str(data.get("messageId") or data.get("id") or ""),
            from_email=(data.get("from") or "").strip().lower(),
        )


def _parse_time(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def latest_reply(messages: List[ThreadMessage]) -> Optional[ThreadMessage]:
    """Most recent REPLY message by timestamp; undated replies sort last."""
    replies = [m for m in messages if m.is_reply]
    if not replies:
        return None
    floor = datetime.min.replace(tzinfo=dt_timezone.utc)
    return max(replies, key=lambda m: m.sent_at or floor)


class ManyReachClient:

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        max_pages: int = None,
        session: requests.Session = None,
    ):
        config = settings.SHADOW_PUBLISHER_CONFIG
        self.api_key = api_key if api_key is not None else settings.MANYREACH_API_KEY
        self.base_url = (base_url or settings.MANYREACH_API_BASE).rstrip("/")
        self.timeout = timeout or config.get("request_timeout_seconds", 15)
        self.max_pages = max_pages or config.get("poller", {}).get("max_prospect_pages", 50)
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict = None, allow_404: bool = False):
        if not self.api_key:
            raise ManyReachAPIError("MANYREACH_API_KEY not configured")
        query = {"apikey": self.api_key}
        query.update(params or {})
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ManyReachAPIError(f"GET {path} failed: {exc}") from exc

        if allow_404 and response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ManyReachAPIError(
                f"GET {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ManyReachAPIError(f"GET {path} returned invalid JSON") from exc

    @staticmethod
    def _items(payload) -> list:
        if payload is None:
            return []
        if isinstance(payload, list):
            return payload
        return payload.get("data") or payload.get("items") or []

    def list_campaigns(self) -> List[dict]:
        return self._items(self._get("/campaigns"))

    def list_prospects(self, campaign_id: str) -> List[Prospect]:
        prospects: List[Prospect] = []
        seen = set()
        for page in range(1, self.max_pages + 1):
            items = self._items(
                self._get(f"/campaigns/{quote(str(campaign_id))}/prospects", {"page": page})
            )
            fresh = [
                Prospect.from_api(item) for item in items
                if item.get("email") and item["email"].strip().lower() not in seen
            ]
            # Empty page, or an API that ignores paging and repeats itself
            if not fresh:
                break
            seen.update(p.email for p in fresh)
            prospects.extend(fresh)
        else:
            logger.warning(
                f"Campaign {campaign_id}: stopped after {self.max_pages} prospect pages"
            )
        return prospects

    def list_messages(self, email: str) -> List[ThreadMessage]:
        payload = self._get(f"/prospects/messages/{quote(email)}", allow_404=True)
        return [ThreadMessage.from_api(item) for item in self._items(payload)]
