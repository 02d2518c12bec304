"""
Pydantic schemas for extraction gateway output.

``ExtractionResultV1`` is the versioned contract between the extraction
gateway and the confidence gate. The LLM returns camelCase or snake_case
JSON; both are accepted. Prices are major currency units (dollars) here
and only converted to minor units when an Offering row is written.
"""

from __future__ import annotations

import enum
import math
import re
from decimal import Decimal, InvalidOperation
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.exceptions import ExtractionError
from publishers.models import normalize_domain

_PRICE_RE = re.compile(r'[-+]?\d[\d,]*(?:\.\d+)?')


class OfferingType(str, enum.Enum):
    GUEST_POST = "guest_post"
    LINK_INSERTION = "link_insertion"
    LISTICLE_PLACEMENT = "listicle_placement"
    SPONSORED_REVIEW = "sponsored_review"
    PRESS_RELEASE = "press_release"
    PACKAGE_DEAL = "package_deal"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ────────────────────────────────────────────────────────────────
# Sub-models
# ────────────────────────────────────────────────────────────────

class PublisherFields(_CamelModel):
    email: str = Field(default="", description="Publisher contact email")
    contact_name: str = Field(default="", description="Name of the person replying")
    company_name: str = Field(default="", description="Company or publication name")
    phone: str = Field(default="")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return (v or "").strip().lower()


class WebsiteHint(_CamelModel):
    domain: str = Field(description="Bare domain, e.g. techblog.com")
    domain_rating: Optional[int] = Field(default=None, ge=0, le=100)
    total_traffic: Optional[int] = Field(default=None, ge=0)
    niches: List[str] = Field(default_factory=list)

    @field_validator("domain")
    @classmethod
    def normalize(cls, v: str) -> str:
        domain = normalize_domain(v)
        if not domain or "." not in domain:
            raise ValueError(f"not a domain: {v!r}")
        return domain

    @field_validator("niches")
    @classmethod
    def normalize_niches(cls, v: List[str]) -> List[str]:
        return [n.strip().lower() for n in v if n and n.strip()]


class ExtractedOffering(_CamelModel):
    offering_type: OfferingType = Field(default=OfferingType.GUEST_POST)
    base_price: Optional[Decimal] = Field(default=None, description="Major units, e.g. 350.00")
    currency: str = Field(default="USD")
    turnaround_days: Optional[int] = Field(default=None, ge=0)
    website_domain: str = Field(default="")

    @field_validator("offering_type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        try:
            return OfferingType(str(v).strip().lower())
        except ValueError:
            return OfferingType.GUEST_POST

    @field_validator("base_price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, (int, float, Decimal)):
            return Decimal(str(v))
        match = _PRICE_RE.search(str(v))
        if not match:
            return None
        try:
            return Decimal(match.group(0).replace(",", ""))
        except InvalidOperation:
            return None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return (v or "USD").strip().upper()[:3]

    @field_validator("website_domain")
    @classmethod
    def normalize_website(cls, v: str) -> str:
        return normalize_domain(v) if v else ""


class ExtractionMetadata(_CamelModel):
    """Known context passed alongside the email text."""

    prospect_name: str = ""
    company: str = ""
    website_hint: str = ""


# ────────────────────────────────────────────────────────────────
# Versioned result
# ────────────────────────────────────────────────────────────────

class ExtractionResultV1(_CamelModel):
    schema_version: Literal["v1"] = "v1"
    has_offer: bool = False
    publisher: PublisherFields = Field(default_factory=PublisherFields)
    websites: List[WebsiteHint] = Field(default_factory=list)
    offerings: List[ExtractedOffering] = Field(default_factory=list)
    overall_confidence: float = Field(default=0.0, description="0..1")
    errors: List[str] = Field(default_factory=list)

    @field_validator("overall_confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None or v == "":
            return 0.0
        value = float(v)
        # NaN and infinities carry no signal; route them to review
        if not math.isfinite(value):
            return 0.0
        # Some models answer on a 0-100 scale
        if value > 1.0:
            value = value / 100.0
        return max(0.0, min(1.0, value))

    @field_validator("websites", mode="before")
    @classmethod
    def drop_bad_websites(cls, v):
        if not isinstance(v, list):
            return []
        kept = []
        for item in v:
            if isinstance(item, str):
                item = {"domain": item}
            if not isinstance(item, dict):
                continue
            domain = normalize_domain(str(item.get("domain") or ""))
            if domain and "." in domain:
                kept.append(item)
        return kept

    @classmethod
    def from_raw(cls, data) -> "ExtractionResultV1":
        """Validate raw gateway JSON, raising ExtractionError when unusable."""
        if not isinstance(data, dict):
            raise ExtractionError("Extraction output is not a JSON object")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ExtractionError(f"Invalid extraction output: {exc.error_count()} error(s)") from exc

    def price_for(self, domain: str, first_domain: str = "") -> Optional[ExtractedOffering]:
        """First offering with a price for ``domain``; unassigned offerings go to the first site."""
        for offering in self.offerings:
            if offering.base_price is None:
                continue
            target = offering.website_domain or first_domain
            if target == domain:
                return offering
        return None

    def to_log_data(self) -> dict:
        return self.model_dump(mode="json")
