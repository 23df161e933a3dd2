"""
Boundary Request and Response Schemas

This module defines the Pydantic models exchanged with the presentation and
delivery layers (REST, RPC, templates). No transport is implemented here;
these are the shapes any transport passes in and gets back.

Design Principles:
- Request models: Define input validation
- Response models: Define output structure
- Separation: Can be imported by services, tests and transports alike
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl


class ShortenRequest(BaseModel):
    """Input of the shorten operation."""
    url: HttpUrl = Field(..., description="The long URL to shorten")
    owner: Optional[str] = Field(
        default=None,
        max_length=128,
        description="Opaque identifier of the creating principal; omitted for anonymous links"
    )
    custom_code: Optional[str] = Field(default=None, description="Requested vanity code")
    expires_at: Optional[datetime] = Field(default=None, description="Optional expiry (UTC)")


class ShortenResult(BaseModel):
    """Output of the shorten operation."""
    code: str = Field(..., description="The allocated short code")
    target: str = Field(..., description="The original long URL")
    short_url: str = Field(..., description="The complete short URL")
    custom: bool = False
    expires_at: Optional[datetime] = None


class RequestContext(BaseModel):
    """What the transport knows about the visitor of a redirect."""
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class DailyClicks(BaseModel):
    day: date
    clicks: int


class ClickAggregate(BaseModel):
    """Click summary for one code."""
    code: str
    total_clicks: int = 0
    last_clicked_at: Optional[datetime] = None
    daily: list[DailyClicks] = Field(
        default_factory=list,
        description="Per-day counts within the histogram window, oldest first"
    )


class LinkInfo(BaseModel):
    """An owner's view of one of their links."""
    code: str
    target: str
    created_at: datetime
    custom: bool
    expires_at: Optional[datetime] = None
