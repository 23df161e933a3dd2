"""
Database Models for the Short-Link Core

This module defines the SQLModel database schemas for:
- ShortLink: Stores the mapping between short codes and target URLs
- ClickEvent: Append-only record of redirect traversals
- ClickTotal: Compacted per-code click counters
- ClickDailyCount: Compacted per-code, per-day click counts (bounded window)

Design Decisions:
- Unique index on short_links.code: the constraint IS the reservation
  mechanism, so concurrent writers never need an application lock
- click_events is separate and append-only so it can be partitioned or moved
  to a time-series store independently of the hot lookup table
- Timestamps are naive UTC (see shortlink.core.clock)
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlmodel import Column, Field, Index, SQLModel

from shortlink.core.clock import utcnow


class ShortLink(SQLModel, table=True):
    """
    Main table storing code -> target mappings.

    Fields:
    - id: Auto-incrementing primary key
    - code: Unique short code (5-10 characters)
    - target: The long URL the code redirects to
    - owner: Opaque principal identifier, None for anonymous links
    - created_at: Creation timestamp
    - custom: True when the code was chosen by the user
    - expires_at: Optional expiry; None means the link never expires
    """
    __tablename__ = "short_links"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(
        sa_column=Column(String(10), nullable=False, unique=True, index=True)
    )
    target: str = Field(sa_column=Column(Text, nullable=False))
    owner: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(), nullable=False, index=True)
    )
    custom: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(), nullable=True, index=True)
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class ClickEvent(SQLModel, table=True):
    """
    One row per redirect traversal.

    client_hash is an HMAC of the requester's address and user agent; the raw
    IP address is never persisted.
    """
    __tablename__ = "click_events"
    __table_args__ = (
        Index("ix_click_events_code_clicked_at", "code", "clicked_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(sa_column=Column(String(10), nullable=False, index=True))
    clicked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(), nullable=False, index=True)
    )
    referrer: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True)
    )
    client_hash: str = Field(sa_column=Column(String(64), nullable=False))


class ClickTotal(SQLModel, table=True):
    """Compacted lifetime counters for one code."""
    __tablename__ = "click_aggregates"

    code: str = Field(sa_column=Column(String(10), primary_key=True))
    total_clicks: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_clicked_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(), nullable=True)
    )


class ClickDailyCount(SQLModel, table=True):
    """Compacted clicks for one code on one UTC day."""
    __tablename__ = "click_daily_counts"

    code: str = Field(sa_column=Column(String(10), primary_key=True))
    day: date = Field(sa_column=Column(Date, primary_key=True))
    clicks: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
