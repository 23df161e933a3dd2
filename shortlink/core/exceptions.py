"""
Custom Exceptions

This module defines the error taxonomy of the short-link core.

- InvalidURLError / InvalidExpiryError / InvalidCodeError: caller must fix input
- CodeTakenError: requested code collides, retry with a different one
- GenerationExhaustedError: bounded generation failed, caller may retry the
  whole shorten call (signals pressure on the code space)
- ShortCodeNotFoundError / LinkExpiredError: terminal for that request;
  kept distinct so a UI can message them differently
- NotOwnerError: authorization failure on owner-only operations
"""

from datetime import datetime
from typing import Optional


class ShortLinkError(Exception):
    """Base exception for the short-link core."""
    pass


class InvalidURLError(ShortLinkError):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class InvalidExpiryError(ShortLinkError):
    """Raised when a requested expiry is not in the future."""

    def __init__(self, expires_at: datetime):
        self.expires_at = expires_at
        super().__init__(f"Expiry must be in the future: {expires_at.isoformat()}")


class InvalidCodeError(ShortLinkError):
    """Raised when a requested code violates format or reserved-word rules."""

    def __init__(self, code: str, reason: str = "Invalid short code"):
        self.code = code
        self.reason = reason
        super().__init__(f"{reason}: '{code}'")


class CodeTakenError(ShortLinkError):
    """Raised when a code is already assigned to another link."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Short code '{code}' is already taken")


class GenerationExhaustedError(ShortLinkError):
    """Raised when no free code was found within the attempt bound."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not generate a free short code after {attempts} attempts")


class ShortCodeNotFoundError(ShortLinkError):
    """Raised when a short code is not found in the database."""

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' not found")


class LinkExpiredError(ShortLinkError):
    """Raised when a short code exists but its expiry has passed."""

    def __init__(self, short_code: str, expired_at: Optional[datetime] = None):
        self.short_code = short_code
        self.expired_at = expired_at
        super().__init__(f"Short code '{short_code}' has expired")


class NotOwnerError(ShortLinkError):
    """Raised when a principal acts on a link it does not own."""

    def __init__(self, short_code: str, owner: Optional[str]):
        self.short_code = short_code
        self.owner = owner
        super().__init__(f"'{owner}' does not own short code '{short_code}'")


class DatabaseError(ShortLinkError):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
