"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

Security Considerations:
- Input validation prevents injection attacks
- Only http/https targets are accepted (no javascript:, data:, file:)
- Length limits prevent DoS attacks
"""

from typing import Iterable, Optional
from urllib.parse import urlparse

MAX_URL_LENGTH = 2048

MALICIOUS_PATTERNS = ("javascript:", "data:", "file:", "vbscript:")


def sanitize_short_code(short_code: str, alphabet: str, max_length: int = 20) -> Optional[str]:
    """
    Sanitize and validate short code format.

    Short codes should only contain characters of the configured alphabet.
    This prevents injection attacks and ensures consistency.

    Args:
        short_code: The short code to sanitize
        alphabet: Allowed characters
        max_length: Longest code accepted

    Returns:
        Sanitized short code if valid, None otherwise
    """
    if not short_code or not isinstance(short_code, str):
        return None

    short_code = short_code.strip()

    if not short_code or len(short_code) > max_length:
        return None

    allowed = set(alphabet)
    if any(char not in allowed for char in short_code):
        return None

    return short_code


def code_format_problem(
    code: str,
    alphabet: str,
    min_length: int,
    max_length: int,
    reserved: Iterable[str] = (),
) -> Optional[str]:
    """
    Describe why a requested code is unacceptable.

    Returns:
        A human readable reason, or None when the code is acceptable
    """
    if not code:
        return "Short code cannot be empty"

    if len(code) < min_length:
        return f"Short code must be at least {min_length} characters"

    if len(code) > max_length:
        return f"Short code must be at most {max_length} characters"

    allowed = set(alphabet)
    if any(char not in allowed for char in code):
        return "Short code contains characters outside the allowed alphabet"

    if code.lower() in {word.lower() for word in reserved}:
        return "Short code is a reserved word"

    return None


def validate_url_length(url: str, max_length: int = MAX_URL_LENGTH) -> bool:
    """
    Validate URL length to prevent DoS attacks.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048 per RFC 7230)

    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def is_valid_url(url: str) -> bool:
    """
    Validate URL format and security.

    Checks that URL uses http/https, has valid domain, and doesn't contain
    malicious patterns. Prevents javascript:, file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if not validate_url_length(url):
        return False

    try:
        result = urlparse(url)
    except ValueError:
        return False

    if not result.scheme or not result.netloc:
        return False

    if result.scheme.lower() not in {"http", "https"}:
        return False

    domain = result.hostname or ""
    if domain != "localhost" and "." not in domain:
        return False

    url_lower = url.lower()
    if any(pattern in url_lower for pattern in MALICIOUS_PATTERNS):
        return False

    return True
