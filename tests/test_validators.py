"""Tests for URL and short code validation."""

from shortlink.core.setting import BASE62_ALPHABET
from shortlink.core.validators import code_format_problem, is_valid_url, sanitize_short_code


class TestURLValidation:
    """Test URL validation function."""

    def test_valid_urls(self):
        """Test that valid URLs are accepted."""
        valid_urls = [
            "http://example.com",
            "https://example.com",
            "https://www.example.com/path/to/page",
            "http://subdomain.example.com:8080/path?query=value",
            "https://example.com/a/b?c=1",
            "http://localhost:3000/dashboard",
        ]
        for url in valid_urls:
            assert is_valid_url(url), f"Should be valid: {url}"

    def test_invalid_urls(self):
        """Test that invalid URLs are rejected."""
        invalid_urls = [
            "not-a-url",
            "ftp://example.com",  # FTP not supported
            "example.com",  # Missing scheme
            "",
            "http://",  # Missing domain
            "javascript:alert(1)",
            "http://intranet/path",  # No dot in host
            "https://example.com/" + "a" * 2048,  # Too long
        ]
        for url in invalid_urls:
            assert not is_valid_url(url), f"Should be invalid: {url}"

    def test_non_string_rejected(self):
        assert not is_valid_url(None)
        assert not is_valid_url(42)


class TestShortCodeSanitizing:

    def test_accepts_alphabet_characters(self):
        assert sanitize_short_code("a1B2c3D", BASE62_ALPHABET) == "a1B2c3D"

    def test_strips_whitespace(self):
        assert sanitize_short_code("  a1B2c3D ", BASE62_ALPHABET) == "a1B2c3D"

    def test_rejects_foreign_characters(self):
        for code in ["../etc", "abc-def", "abc def", "drop;table", ""]:
            assert sanitize_short_code(code, BASE62_ALPHABET) is None, code

    def test_rejects_overlong(self):
        assert sanitize_short_code("a" * 11, BASE62_ALPHABET, max_length=10) is None


class TestCodeFormatProblem:

    def check(self, code, reserved=("api", "admin")):
        return code_format_problem(code, BASE62_ALPHABET, 5, 10, reserved)

    def test_acceptable_code(self):
        assert self.check("promo2026") is None

    def test_length_bounds(self):
        assert "at least 5" in self.check("abcd")
        assert "at most 10" in self.check("abcdefghijk")

    def test_alphabet(self):
        assert "alphabet" in self.check("promo-2026")

    def test_reserved_words_case_insensitive(self):
        assert "reserved" in code_format_problem("HEALTH", BASE62_ALPHABET, 5, 10, ["health"])
