"""
Tests for short code encoding and generation.

The generator only needs is_available() from the store, so these tests use a
small in-memory stand-in instead of a database.
"""

import pytest

from shortlink.core.exceptions import CodeTakenError, GenerationExhaustedError, InvalidCodeError
from shortlink.services.code_generator import (
    CodeGenerator,
    derive_code,
    encode_code,
)


class SetBackedStore:
    """Store stand-in: codes in `taken` are unavailable."""

    def __init__(self, taken=()):
        self.taken = set(taken)
        self.checked = []

    async def is_available(self, code):
        self.checked.append(code)
        return code not in self.taken


class AlwaysTakenStore:
    def __init__(self):
        self.checks = 0

    async def is_available(self, code):
        self.checks += 1
        return False


class TestBase62Encoding:
    """Test base62 encoding."""

    def test_encode(self):
        """Test encoding decimal numbers to base62 with fixed 7-character length."""
        assert encode_code(0) == "0000000"
        assert encode_code(1) == "0000001"
        assert encode_code(62) == "0000010"  # 62 in base62 is "10", padded to 7 chars
        assert encode_code(100000000000) == "1L9zO9O"  # Already 7 chars, no padding needed

    def test_custom_alphabet(self):
        assert encode_code(5, length=3, alphabet="01") == "101"


class TestDeriveCode:

    def test_deterministic_for_same_salt(self):
        assert derive_code("https://example.com", 7) == derive_code("https://example.com", 7)

    def test_salt_changes_code(self):
        codes = {derive_code("https://example.com", salt) for salt in range(20)}
        assert len(codes) == 20

    def test_fixed_length(self):
        for salt in range(50):
            code = derive_code("https://example.com/a/b?c=1", salt, length=7)
            assert len(code) == 7
            assert code.isalnum()


class TestCodeGenerator:

    @pytest.mark.asyncio
    async def test_generates_free_code(self):
        store = SetBackedStore()
        generator = CodeGenerator(store, salt_start=0)
        code = await generator.generate("https://example.com")
        assert len(code) == 7
        assert store.checked == [code]

    @pytest.mark.asyncio
    async def test_same_target_gets_new_code_each_call(self):
        generator = CodeGenerator(SetBackedStore(), salt_start=0)
        first = await generator.generate("https://example.com")
        second = await generator.generate("https://example.com")
        assert first != second

    @pytest.mark.asyncio
    async def test_collision_retries_with_next_salt(self):
        colliding = derive_code("https://example.com", 100)
        store = SetBackedStore(taken={colliding})
        generator = CodeGenerator(store, salt_start=100)
        code = await generator.generate("https://example.com")
        assert code == derive_code("https://example.com", 101)
        assert store.checked == [colliding, code]

    @pytest.mark.asyncio
    async def test_exhaustion_after_bounded_attempts(self):
        store = AlwaysTakenStore()
        generator = CodeGenerator(store, max_attempts=5)
        with pytest.raises(GenerationExhaustedError) as exc_info:
            await generator.generate("https://example.com")
        assert exc_info.value.attempts == 5
        assert store.checks == 5

    @pytest.mark.asyncio
    async def test_requested_code_is_returned_when_free(self):
        generator = CodeGenerator(SetBackedStore())
        assert await generator.generate("https://example.com", "promo2026") == "promo2026"

    @pytest.mark.asyncio
    async def test_requested_code_taken(self):
        generator = CodeGenerator(SetBackedStore(taken={"promo2026"}))
        with pytest.raises(CodeTakenError):
            await generator.generate("https://example.com", "promo2026")

    @pytest.mark.asyncio
    async def test_requested_code_invalid(self):
        generator = CodeGenerator(SetBackedStore())
        for code in ["abc", "way-too-long-code", "promo 26", "Admin", "stats"]:
            with pytest.raises(InvalidCodeError):
                await generator.generate("https://example.com", code)

    def test_rejects_length_outside_bounds(self):
        with pytest.raises(ValueError):
            CodeGenerator(SetBackedStore(), length=4, min_length=5)
