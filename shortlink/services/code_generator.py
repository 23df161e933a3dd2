"""
Short Code Generator

Proposes short codes; it never writes. The shortening workflow reserves the
proposed code through MappingStore.reserve(), which is the atomic step.

Design Decisions:
- Generated codes are derived deterministically: sha256(target:salt) reduced
  into alphabet^length and encoded with a fixed length. The salt is a
  per-generator counter that only moves forward, so the same URL shortened
  twice gets two different codes and a collision is retried with a new salt
- The counter starts at a random offset so that separate processes do not
  walk the same salt sequence
- Requested (vanity) codes are validated against alphabet, length bounds and
  reserved route words before availability is checked

Why Base62?
- More compact than base10 (fewer characters needed)
- URL-safe (no special characters)
- 62^7 ~ 3.5 * 10^12 codes keeps random collisions negligible
"""

import hashlib
import itertools
import logging
import secrets
from typing import Iterable, Optional

from shortlink.core.exceptions import (
    CodeTakenError,
    GenerationExhaustedError,
    InvalidCodeError,
)
from shortlink.core.setting import BASE62_ALPHABET, DEFAULT_RESERVED_CODES
from shortlink.core.validators import code_format_problem
from shortlink.services.mapping_store import MappingStore

logger = logging.getLogger(__name__)


def encode_code(number: int, length: int = 7, alphabet: str = BASE62_ALPHABET) -> str:
    """
    Encode a number with the given alphabet, left-padded to length.

    Example:
        encode_code(0) -> "0000000"
        encode_code(62) -> "0000010"
    """
    base = len(alphabet)
    digits = []
    while number > 0:
        number, remainder = divmod(number, base)
        digits.append(alphabet[remainder])

    code = "".join(reversed(digits))
    return code.rjust(length, alphabet[0])


def derive_code(target: str, salt: int, length: int = 7, alphabet: str = BASE62_ALPHABET) -> str:
    """Hash target with salt into a fixed-length code."""
    digest = hashlib.sha256(f"{target}:{salt}".encode("utf-8")).digest()
    space = len(alphabet) ** length
    return encode_code(int.from_bytes(digest, "big") % space, length, alphabet)


class CodeGenerator:
    """
    Produces collision-free short codes.

    The availability check here is advisory: two callers can be handed the
    same free code, and the loser of the reservation race gets CodeTakenError
    from the store.
    """

    def __init__(
        self,
        store: MappingStore,
        length: int = 7,
        alphabet: str = BASE62_ALPHABET,
        min_length: int = 5,
        max_length: int = 10,
        max_attempts: int = 5,
        reserved_codes: Iterable[str] = DEFAULT_RESERVED_CODES,
        salt_start: Optional[int] = None
    ):
        if not min_length <= length <= max_length:
            raise ValueError("generated code length must lie within the vanity length bounds")
        if len(set(alphabet)) != len(alphabet) or len(alphabet) < 2:
            raise ValueError("alphabet must contain at least two distinct characters")

        self.store = store
        self.length = length
        self.alphabet = alphabet
        self.min_length = min_length
        self.max_length = max_length
        self.max_attempts = max_attempts
        self.reserved_codes = frozenset(code.lower() for code in reserved_codes)
        start = secrets.randbits(48) if salt_start is None else salt_start
        self._salts = itertools.count(start)

    def validate_requested(self, code: str) -> str:
        """
        Check a vanity code against format rules.

        Raises:
            InvalidCodeError: If the code violates alphabet, length or
                reserved-word rules
        """
        problem = code_format_problem(
            code,
            alphabet=self.alphabet,
            min_length=self.min_length,
            max_length=self.max_length,
            reserved=self.reserved_codes,
        )
        if problem:
            raise InvalidCodeError(code, problem)
        return code

    def next_candidate(self, target: str) -> str:
        """Derive the next candidate for target, consuming one salt."""
        return derive_code(target, next(self._salts), self.length, self.alphabet)

    async def generate(self, target: str, requested_code: Optional[str] = None) -> str:
        """
        Propose a free code for target.

        Args:
            target: The URL being shortened
            requested_code: Vanity code chosen by the user, if any

        Returns:
            A code that was free when checked

        Raises:
            InvalidCodeError: Requested code violates format rules
            CodeTakenError: Requested code is already in use
            GenerationExhaustedError: No free code within max_attempts salts
        """
        if requested_code is not None:
            code = self.validate_requested(requested_code)
            if not await self.store.is_available(code):
                raise CodeTakenError(code)
            return code

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.next_candidate(target)
            if candidate.lower() in self.reserved_codes:
                continue
            if await self.store.is_available(candidate):
                return candidate
            logger.warning(f"Generated code collision on attempt {attempt}: {candidate}")

        logger.error(
            f"Code generation exhausted after {self.max_attempts} attempts; "
            "the code space may be under pressure"
        )
        raise GenerationExhaustedError(self.max_attempts)
