"""
Redirect Service

This service resolves a short code to its target URL.

Design Decisions:
- Read-only with respect to the link: a normal resolve never updates the row
- Expired links raise LinkExpiredError (distinct from not-found) and never
  redirect; their cache entry is dropped and the sweeper removes the row
- The click is handed to the ledger with a non-blocking call before the
  target is returned, so analytics never delay the redirect
"""

import logging
from typing import Optional

from shortlink.api.schemas import RequestContext
from shortlink.core.clock import utcnow
from shortlink.core.exceptions import LinkExpiredError, ShortCodeNotFoundError
from shortlink.core.validators import sanitize_short_code
from shortlink.services.click_ledger import ClickLedger, hash_client
from shortlink.services.mapping_store import MappingStore

logger = logging.getLogger(__name__)


class RedirectService:
    """
    Service for handling URL redirections.

    This service encapsulates redirect logic, making it easy to
    move to a separate microservice if needed.
    """

    def __init__(
        self,
        store: MappingStore,
        ledger: ClickLedger,
        alphabet: str,
        max_code_length: int = 10,
        client_hash_secret: str = ""
    ):
        self.store = store
        self.ledger = ledger
        self.alphabet = alphabet
        self.max_code_length = max_code_length
        self.client_hash_secret = client_hash_secret

    async def resolve(self, short_code: str, context: Optional[RequestContext] = None) -> str:
        """
        Get the target URL for redirection and record the click.

        Args:
            short_code: The code from the request path
            context: Visitor details used for the click event

        Returns:
            The target URL

        Raises:
            ShortCodeNotFoundError: Unknown or malformed code
            LinkExpiredError: The link exists but its expiry has passed
        """
        code = sanitize_short_code(short_code, self.alphabet, self.max_code_length)
        if code is None:
            raise ShortCodeNotFoundError(short_code)

        link = await self.store.lookup(code)

        if link.is_expired(utcnow()):
            self.store.cache.invalidate(code)
            logger.debug(f"Refused redirect for expired code {code}")
            raise LinkExpiredError(code, link.expires_at)

        context = context or RequestContext()
        self.ledger.record_click(
            code=code,
            client_hash=hash_client(self.client_hash_secret, context.client_ip, context.user_agent),
            referrer=context.referrer,
        )
        return link.target
