"""
Link Service

The function-level interface the presentation/delivery layers call:

- shorten(target, owner?, requested_code?, expires_at?) -> ShortenResult
- resolve_and_redirect(code, context?) -> target
- delete_link(code, owner)
- get_analytics(code, owner) -> ClickAggregate

plus owner maintenance (update_expiry, list_links) and the lifecycle of the
background workers (click flush, expiry sweep, click compaction).

Design Decisions:
- The service owns no global state: create_link_service() builds the whole
  object graph from a Settings object, and start()/shutdown() (or
  `async with`) manage the background tasks
- Shortening always mints a new code, even for a URL that was shortened
  before; the store stays insert-only
- A generated code lost to a concurrent reservation is retried with a fresh
  salt up to the generation attempt bound; a lost vanity code is reported
"""

import logging
from datetime import datetime
from typing import Optional

from shortlink.api.schemas import (
    ClickAggregate,
    LinkInfo,
    RequestContext,
    ShortenRequest,
    ShortenResult,
)
from shortlink.core.clock import to_utc_naive, utcnow
from shortlink.core.exceptions import (
    CodeTakenError,
    GenerationExhaustedError,
    InvalidExpiryError,
    InvalidURLError,
    NotOwnerError,
)
from shortlink.core.log_config import configure_logging
from shortlink.core.setting import Settings
from shortlink.core.setting import settings as default_settings
from shortlink.core.validators import is_valid_url
from shortlink.db.models import ShortLink
from shortlink.db.session import Database
from shortlink.services.background_tasks import PeriodicTask
from shortlink.services.cache import InMemoryCache
from shortlink.services.click_ledger import ClickLedger
from shortlink.services.code_generator import CodeGenerator
from shortlink.services.mapping_store import MappingStore
from shortlink.services.redirect_service import RedirectService

logger = logging.getLogger(__name__)


class LinkService:
    """
    Core business logic for URL shortening.

    Handles URL validation, code allocation, resolution and analytics access.
    Separated from any transport for testability and maintainability.
    """

    def __init__(
        self,
        store: MappingStore,
        generator: CodeGenerator,
        resolver: RedirectService,
        ledger: ClickLedger,
        base_url: str = "http://localhost:8000",
        sweep_interval: float = 60.0,
        compaction_interval: float = 300.0
    ):
        self.store = store
        self.generator = generator
        self.resolver = resolver
        self.ledger = ledger
        self.base_url = base_url.rstrip("/")

        self.sweeper = PeriodicTask("expiry-sweep", self.sweep_expired, sweep_interval)
        self.compactor = PeriodicTask("click-compaction", self.compact_clicks, compaction_interval)

        store.add_removal_listener(ledger.purge)

    # Inbound operations

    async def shorten(
        self,
        target: str,
        owner: Optional[str] = None,
        requested_code: Optional[str] = None,
        expires_at: Optional[datetime] = None
    ) -> ShortenResult:
        """
        Create a new short link.

        Raises:
            InvalidURLError: target is not a well-formed http(s) URL
            InvalidExpiryError: expires_at is not in the future
            InvalidCodeError: requested code violates format rules
            CodeTakenError: requested code is already in use
            GenerationExhaustedError: no free code within the attempt bound
        """
        if not is_valid_url(target):
            raise InvalidURLError(
                target,
                reason="Invalid URL format. URL must use http:// or https:// and have a valid domain"
            )

        expires_at = to_utc_naive(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise InvalidExpiryError(expires_at)

        if requested_code is not None:
            code = await self.generator.generate(target, requested_code)
            link = await self.store.reserve(code, target, owner, expires_at, custom=True)
        else:
            link = await self._reserve_generated(target, owner, expires_at)

        logger.info(f"Shortened to {link.code} (custom={link.custom}, owner={owner})")
        return self._result(link)

    async def shorten_request(self, request: ShortenRequest) -> ShortenResult:
        """shorten() for a validated boundary request."""
        return await self.shorten(
            str(request.url),
            owner=request.owner,
            requested_code=request.custom_code,
            expires_at=request.expires_at,
        )

    async def _reserve_generated(
        self,
        target: str,
        owner: Optional[str],
        expires_at: Optional[datetime]
    ) -> ShortLink:
        attempts = self.generator.max_attempts
        for attempt in range(1, attempts + 1):
            code = await self.generator.generate(target)
            try:
                return await self.store.reserve(code, target, owner, expires_at, custom=False)
            except CodeTakenError:
                logger.warning(f"Lost reservation race for {code} (attempt {attempt}/{attempts})")
        raise GenerationExhaustedError(attempts)

    async def resolve_and_redirect(
        self,
        code: str,
        context: Optional[RequestContext] = None
    ) -> str:
        """
        Resolve a code for redirection.

        Transports map ShortCodeNotFoundError to 404 and LinkExpiredError to
        410 (or 404).
        """
        return await self.resolver.resolve(code, context)

    async def delete_link(self, code: str, owner: Optional[str]) -> None:
        await self.store.delete(code, owner)

    async def get_analytics(self, code: str, owner: Optional[str]) -> ClickAggregate:
        """
        Click summary for a link.

        Links with an owner are visible to that owner only; anonymous links
        have no principal to check against and are visible to anyone.

        Raises:
            ShortCodeNotFoundError: Unknown code
            NotOwnerError: owner does not own the link
        """
        link = await self.store.lookup(code)
        if link.owner is not None and link.owner != owner:
            raise NotOwnerError(code, owner)
        return await self.ledger.aggregate_for(link.code)

    async def update_expiry(
        self,
        code: str,
        owner: Optional[str],
        expires_at: Optional[datetime]
    ) -> LinkInfo:
        """Set or clear (None) the expiry of an owned link."""
        expires_at = to_utc_naive(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise InvalidExpiryError(expires_at)
        link = await self.store.update_expiry(code, owner, expires_at)
        return self._info(link)

    async def list_links(self, owner: str) -> list[LinkInfo]:
        return [self._info(link) for link in await self.store.links_for_owner(owner)]

    # Maintenance

    async def sweep_expired(self) -> int:
        return await self.store.sweep_expired()

    async def compact_clicks(self) -> int:
        return await self.ledger.compact()

    def start(self) -> None:
        """Start the click flush worker and the periodic maintenance tasks."""
        self.ledger.start()
        self.sweeper.start()
        self.compactor.start()

    async def shutdown(self) -> None:
        """Stop maintenance tasks, then drain the click buffer."""
        await self.sweeper.stop()
        await self.compactor.stop()
        await self.ledger.shutdown()

    async def __aenter__(self) -> "LinkService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def get_stats(self) -> dict:
        """
        Get service statistics for monitoring.

        Returns:
            Dictionary with cache, ledger and maintenance metrics
        """
        cache = self.store.cache
        return {
            "link_cache": cache.get_stats() if isinstance(cache, InMemoryCache) else {},
            "click_ledger": self.ledger.get_stats(),
            "sweeper": {"runs": self.sweeper.runs, "failures": self.sweeper.failures},
            "compactor": {"runs": self.compactor.runs, "failures": self.compactor.failures},
        }

    def _result(self, link: ShortLink) -> ShortenResult:
        return ShortenResult(
            code=link.code,
            target=link.target,
            short_url=f"{self.base_url}/{link.code}",
            custom=link.custom,
            expires_at=link.expires_at,
        )

    @staticmethod
    def _info(link: ShortLink) -> LinkInfo:
        return LinkInfo(
            code=link.code,
            target=link.target,
            created_at=link.created_at,
            custom=link.custom,
            expires_at=link.expires_at,
        )


def create_link_service(
    config: Optional[Settings] = None,
    database: Optional[Database] = None
) -> LinkService:
    """
    Build a LinkService and its collaborators from settings.

    Args:
        config: Settings to use (default: the module-level settings)
        database: Existing Database handle; created from config when omitted

    Returns:
        A LinkService whose background tasks are not started yet
    """
    config = config or default_settings
    configure_logging(config.LOG_LEVEL)
    database = database or Database(config.DATABASE_URL, pool_size=config.DATABASE_POOL_SIZE)

    store = MappingStore(
        database,
        cache=InMemoryCache(maxsize=config.LINK_CACHE_SIZE, ttl=config.LINK_CACHE_TTL_SECONDS),
    )
    generator = CodeGenerator(
        store,
        length=config.SHORT_CODE_LENGTH,
        alphabet=config.CODE_ALPHABET,
        min_length=config.CODE_MIN_LENGTH,
        max_length=config.CODE_MAX_LENGTH,
        max_attempts=config.CODE_GENERATION_MAX_ATTEMPTS,
        reserved_codes=config.RESERVED_CODES,
    )
    ledger = ClickLedger(
        database,
        buffer_size=config.CLICK_BUFFER_SIZE,
        batch_size=config.CLICK_FLUSH_BATCH_SIZE,
        flush_interval=config.CLICK_FLUSH_INTERVAL_SECONDS,
        max_attempts=config.CLICK_FLUSH_MAX_ATTEMPTS,
        backoff=config.CLICK_FLUSH_BACKOFF_SECONDS,
        retention_days=config.CLICK_RETENTION_DAYS,
        histogram_days=config.CLICK_HISTOGRAM_DAYS,
        aggregate_cache=InMemoryCache(ttl=config.AGGREGATE_CACHE_TTL_SECONDS),
    )
    resolver = RedirectService(
        store,
        ledger,
        alphabet=config.CODE_ALPHABET,
        max_code_length=config.CODE_MAX_LENGTH,
        client_hash_secret=config.CLIENT_HASH_SECRET,
    )

    return LinkService(
        store,
        generator,
        resolver,
        ledger,
        base_url=config.BASE_URL,
        sweep_interval=config.SWEEP_INTERVAL_SECONDS,
        compaction_interval=config.COMPACTION_INTERVAL_SECONDS,
    )
